"""Core configuration.

Environment variables (pydantic-settings) for every connector live here,
not in the CLI.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "account-hub"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "account-hub"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "account-hub"
    return Path.home() / ".config" / "account-hub"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Write/update variables in the user's global .env file."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# account-hub user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application configuration.

    A connector is only built when its credentials are present, so a
    deployment with two backends simply fans out to two sources.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACCOUNT_HUB_",
        extra="ignore",
        case_sensitive=False,
        # Project .env first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    user_agent: str = Field(
        default="account-hub/0.1",
        min_length=1,
        description="User-Agent sent to the REST directory backends.",
    )

    okta_domain: str | None = Field(
        default=None,
        description="Okta org domain, e.g. 'example.okta.com' (no scheme).",
    )
    okta_api_token: str | None = Field(
        default=None,
        description="Okta API token (SSWS).",
    )
    okta_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout for Okta calls (seconds).",
    )
    okta_max_pages: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of result pages followed for one Okta search.",
    )

    jumpcloud_api_key: str | None = Field(
        default=None,
        description="JumpCloud administrator API key.",
    )
    jumpcloud_org_id: str | None = Field(
        default=None,
        description="JumpCloud organization id (multi-tenant admins only).",
    )
    jumpcloud_base_url: str = Field(
        default="https://console.jumpcloud.com/api",
        min_length=8,
        description="JumpCloud API base URL.",
    )
    jumpcloud_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout for JumpCloud calls (seconds).",
    )

    ad_url: str | None = Field(
        default=None,
        description="LDAP URL of the domain controller (ldap:// or ldaps://).",
    )
    ad_base_dn: str | None = Field(
        default=None,
        description="Search base DN, e.g. 'DC=corp,DC=example,DC=com'.",
    )
    ad_username: str | None = Field(
        default=None,
        description="Bind account (DN or UPN).",
    )
    ad_password: str | None = Field(
        default=None,
        description="Bind account password.",
    )
    ad_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Connect/receive timeout for LDAP operations (seconds).",
    )

    hydrate_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum search hits fetched in full when an identifier is resolved by search.",
    )
    correlate_hinted_lookups: bool = Field(
        default=True,
        description="Also look for related accounts when the caller names the source.",
    )

    log_level: str = Field(
        default="INFO",
        description="Log level for the account_hub loggers.",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines instead of rich console output.",
    )

    @property
    def okta_configured(self) -> bool:
        return bool(self.okta_domain and self.okta_api_token)

    @property
    def jumpcloud_configured(self) -> bool:
        return bool(self.jumpcloud_api_key)

    @property
    def ad_configured(self) -> bool:
        return bool(self.ad_url and self.ad_base_dn and self.ad_username and self.ad_password)
