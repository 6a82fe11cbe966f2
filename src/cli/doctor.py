"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.connectors import build_connectors
from core.config import AppSettings, write_user_env_vars
from core.domain.models import Source
from core.interfaces.connector import DirectoryConnector

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()

_PROBE_QUERY = "account-hub-doctor"


async def _check_connector(connector: DirectoryConnector) -> tuple[bool, str]:
    """A harmless search proves reachability and credentials at once."""

    try:
        results = await connector.search_users(_PROBE_QUERY)
    except Exception as exc:
        return False, str(exc) or exc.__class__.__name__
    finally:
        close = getattr(connector, "aclose", None)
        if close is not None:
            await close()
    return True, f"search OK ({len(results)} hits)"


@app.command()
def run() -> None:
    """Check which directories are configured and reachable."""

    settings = AppSettings()
    connectors = build_connectors(settings)

    table = Table(title="account-hub doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    configured = {
        Source.OKTA: (settings.okta_configured, settings.okta_domain or "ACCOUNT_HUB_OKTA_DOMAIN/API_TOKEN unset"),
        Source.JUMPCLOUD: (settings.jumpcloud_configured, settings.jumpcloud_base_url),
        Source.ACTIVE_DIRECTORY: (settings.ad_configured, settings.ad_url or "ACCOUNT_HUB_AD_* unset"),
    }
    failures = 0
    for source, (is_configured, detail) in configured.items():
        if not is_configured:
            table.add_row(source.label(), "SKIPPED", detail)
            continue
        ok, message = asyncio.run(_check_connector(connectors[source]))
        failures += 0 if ok else 1
        table.add_row(source.label(), "OK" if ok else "FAIL", message)

    _console.print(table)

    if not connectors:
        _console.print("\n[yellow]Note:[/yellow] no directory is configured. Run `account-hub doctor setup`.")
    if failures:
        raise typer.Exit(code=1)


@app.command(name="setup")
def setup() -> None:
    """Interactive directory setup (stored in the user config .env)."""

    source = typer.prompt(
        "Directory (okta/jumpcloud/active-directory)",
        default="okta",
        show_default=True,
    ).strip().lower()

    values: dict[str, str] = {}
    if source == Source.OKTA.value:
        values["ACCOUNT_HUB_OKTA_DOMAIN"] = typer.prompt("Okta domain (e.g. example.okta.com)").strip()
        values["ACCOUNT_HUB_OKTA_API_TOKEN"] = typer.prompt("Okta API token", hide_input=True).strip()
    elif source == Source.JUMPCLOUD.value:
        values["ACCOUNT_HUB_JUMPCLOUD_API_KEY"] = typer.prompt("JumpCloud API key", hide_input=True).strip()
        org_id = typer.prompt("JumpCloud org id (optional)", default="", show_default=False).strip()
        if org_id:
            values["ACCOUNT_HUB_JUMPCLOUD_ORG_ID"] = org_id
    elif source == Source.ACTIVE_DIRECTORY.value:
        values["ACCOUNT_HUB_AD_URL"] = typer.prompt("LDAP URL (ldaps://dc.example.com)").strip()
        values["ACCOUNT_HUB_AD_BASE_DN"] = typer.prompt("Base DN").strip()
        values["ACCOUNT_HUB_AD_USERNAME"] = typer.prompt("Bind user").strip()
        values["ACCOUNT_HUB_AD_PASSWORD"] = typer.prompt("Bind password", hide_input=True).strip()
    else:
        raise typer.BadParameter(f"unknown directory: {source}")

    if not all(values.values()):
        raise typer.BadParameter("every value is required")

    env_path = write_user_env_vars(values)
    _console.print(f"[green]Saved {Source(source).label()} config to:[/green] {env_path}")
