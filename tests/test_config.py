"""Tests for settings, the user .env writer, logging and JSON export."""

from __future__ import annotations

import json
import logging

from adapters.connectors import build_connectors
from adapters.json_exporter import dump_models, export_json
from core.config import AppSettings, get_user_config_dir, write_user_env_vars
from core.domain.models import Source
from core.logging_config import JsonFormatter, configure_logging
from tests.fakes import make_hit


def test_connectors_are_built_only_when_fully_configured():
    settings = AppSettings(
        _env_file=None,
        jumpcloud_api_key="key",
        ad_url="ldaps://dc.example.com",
        ad_base_dn="DC=example,DC=com",
        ad_username="svc",
        # no password: AD stays unconfigured
    )

    assert settings.jumpcloud_configured
    assert not settings.okta_configured
    assert not settings.ad_configured
    assert list(build_connectors(settings)) == [Source.JUMPCLOUD]


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("ACCOUNT_HUB_OKTA_DOMAIN", "example.okta.com")
    monkeypatch.setenv("ACCOUNT_HUB_OKTA_API_TOKEN", "token")
    monkeypatch.setenv("ACCOUNT_HUB_CORRELATE_HINTED_LOOKUPS", "false")

    settings = AppSettings(_env_file=None)

    assert settings.okta_configured
    assert settings.correlate_hinted_lookups is False
    assert settings.hydrate_limit == 10


def test_user_config_dir_honours_xdg(monkeypatch, tmp_path):
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_user_config_dir() == tmp_path / "account-hub"


def test_write_user_env_vars_merges_existing_values(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    env_path.parent.mkdir()
    env_path.write_text('# old\nACCOUNT_HUB_OKTA_DOMAIN="old.okta.com"\nACCOUNT_HUB_LOG_LEVEL=DEBUG\n', encoding="utf-8")

    write_user_env_vars({"ACCOUNT_HUB_OKTA_DOMAIN": "example.okta.com"}, env_path=env_path)

    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("#")
    assert lines[1:] == ["ACCOUNT_HUB_LOG_LEVEL=DEBUG", "ACCOUNT_HUB_OKTA_DOMAIN=example.okta.com"]


def test_json_formatter_includes_context_fields():
    record = logging.LogRecord("account_hub.fanout", logging.WARNING, __file__, 1, "Okta search failed", None, None)
    record.source = "okta"

    entry = json.loads(JsonFormatter().format(record))

    assert entry["level"] == "WARNING"
    assert entry["logger"] == "account_hub.fanout"
    assert entry["source"] == "okta"
    assert "action" not in entry


def test_configure_logging_installs_one_handler():
    configure_logging("debug", json_output=True)
    configure_logging("warning", json_output=True)

    logger = logging.getLogger("account_hub")
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)
    assert logger.level == logging.WARNING
    assert logger.propagate is False


def test_export_uses_camel_case_aliases(tmp_path):
    hit = make_hit(Source.ACTIVE_DIRECTORY, "CN=Jane,DC=x", email="jane@x.com", display_name="Jane Doe")

    path = export_json(payload=[hit], output_path=tmp_path / "hits.json")

    [data] = json.loads(path.read_text(encoding="utf-8"))
    assert data["displayName"] == "Jane Doe"
    assert data["source"] == "active-directory"
    assert dump_models(hit).endswith("}\n")
