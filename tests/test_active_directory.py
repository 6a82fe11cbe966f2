"""Tests for the Active Directory connector over a mocked ldap3 connection."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import Mock

import ldap3
import pytest

from adapters.connectors.active_directory import (
    ActiveDirectoryConnector,
    filetime_to_datetime,
    looks_like_distinguished_name,
)
from core.config import AppSettings
from core.domain.models import AccountPatch, Source
from core.errors import DirectoryOperationError

JANE_DN = "CN=Jane Doe,OU=Staff,DC=corp,DC=example,DC=com"

# 2024-01-01T00:00:00Z as a FILETIME.
JAN_2024 = 133485408000000000


def _entry(dn: str = JANE_DN, **attributes) -> dict:
    attrs = {
        "distinguishedName": dn,
        "sAMAccountName": "jdoe",
        "mail": "jane@x.com",
        "givenName": "Jane",
        "sn": "Doe",
        "displayName": "Jane Doe",
        "userAccountControl": 512,
    }
    attrs.update(attributes)
    return {"type": "searchResEntry", "dn": dn, "attributes": attrs}


def _connection(entries=(), *, result: int = 0, modify_ok: bool = True) -> Mock:
    conn = Mock()
    conn.closed = False
    conn.result = {"result": result, "description": "success" if result == 0 else "operationsError"}

    def search(**kwargs):
        conn.response = list(entries) + [{"type": "searchResRef", "uri": ["ldap://other/"]}]
        return True

    conn.search.side_effect = search
    conn.modify.return_value = modify_ok
    return conn


def _connector(conn: Mock) -> ActiveDirectoryConnector:
    settings = AppSettings(
        _env_file=None,
        ad_url="ldaps://dc.corp.example.com",
        ad_base_dn="DC=corp,DC=example,DC=com",
        ad_username="svc-hub@corp.example.com",
        ad_password="secret",
    )
    return ActiveDirectoryConnector(settings, connection_factory=lambda: conn)


def test_filetime_conversion():
    assert filetime_to_datetime(116444736000000000) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert filetime_to_datetime([str(JAN_2024)]) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert filetime_to_datetime(0) is None
    assert filetime_to_datetime(0x7FFFFFFFFFFFFFFF) is None
    assert filetime_to_datetime(None) is None


def test_distinguished_name_detection():
    assert looks_like_distinguished_name(JANE_DN)
    assert not looks_like_distinguished_name("jane@x.com")
    assert not looks_like_distinguished_name("5f1c0e0b9d3e4a0012345678")


@pytest.mark.asyncio
async def test_search_users_escapes_the_filter_and_maps_entries():
    conn = _connection([_entry()])
    connector = _connector(conn)

    hits = await connector.search_users("doe (contractor)*")

    kwargs = conn.search.call_args.kwargs
    assert kwargs["search_base"] == "DC=corp,DC=example,DC=com"
    assert kwargs["search_scope"] == ldap3.SUBTREE
    assert "(mail=*doe \\28contractor\\29\\2a*)" in kwargs["search_filter"]
    assert kwargs["search_filter"].startswith("(&(objectClass=user)(objectCategory=person)")

    [hit] = hits
    assert hit.source is Source.ACTIVE_DIRECTORY
    assert (hit.id, hit.email, hit.username, hit.display_name) == (JANE_DN, "jane@x.com", "jdoe", "Jane Doe")


@pytest.mark.asyncio
async def test_get_user_by_id_reads_the_entry():
    conn = _connection([_entry(userAccountControl=514, pwdLastSet=JAN_2024, lastLogonTimestamp=0, lockoutTime=0)])
    connector = _connector(conn)

    record = await connector.get_user_by_id(JANE_DN)

    assert conn.search.call_args.kwargs["search_base"] == JANE_DN
    assert conn.search.call_args.kwargs["search_scope"] == ldap3.BASE
    assert record is not None
    assert record.source_id == JANE_DN
    assert record.enabled is False
    assert record.locked is False
    assert record.password_last_set == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert record.last_login is None
    assert record.mfa_enabled is False


@pytest.mark.asyncio
async def test_lockout_time_marks_the_account_locked():
    connector = _connector(_connection([_entry(lockoutTime=JAN_2024)]))

    record = await connector.get_user_by_id(JANE_DN)

    assert record is not None
    assert record.enabled is True
    assert record.locked is True


@pytest.mark.asyncio
async def test_non_dn_identifier_is_a_miss_without_a_search():
    conn = _connection([_entry()])
    connector = _connector(conn)

    assert await connector.get_user_by_id("jdoe") is None
    conn.search.assert_not_called()


@pytest.mark.asyncio
async def test_missing_entry_is_none():
    connector = _connector(_connection(result=32))

    assert await connector.get_user_by_id(JANE_DN) is None


@pytest.mark.asyncio
async def test_directory_error_raises():
    connector = _connector(_connection(result=1))

    with pytest.raises(DirectoryOperationError) as excinfo:
        await connector.search_users("jane")
    assert excinfo.value.source == "active-directory"


@pytest.mark.asyncio
async def test_connection_is_bound_once_and_reused():
    conn = _connection([_entry()])
    factory = Mock(return_value=conn)
    settings = AppSettings(_env_file=None, ad_base_dn="DC=corp,DC=example,DC=com")
    connector = ActiveDirectoryConnector(settings, connection_factory=factory)

    await connector.search_users("jane")
    await connector.get_user_by_id(JANE_DN)
    await connector.aclose()

    factory.assert_called_once_with()
    conn.unbind.assert_called_once_with()


@pytest.mark.asyncio
async def test_disable_flips_only_the_disabled_bit():
    conn = _connection([_entry(userAccountControl=66048)])
    connector = _connector(conn)

    assert await connector.update_user(JANE_DN, AccountPatch(enabled=False, email="j@x.com")) is True

    dn, changes = conn.modify.call_args.args
    assert dn == JANE_DN
    assert changes == {
        "mail": [(ldap3.MODIFY_REPLACE, ["j@x.com"])],
        "userAccountControl": [(ldap3.MODIFY_REPLACE, ["66050"])],
    }


@pytest.mark.asyncio
async def test_enable_and_unlock():
    conn = _connection([_entry(userAccountControl=514)])
    connector = _connector(conn)

    await connector.update_user(JANE_DN, AccountPatch(enabled=True, locked=False))

    _, changes = conn.modify.call_args.args
    assert changes == {
        "userAccountControl": [(ldap3.MODIFY_REPLACE, ["512"])],
        "lockoutTime": [(ldap3.MODIFY_REPLACE, ["0"])],
    }


@pytest.mark.asyncio
async def test_suspend_disables_the_account():
    conn = _connection([_entry()])
    connector = _connector(conn)

    assert await connector.suspend(JANE_DN) is True

    _, changes = conn.modify.call_args.args
    assert changes == {"userAccountControl": [(ldap3.MODIFY_REPLACE, ["514"])]}


@pytest.mark.asyncio
async def test_expire_password_resets_pwd_last_set():
    conn = _connection()
    connector = _connector(conn)

    assert await connector.expire_password(JANE_DN) is True
    conn.modify.assert_called_once_with(JANE_DN, {"pwdLastSet": [(ldap3.MODIFY_REPLACE, ["0"])]})


@pytest.mark.asyncio
async def test_rejected_modify_raises():
    connector = _connector(_connection(modify_ok=False))

    with pytest.raises(DirectoryOperationError):
        await connector.expire_password(JANE_DN)


@pytest.mark.asyncio
async def test_mfa_is_not_managed_in_the_directory():
    conn = _connection()
    connector = _connector(conn)

    assert await connector.get_mfa_devices(JANE_DN) == []
    assert await connector.reset_mfa(JANE_DN) is False
    conn.modify.assert_not_called()


@pytest.mark.asyncio
async def test_lock_request_is_refused_without_a_modify():
    conn = _connection([_entry()])
    connector = _connector(conn)

    assert await connector.update_user(JANE_DN, AccountPatch(locked=True, email="j@x.com")) is False
    conn.search.assert_not_called()
    conn.modify.assert_not_called()
