"""Directory connector: on-premises Active Directory (LDAP via ldap3).

Notes:
- Records are keyed by distinguished name; identifiers that do not look
  like a DN are a miss without touching the directory.
- ldap3's sync strategy blocks, so every directory call runs in a worker
  thread, one at a time over a lazily bound connection.
- MFA is handled outside AD (Duo, Entra MFA, ...): no devices are listed
  and resetting MFA is not possible here.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import ldap3
from ldap3.utils.conv import escape_filter_chars

from core.config import AppSettings
from core.domain.models import (
    AccountPatch,
    FullRecord,
    MFADevice,
    PartialRecord,
    RecordType,
    Source,
)
from core.errors import DirectoryOperationError

logger = logging.getLogger("account_hub.connectors.active_directory")

UAC_ACCOUNTDISABLE = 0x0002
UAC_LOCKOUT = 0x0010
UAC_NORMAL_ACCOUNT = 0x0200

_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)
_FILETIME_NEVER = 0x7FFFFFFFFFFFFFFF

_RESULT_SUCCESS = 0
_RESULT_NO_SUCH_OBJECT = 32

_SEARCH_ATTRIBUTES = [
    "distinguishedName",
    "sAMAccountName",
    "mail",
    "givenName",
    "sn",
    "displayName",
    "userAccountControl",
]

_PATCH_ATTRIBUTES = {
    "email": "mail",
    "first_name": "givenName",
    "last_name": "sn",
    "display_name": "displayName",
}


def looks_like_distinguished_name(value: str) -> bool:
    """Loose DN check: an AD DN always has at least one '=' and one ','."""

    s = (value or "").strip()
    return "=" in s and "," in s


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _jsonable(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def filetime_to_datetime(value: Any) -> datetime | None:
    """Convert an AD FILETIME (100ns ticks since 1601) to an aware datetime.

    `0` and the "never" sentinel mean no value. ldap3 already returns a
    datetime when the schema is loaded.
    """

    value = _first(value)
    if isinstance(value, datetime):
        return None if value.year <= 1601 else value
    try:
        ticks = int(value)
    except (TypeError, ValueError):
        return None
    if ticks <= 0 or ticks >= _FILETIME_NEVER:
        return None
    return _FILETIME_EPOCH + timedelta(microseconds=ticks // 10)


def _uac(attrs: dict[str, Any]) -> int:
    try:
        return int(_first(attrs.get("userAccountControl")) or 0)
    except (TypeError, ValueError):
        return 0


def _display_name(attrs: dict[str, Any]) -> str:
    name = _first(attrs.get("displayName"))
    if name:
        return str(name)
    full = f"{_first(attrs.get('givenName')) or ''} {_first(attrs.get('sn')) or ''}".strip()
    return full or "Unknown"


def _text(attrs: dict[str, Any], name: str) -> str:
    value = _first(attrs.get(name))
    return str(value) if value is not None else ""


class ActiveDirectoryConnector:
    source = Source.ACTIVE_DIRECTORY

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        connection_factory: Callable[[], ldap3.Connection] | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._connection_factory = connection_factory or self._bind
        self._conn: ldap3.Connection | None = None
        self._lock = threading.Lock()

    def _bind(self) -> ldap3.Connection:
        url = self._settings.ad_url or ""
        use_ssl = url.lower().startswith("ldaps://")
        if not use_ssl:
            logger.warning("Using unencrypted LDAP connection to %s", url, extra={"source": self.source.value})
        server = ldap3.Server(
            url,
            use_ssl=use_ssl,
            get_info=ldap3.NONE,
            connect_timeout=self._settings.ad_timeout_seconds,
        )
        conn = ldap3.Connection(
            server,
            user=self._settings.ad_username,
            password=self._settings.ad_password,
            auto_bind=True,
            receive_timeout=self._settings.ad_timeout_seconds,
            raise_exceptions=False,
        )
        logger.info("Bound to Active Directory at %s", url, extra={"source": self.source.value})
        return conn

    def _connection(self) -> ldap3.Connection:
        if self._conn is None or self._conn.closed:
            self._conn = self._connection_factory()
        return self._conn

    def _search_sync(self, base: str, search_filter: str, scope: str, attributes: Any) -> list[dict[str, Any]]:
        with self._lock:
            conn = self._connection()
            conn.search(
                search_base=base,
                search_filter=search_filter,
                search_scope=scope,
                attributes=attributes,
            )
            code = (conn.result or {}).get("result", _RESULT_SUCCESS)
            if code == _RESULT_NO_SUCH_OBJECT:
                return []
            if code != _RESULT_SUCCESS:
                raise DirectoryOperationError(self.source.value, (conn.result or {}).get("description") or "search failed")
            return [entry for entry in conn.response or [] if entry.get("type") == "searchResEntry"]

    def _modify_sync(self, dn: str, changes: dict[str, list[tuple[Any, list[str]]]]) -> None:
        with self._lock:
            conn = self._connection()
            if not conn.modify(dn, changes):
                raise DirectoryOperationError(self.source.value, (conn.result or {}).get("description") or "modify failed")

    async def _read_entry(self, dn: str, attributes: Any) -> dict[str, Any] | None:
        entries = await asyncio.to_thread(self._search_sync, dn, "(objectClass=*)", ldap3.BASE, attributes)
        return entries[0] if entries else None

    async def search_users(self, query: str) -> list[PartialRecord]:
        q = escape_filter_chars(query)
        search_filter = (
            "(&(objectClass=user)(objectCategory=person)"
            f"(|(cn=*{q}*)(sAMAccountName=*{q}*)(mail=*{q}*)(displayName=*{q}*)))"
        )
        entries = await asyncio.to_thread(
            self._search_sync,
            self._settings.ad_base_dn or "",
            search_filter,
            ldap3.SUBTREE,
            _SEARCH_ATTRIBUTES,
        )

        records: list[PartialRecord] = []
        for entry in entries:
            attrs = entry.get("attributes") or {}
            dn = _first(attrs.get("distinguishedName")) or entry.get("dn")
            if not dn:
                continue
            records.append(
                PartialRecord(
                    source=Source.ACTIVE_DIRECTORY,
                    type=RecordType.USER,
                    id=str(dn),
                    display_name=_display_name(attrs),
                    email=_text(attrs, "mail") or None,
                    username=_text(attrs, "sAMAccountName") or None,
                    attributes={"dn": entry.get("dn"), **{k: _jsonable(v) for k, v in attrs.items()}},
                )
            )
        return records

    async def get_user_by_id(self, user_id: str) -> FullRecord | None:
        if not looks_like_distinguished_name(user_id):
            return None
        entry = await self._read_entry(user_id, ldap3.ALL_ATTRIBUTES)
        if entry is None:
            return None

        attrs = entry.get("attributes") or {}
        uac = _uac(attrs)
        return FullRecord(
            source=Source.ACTIVE_DIRECTORY,
            source_id=str(_first(attrs.get("distinguishedName")) or entry.get("dn") or user_id),
            username=_text(attrs, "sAMAccountName"),
            email=_text(attrs, "mail"),
            first_name=_text(attrs, "givenName"),
            last_name=_text(attrs, "sn"),
            display_name=_display_name(attrs),
            enabled=not (uac & UAC_ACCOUNTDISABLE),
            locked=bool(uac & UAC_LOCKOUT) or filetime_to_datetime(attrs.get("lockoutTime")) is not None,
            password_last_set=filetime_to_datetime(attrs.get("pwdLastSet")),
            last_login=filetime_to_datetime(attrs.get("lastLogonTimestamp")),
            mfa_enabled=False,
            attributes={"dn": entry.get("dn"), **{k: _jsonable(v) for k, v in attrs.items()}},
        )

    async def get_mfa_devices(self, user_id: str) -> list[MFADevice]:
        return []

    async def update_user(self, user_id: str, patch: AccountPatch) -> bool:
        fields = patch.changes()
        if fields.get("locked") is True:
            # lockoutTime is set by the DC only; it can be cleared but not written.
            logger.warning("AD cannot lock user %s on request", user_id, extra={"source": self.source.value})
            return False

        changes: dict[str, list[tuple[Any, list[str]]]] = {
            _PATCH_ATTRIBUTES[k]: [(ldap3.MODIFY_REPLACE, [str(v)])]
            for k, v in fields.items()
            if k in _PATCH_ATTRIBUTES
        }

        if "enabled" in fields:
            entry = await self._read_entry(user_id, ["userAccountControl"])
            if entry is None:
                raise DirectoryOperationError(self.source.value, f"no such user: {user_id}")
            current = _uac(entry.get("attributes") or {}) or UAC_NORMAL_ACCOUNT
            uac = current & ~UAC_ACCOUNTDISABLE if fields["enabled"] else current | UAC_ACCOUNTDISABLE
            changes["userAccountControl"] = [(ldap3.MODIFY_REPLACE, [str(uac)])]

        if fields.get("locked") is False:
            changes["lockoutTime"] = [(ldap3.MODIFY_REPLACE, ["0"])]

        if not changes:
            return True

        await asyncio.to_thread(self._modify_sync, user_id, changes)
        logger.info("Updated AD user %s", user_id, extra={"source": self.source.value})
        return True

    async def expire_password(self, user_id: str) -> bool:
        # pwdLastSet=0 forces a password change at next logon.
        await asyncio.to_thread(self._modify_sync, user_id, {"pwdLastSet": [(ldap3.MODIFY_REPLACE, ["0"])]})
        logger.info("Expired password for AD user %s", user_id, extra={"source": self.source.value})
        return True

    async def reset_mfa(self, user_id: str, factor_id: str | None = None) -> bool:
        logger.info("MFA for AD user %s is managed outside the directory", user_id, extra={"source": self.source.value})
        return False

    async def suspend(self, user_id: str) -> bool:
        return await self.update_user(user_id, AccountPatch(enabled=False))

    def _unbind_sync(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.unbind()
                self._conn = None

    async def aclose(self) -> None:
        await asyncio.to_thread(self._unbind_sync)
