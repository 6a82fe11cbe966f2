"""Directory connector: JumpCloud.

Uses the JumpCloud v1 API (`/systemusers`) with an administrator API key.
User ids are 24-character hex ObjectIds; anything else is a miss without
a request.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.models import (
    AccountPatch,
    FullRecord,
    MFADevice,
    MFAStatus,
    PartialRecord,
    RecordType,
    Source,
)

logger = logging.getLogger("account_hub.connectors.jumpcloud")

_OBJECT_ID = re.compile(r"[0-9a-fA-F]{24}")

_SEARCH_FIELDS = ("email", "username", "firstname", "lastname")

_RETURNED_FIELDS = [
    "username",
    "email",
    "firstname",
    "lastname",
    "displayname",
    "activated",
    "account_locked",
]

_PATCH_FIELDS = {
    "email": "email",
    "first_name": "firstname",
    "last_name": "lastname",
    "display_name": "displayname",
    "enabled": "activated",
    "locked": "account_locked",
}


def _display_name(user: dict[str, Any]) -> str:
    name = user.get("displayname")
    if name:
        return name
    full = f"{user.get('firstname') or ''} {user.get('lastname') or ''}".strip()
    return full or user.get("username") or user.get("_id", "")


class JumpCloudConnector:
    source = Source.JUMPCLOUD

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "x-api-key": self._settings.jumpcloud_api_key or "",
            "Content-Type": "application/json",
        }
        if self._settings.jumpcloud_org_id:
            headers["x-org-id"] = self._settings.jumpcloud_org_id
        return build_async_client(
            self._settings,
            base_url=self._settings.jumpcloud_base_url,
            timeout_seconds=self._settings.jumpcloud_timeout_seconds,
            extra_headers=headers,
            transport=self._transport,
        )

    async def search_users(self, query: str) -> list[PartialRecord]:
        pattern = re.escape(query)
        body = {
            "filter": [
                {"$or": [{field: {"$regex": pattern, "$options": "i"}} for field in _SEARCH_FIELDS]},
            ],
            "fields": _RETURNED_FIELDS,
        }
        async with self._client() as client:
            resp = await client.post("/search/systemusers", json=body)
            resp.raise_for_status()
            payload = resp.json()

        return [
            PartialRecord(
                source=Source.JUMPCLOUD,
                type=RecordType.USER,
                id=user["_id"],
                display_name=_display_name(user),
                email=user.get("email"),
                username=user.get("username"),
                attributes=user,
            )
            for user in payload.get("results", [])
        ]

    async def _get_raw(self, user_id: str) -> dict[str, Any] | None:
        if not _OBJECT_ID.fullmatch(user_id):
            return None
        async with self._client() as client:
            resp = await client.get(f"/systemusers/{user_id}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    async def get_user_by_id(self, user_id: str) -> FullRecord | None:
        user = await self._get_raw(user_id)
        if user is None:
            return None
        return FullRecord(
            source=Source.JUMPCLOUD,
            source_id=user["_id"],
            username=user.get("username") or "",
            email=user.get("email") or "",
            first_name=user.get("firstname") or "",
            last_name=user.get("lastname") or "",
            display_name=_display_name(user),
            enabled=bool(user.get("activated")),
            locked=bool(user.get("account_locked")),
            password_last_set=user.get("password_date"),
            password_expiry_date=user.get("password_expiration_date"),
            mfa_enabled=bool((user.get("mfa") or {}).get("configured")),
            attributes=user,
        )

    async def get_mfa_devices(self, user_id: str) -> list[MFADevice]:
        user = await self._get_raw(user_id)
        if user is None or not (user.get("mfa") or {}).get("configured"):
            return []

        devices: list[MFADevice] = []
        if user.get("totp_enabled"):
            devices.append(
                MFADevice(
                    id=f"{user_id}-totp",
                    type="TOTP",
                    name="Authenticator App",
                    status=MFAStatus.ACTIVE,
                    source=Source.JUMPCLOUD,
                )
            )
        return devices

    async def _put(self, user_id: str, payload: dict[str, Any]) -> None:
        async with self._client() as client:
            resp = await client.put(f"/systemusers/{user_id}", json=payload)
            resp.raise_for_status()

    async def update_user(self, user_id: str, patch: AccountPatch) -> bool:
        payload = {_PATCH_FIELDS[k]: v for k, v in patch.changes().items()}
        if payload:
            await self._put(user_id, payload)
        logger.info("Updated JumpCloud user %s", user_id, extra={"source": self.source.value})
        return True

    async def expire_password(self, user_id: str) -> bool:
        async with self._client() as client:
            resp = await client.post(f"/systemusers/{user_id}/expire")
            resp.raise_for_status()
        logger.info("Expired password for JumpCloud user %s", user_id, extra={"source": self.source.value})
        return True

    async def reset_mfa(self, user_id: str, factor_id: str | None = None) -> bool:
        # JumpCloud resets the whole TOTP enrollment; there is no per-factor reset.
        async with self._client() as client:
            resp = await client.post(f"/systemusers/{user_id}/resetmfa")
            resp.raise_for_status()
        logger.info("MFA reset for JumpCloud user %s", user_id, extra={"source": self.source.value})
        return True

    async def suspend(self, user_id: str) -> bool:
        await self._put(user_id, {"activated": False, "account_locked": True})
        logger.info("Suspended JumpCloud user %s", user_id, extra={"source": self.source.value})
        return True
