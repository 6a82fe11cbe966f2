"""Directory connector: Okta.

Uses the Okta management REST API (`/api/v1`) with an SSWS API token.
- Search: `search=` expression with `sw` (starts with) on email, login,
  first and last name, following `Link: rel="next"` pages.
- Users can be looked up by id or by login.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from adapters.connectors.active_directory import looks_like_distinguished_name
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

logger = logging.getLogger("account_hub.connectors.okta")

_FACTOR_NAMES = {
    "push": "Okta Verify Push",
    "token:software:totp": "Authenticator App",
    "sms": "SMS",
    "call": "Voice Call",
    "email": "Email",
    "token:hardware": "Hardware Token",
    "u2f": "Security Key (U2F)",
    "webauthn": "Security Key (WebAuthn)",
}

_FACTOR_STATUS = {
    "ACTIVE": MFAStatus.ACTIVE,
    "PENDING_ACTIVATION": MFAStatus.PENDING,
}

_SEARCH_FIELDS = ("email", "login", "firstName", "lastName")

_PROFILE_FIELDS = {
    "email": "email",
    "first_name": "firstName",
    "last_name": "lastName",
    "display_name": "displayName",
}


def _search_expression(query: str) -> str:
    q = query.replace("\\", "\\\\").replace('"', '\\"')
    return " or ".join(f'profile.{field} sw "{q}"' for field in _SEARCH_FIELDS)


def _display_name(user: dict[str, Any]) -> str:
    profile = user.get("profile") or {}
    name = f"{profile.get('firstName') or ''} {profile.get('lastName') or ''}".strip()
    return name or profile.get("displayName") or profile.get("login") or user.get("id", "")


class OktaConnector:
    source = Source.OKTA

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return build_async_client(
            self._settings,
            base_url=f"https://{self._settings.okta_domain}/api/v1",
            timeout_seconds=self._settings.okta_timeout_seconds,
            extra_headers={
                "Authorization": f"SSWS {self._settings.okta_api_token}",
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )

    @staticmethod
    def _user_path(user_id: str) -> str:
        return f"/users/{quote(user_id, safe='')}"

    async def search_users(self, query: str) -> list[PartialRecord]:
        users: list[dict[str, Any]] = []
        async with self._client() as client:
            url: str | None = "/users"
            params: dict[str, Any] | None = {"search": _search_expression(query), "limit": 200}
            pages = 0
            while url and pages < self._settings.okta_max_pages:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                users.extend(resp.json())
                pages += 1
                # The next link already carries the cursor and the search.
                url = resp.links.get("next", {}).get("url")
                params = None

        return [
            PartialRecord(
                source=Source.OKTA,
                type=RecordType.USER,
                id=user["id"],
                display_name=_display_name(user),
                email=(user.get("profile") or {}).get("email"),
                username=(user.get("profile") or {}).get("login"),
                attributes=user,
            )
            for user in users
        ]

    async def get_user_by_id(self, user_id: str) -> FullRecord | None:
        if looks_like_distinguished_name(user_id):
            return None
        async with self._client() as client:
            resp = await client.get(self._user_path(user_id))
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return self._to_record(resp.json())

    @staticmethod
    def _to_record(user: dict[str, Any]) -> FullRecord:
        profile = user.get("profile") or {}
        status = user.get("status")
        return FullRecord(
            source=Source.OKTA,
            source_id=user["id"],
            username=profile.get("login") or "",
            email=profile.get("email") or "",
            first_name=profile.get("firstName") or "",
            last_name=profile.get("lastName") or "",
            display_name=_display_name(user),
            enabled=status == "ACTIVE",
            locked=status in ("LOCKED_OUT", "SUSPENDED"),
            password_last_set=user.get("passwordChanged"),
            last_login=user.get("lastLogin"),
            # Determined from the enrolled factors by the MFA aggregator.
            mfa_enabled=False,
            attributes=user,
        )

    async def _list_factors(self, client: httpx.AsyncClient, user_id: str) -> list[dict[str, Any]]:
        resp = await client.get(f"{self._user_path(user_id)}/factors")
        resp.raise_for_status()
        return resp.json()

    async def get_mfa_devices(self, user_id: str) -> list[MFADevice]:
        async with self._client() as client:
            factors = await self._list_factors(client, user_id)
        return [
            MFADevice(
                id=factor["id"],
                type=factor.get("factorType") or "unknown",
                name=_FACTOR_NAMES.get(factor.get("factorType"), factor.get("factorType") or "unknown"),
                status=_FACTOR_STATUS.get(factor.get("status"), MFAStatus.INACTIVE),
                enrolled_at=factor.get("created"),
                last_used=factor.get("lastVerified"),
                source=Source.OKTA,
            )
            for factor in factors
        ]

    async def update_user(self, user_id: str, patch: AccountPatch) -> bool:
        changes = patch.changes()
        if changes.get("locked") is True:
            # Okta only locks accounts itself, after failed sign-ins.
            logger.warning("Okta cannot lock user %s on request", user_id, extra={"source": self.source.value})
            return False
        profile = {_PROFILE_FIELDS[k]: v for k, v in changes.items() if k in _PROFILE_FIELDS}
        path = self._user_path(user_id)

        async with self._client() as client:
            if profile:
                # POST is a partial profile update; PUT would replace the profile.
                resp = await client.post(path, json={"profile": profile})
                resp.raise_for_status()
            if "enabled" in changes:
                lifecycle = "unsuspend" if changes["enabled"] else "suspend"
                resp = await client.post(f"{path}/lifecycle/{lifecycle}")
                resp.raise_for_status()
            if changes.get("locked") is False:
                resp = await client.post(f"{path}/lifecycle/unlock")
                resp.raise_for_status()

        logger.info("Updated Okta user %s", user_id, extra={"source": self.source.value})
        return True

    async def expire_password(self, user_id: str) -> bool:
        async with self._client() as client:
            resp = await client.post(f"{self._user_path(user_id)}/lifecycle/expire_password")
            resp.raise_for_status()
        logger.info("Expired password for Okta user %s", user_id, extra={"source": self.source.value})
        return True

    async def reset_mfa(self, user_id: str, factor_id: str | None = None) -> bool:
        path = self._user_path(user_id)
        async with self._client() as client:
            if factor_id:
                factor_ids = [factor_id]
            else:
                factor_ids = [factor["id"] for factor in await self._list_factors(client, user_id)]
            for fid in factor_ids:
                resp = await client.delete(f"{path}/factors/{quote(fid, safe='')}")
                resp.raise_for_status()
        logger.info(
            "MFA reset for Okta user %s (%d factors)",
            user_id,
            len(factor_ids),
            extra={"source": self.source.value},
        )
        return True

    async def suspend(self, user_id: str) -> bool:
        async with self._client() as client:
            resp = await client.post(f"{self._user_path(user_id)}/lifecycle/suspend")
            resp.raise_for_status()
        logger.info("Suspended Okta user %s", user_id, extra={"source": self.source.value})
        return True
