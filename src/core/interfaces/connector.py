"""Directory connector contract.

Structural (`Protocol`): the Okta, JumpCloud and Active Directory
connectors and the test fakes satisfy it without a common base class.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import AccountPatch, FullRecord, MFADevice, PartialRecord, Source


@runtime_checkable
class DirectoryConnector(Protocol):
    """Uniform capability set over one directory backend.

    Design rules:
    - Every method is async because it performs network I/O.
    - Transport or auth failures raise; the engine never expects a
      sentinel error value.
    - `get_user_by_id` returns `None` for a miss, including identifiers
      that are not in the backend's native id shape.
    - Each connector applies its own request timeout.
    """

    source: Source

    async def search_users(self, query: str) -> list[PartialRecord]:
        ...

    async def get_user_by_id(self, user_id: str) -> FullRecord | None:
        ...

    async def get_mfa_devices(self, user_id: str) -> list[MFADevice]:
        ...

    async def update_user(self, user_id: str, patch: AccountPatch) -> bool:
        ...

    async def expire_password(self, user_id: str) -> bool:
        ...

    async def reset_mfa(self, user_id: str, factor_id: str | None = None) -> bool:
        ...

    async def suspend(self, user_id: str) -> bool:
        ...
