"""Domain models (Pydantic v2).

Attributes are snake_case; serialized with `by_alias=True` they use the
camelCase wire names (`sourceId`, `displayName`, ...). Every value is
request-scoped; nothing here is cached or persisted.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class Source(str, Enum):
    """The three directory backends an identity can live in."""

    JUMPCLOUD = "jumpcloud"
    OKTA = "okta"
    ACTIVE_DIRECTORY = "active-directory"

    def label(self) -> str:
        """Human readable label for tables and logs."""

        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    Source.JUMPCLOUD: "JumpCloud",
    Source.OKTA: "Okta",
    Source.ACTIVE_DIRECTORY: "Active Directory",
}


class RecordType(str, Enum):
    USER = "user"
    GROUP = "group"


class MFAStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class Action(str, Enum):
    """Administrative write operations routed to a single backend."""

    UPDATE = "update"
    EXPIRE_PASSWORD = "expirePassword"
    RESET_MFA = "resetMFA"
    SUSPEND = "suspend"


class _DomainModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialRecord(_DomainModel):
    """A single search hit returned by one connector.

    `attributes` is the backend's raw payload. The engine never reads it;
    it is carried through for debugging and for the connector that made it.
    """

    source: Source = Field(..., description="Backend that produced the hit.")
    type: RecordType = Field(default=RecordType.USER, description="Kind of directory object.")
    id: str = Field(..., min_length=1, description="Native id in the source (opaque id or DN).")
    display_name: str = Field(default="", description="Name shown for the hit.")
    email: str | None = Field(default=None, description="Email address, if the source has one.")
    username: str | None = Field(default=None, description="Login/username, if the source has one.")
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque per-source payload, passed through unmodified.",
    )


SearchResult = PartialRecord


class FullRecord(_DomainModel):
    """The complete native record for one (source, id) pair.

    Fields are never merged across sources: two sources describing the same
    person yield two `FullRecord`s side by side.
    """

    source: Source = Field(..., description="Backend owning the record.")
    source_id: str = Field(..., min_length=1, description="Native id used for writes.")
    username: str = Field(default="", description="Login/username in the source.")
    email: str = Field(default="", description="Primary email in the source.")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    display_name: str = Field(default="")
    enabled: bool = Field(default=True, description="Whether the account can sign in.")
    locked: bool = Field(default=False, description="Whether the account is locked out/suspended.")
    password_last_set: datetime | None = Field(default=None)
    password_expiry_date: datetime | None = Field(default=None)
    last_login: datetime | None = Field(default=None)
    mfa_enabled: bool = Field(default=False, description="MFA configured for the account.")
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque per-source payload, passed through unmodified.",
    )


AccountSource = FullRecord


class MFADevice(_DomainModel):
    """An enrolled MFA factor, tagged with the source it lives in."""

    id: str = Field(..., min_length=1)
    type: str = Field(..., description="Backend factor type, e.g. 'push' or 'TOTP'.")
    name: str = Field(..., description="Human readable factor name.")
    status: MFAStatus = Field(default=MFAStatus.ACTIVE)
    enrolled_at: datetime | None = Field(default=None)
    last_used: datetime | None = Field(default=None)
    source: Source = Field(...)


class AggregatedSearchResult(_DomainModel):
    """A person-level search hit grouping matches from several sources.

    `key` is the deduplication identity and doubles as the identifier a
    caller passes back to open the unified account view.
    """

    key: str = Field(..., min_length=1, description="lower(email) | lower(username) | raw id.")
    display_name: str = Field(default="")
    email: str | None = Field(default=None)
    username: str | None = Field(default=None)
    matches: list[PartialRecord] = Field(
        default_factory=list,
        description="Every search hit sharing `key`, in arrival order.",
    )
    sources: list[Source] = Field(
        default_factory=list,
        description="Distinct contributing sources, in order of first appearance.",
    )


class UnifiedAccount(_DomainModel):
    """Every linked per-source record for one person, plus their MFA factors."""

    primary_source: Source = Field(..., description="Source of the record that satisfied the lookup.")
    accounts: list[FullRecord] = Field(
        default_factory=list,
        description="At most one record per source.",
    )
    mfa_devices: list[MFADevice] = Field(default_factory=list)


class AccountPatch(_DomainModel):
    """Fields an `update` action may change; unset fields are left alone."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    enabled: bool | None = None
    locked: bool | None = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually set."""

        return self.model_dump(exclude_none=True)


class MfaResetRequest(_DomainModel):
    """Payload for `resetMFA`: a single factor, or every factor when omitted."""

    factor_id: str | None = None
