"""Routing of administrative actions to the one backend that owns a record.

The dispatcher is a pure routing table: it never aggregates, never
retries and never touches a second source. Every outcome a caller can
act on comes back as a bool.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from core.domain.models import AccountPatch, Action, MfaResetRequest, Source
from core.interfaces.connector import DirectoryConnector

logger = logging.getLogger("account_hub.dispatcher")

# Capability gaps:
# - Active Directory has no MFA of its own (it is delegated to an external
#   provider), so resetMFA cannot be performed there.
CAPABILITIES: dict[Source, frozenset[Action]] = {
    Source.OKTA: frozenset(Action),
    Source.JUMPCLOUD: frozenset(Action),
    Source.ACTIVE_DIRECTORY: frozenset({Action.UPDATE, Action.EXPIRE_PASSWORD, Action.SUSPEND}),
}


def supports(source: Source | str, action: Action | str) -> bool:
    return Action(action) in CAPABILITIES.get(Source(source), frozenset())


class ActionDispatcher:
    def __init__(self, connectors: Mapping[Source, DirectoryConnector]) -> None:
        self._connectors = connectors

    async def dispatch(
        self,
        action: Action | str,
        source: Source | str,
        source_id: str,
        payload: AccountPatch | MfaResetRequest | Mapping[str, Any] | None = None,
    ) -> bool:
        """Run `action` against `source_id` in `source`.

        Returns `False` for unsupported actions, missing connectors and
        connector failures. Unknown actions/sources and malformed payloads
        are caller bugs and raise.
        """

        action = Action(action)
        source = Source(source)
        extra = {"source": source.value, "action": action.value, "identifier": source_id}

        if not supports(source, action):
            logger.info("%s does not support %s", source.label(), action.value, extra=extra)
            return False

        connector = self._connectors.get(source)
        if connector is None:
            logger.warning("No %s connector configured", source.label(), extra=extra)
            return False

        if action is Action.UPDATE:
            if payload is None:
                raise ValueError("update requires a payload")
            patch = AccountPatch.model_validate(payload, from_attributes=True)
        elif action is Action.RESET_MFA:
            reset = MfaResetRequest.model_validate(payload or {}, from_attributes=True)

        try:
            if action is Action.UPDATE:
                ok = await connector.update_user(source_id, patch)
            elif action is Action.EXPIRE_PASSWORD:
                ok = await connector.expire_password(source_id)
            elif action is Action.RESET_MFA:
                ok = await connector.reset_mfa(source_id, reset.factor_id)
            else:
                ok = await connector.suspend(source_id)
        except Exception:
            logger.exception("%s failed on %s:%s", action.value, source.value, source_id, extra=extra)
            return False

        if ok:
            logger.info("%s succeeded on %s:%s", action.value, source.value, source_id, extra=extra)
        else:
            logger.warning("%s was refused by %s:%s", action.value, source.value, source_id, extra=extra)
        return bool(ok)
