"""Account service: the only entry point outer layers should call.

The CLI (and any web layer) goes through `search`, `get_account` and
`perform_action`; nothing outside this package talks to a connector.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from core.config import AppSettings
from core.domain.models import (
    AccountPatch,
    Action,
    AggregatedSearchResult,
    MfaResetRequest,
    Source,
    UnifiedAccount,
)
from core.errors import AccountResolutionError, InvalidIdentifierError
from core.interfaces.connector import DirectoryConnector
from core.services.dedup import deduplicate, rank_results
from core.services.dispatcher import ActionDispatcher
from core.services.fanout import fan_out_search
from core.services.resolver import AccountResolver

logger = logging.getLogger("account_hub.service")


class AccountService:
    """Search, resolve and act on accounts across every configured directory.

    Stateless between calls: every result is recomputed from the backends.
    """

    def __init__(
        self,
        connectors: Mapping[Source, DirectoryConnector],
        settings: AppSettings | None = None,
    ) -> None:
        settings = settings or AppSettings()
        self._connectors = dict(connectors)
        self._resolver = AccountResolver(
            self._connectors,
            hydrate_limit=settings.hydrate_limit,
            correlate_hinted_lookups=settings.correlate_hinted_lookups,
        )
        self._dispatcher = ActionDispatcher(self._connectors)

    @classmethod
    def from_settings(cls, settings: AppSettings | None = None) -> "AccountService":
        """Build the service with every connector the settings configure."""

        from adapters.connectors import build_connectors  # noqa: PLC0415

        settings = settings or AppSettings()
        return cls(build_connectors(settings), settings)

    @property
    def sources(self) -> list[Source]:
        return list(self._connectors)

    async def search(self, query: str) -> list[AggregatedSearchResult]:
        """Person-level hits for `query` from every reachable directory."""

        query = (query or "").strip()
        if not query:
            return []
        return rank_results(deduplicate(await fan_out_search(self._connectors, query)))

    async def get_account(
        self,
        identifier: str,
        source_hint: Source | str | None = None,
    ) -> UnifiedAccount | None:
        """Unified view of one person, or `None` when nothing matches.

        Raises `InvalidIdentifierError` for blank identifiers and
        `AccountResolutionError` when resolution itself breaks.
        """

        hint = Source(source_hint) if source_hint else None
        try:
            return await self._resolver.resolve(identifier, hint)
        except InvalidIdentifierError:
            raise
        except Exception as exc:
            logger.exception("Account resolution failed for %r", identifier)
            raise AccountResolutionError("failed to resolve account") from exc

    async def perform_action(
        self,
        action: Action | str,
        source: Source | str,
        source_id: str,
        payload: AccountPatch | MfaResetRequest | Mapping[str, Any] | None = None,
    ) -> bool:
        return await self._dispatcher.dispatch(action, source, source_id, payload)

    async def aclose(self) -> None:
        """Release connector resources (e.g. a bound LDAP connection)."""

        for source, connector in self._connectors.items():
            close = getattr(connector, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                logger.warning(
                    "Failed to close %s connector: %s",
                    source.label(),
                    exc,
                    extra={"source": source.value},
                )
