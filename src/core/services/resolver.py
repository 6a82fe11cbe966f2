"""Unified account resolution.

Given one identifier, find the record it names, then look for the same
person in the other directories and assemble a `UnifiedAccount`:

1. Native lookup: the hinted source only, or every source concurrently.
   Each connector treats ids that are not in its own shape as a miss.
2. Search hydration: with no hint and no native hit, the identifier is
   used as a search term and the matching person group is fetched in full.
3. Correlation: one pass, seeded only from the first account's email,
   over the sources that are still missing. Newly found accounts are not
   used as seeds again, which keeps the fan-out bounded.
4. MFA devices are collected for every linked account.

Connector failures at any step are logged and the resolver carries on
with whatever it has gathered.

Why correlate on email only:
- It is the one attribute all three directories hold in a comparable form.
- Usernames collide across directories (see `core.services.dedup`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from core.domain.models import FullRecord, PartialRecord, Source, UnifiedAccount
from core.errors import InvalidIdentifierError
from core.interfaces.connector import DirectoryConnector
from core.services.dedup import deduplicate, normalize_value
from core.services.fanout import connector_call, fan_out_search, settle_all
from core.services.mfa import apply_mfa_flags, collect_mfa_devices

logger = logging.getLogger("account_hub.resolver")

_DIRECT_PREFIX = "i:"


@dataclass(frozen=True)
class DecodedIdentifier:
    term: str
    source: Source | None = None


def decode_identifier(raw: str) -> DecodedIdentifier:
    """Split `i:<source>:<native-id>` identifiers into a direct lookup.

    Anything else (an email, a username, an opaque id, a DN) is returned
    trimmed as a plain lookup term.
    """

    s = (raw or "").strip()
    if s.startswith(_DIRECT_PREFIX):
        prefix, sep, rest = s[len(_DIRECT_PREFIX):].partition(":")
        try:
            source = Source(prefix)
        except ValueError:
            return DecodedIdentifier(term=s)
        if sep and rest.strip():
            return DecodedIdentifier(term=rest.strip(), source=source)
    return DecodedIdentifier(term=s)


def one_per_source(accounts: Iterable[FullRecord]) -> list[FullRecord]:
    """Keep the first record of each source, preserving order."""

    seen: set[Source] = set()
    out: list[FullRecord] = []
    for account in accounts:
        if account.source in seen:
            continue
        seen.add(account.source)
        out.append(account)
    return out


class AccountResolver:
    def __init__(
        self,
        connectors: Mapping[Source, DirectoryConnector],
        *,
        hydrate_limit: int = 10,
        correlate_hinted_lookups: bool = True,
    ) -> None:
        self._connectors = connectors
        self._hydrate_limit = hydrate_limit
        self._correlate_hinted_lookups = correlate_hinted_lookups

    async def resolve(
        self,
        identifier: str,
        source_hint: Source | str | None = None,
    ) -> UnifiedAccount | None:
        decoded = decode_identifier(identifier)
        if not decoded.term:
            raise InvalidIdentifierError("account identifier must not be blank")
        hint = Source(source_hint) if source_hint else None

        if hint is not None:
            accounts = await self._lookup_one(hint, decoded.term)
        elif decoded.source is not None:
            accounts = await self._lookup_one(decoded.source, decoded.term)
        else:
            accounts = await self._lookup_everywhere(decoded.term)
            if not accounts:
                accounts = await self._hydrate_from_search(decoded.term)

        if not accounts:
            logger.info("No account matched %r", decoded.term, extra={"identifier": decoded.term})
            return None

        primary_source = accounts[0].source
        if hint is None or self._correlate_hinted_lookups:
            accounts = [*accounts, *await self._find_related(accounts)]

        accounts = one_per_source(accounts)
        devices = await collect_mfa_devices(self._connectors, accounts)
        return UnifiedAccount(
            primary_source=primary_source,
            accounts=apply_mfa_flags(accounts, devices),
            mfa_devices=devices,
        )

    async def _lookup_one(self, source: Source, user_id: str) -> list[FullRecord]:
        connector = self._connectors.get(source)
        if connector is None:
            logger.warning("No %s connector configured", source.label(), extra={"source": source.value})
            return []
        try:
            record = await connector.get_user_by_id(user_id)
        except Exception as exc:
            logger.warning(
                "%s lookup failed for %r: %s",
                source.label(),
                user_id,
                exc,
                extra={"source": source.value, "identifier": user_id},
            )
            return []
        return [record] if record is not None else []

    async def _lookup_everywhere(self, user_id: str) -> list[FullRecord]:
        return await self._fetch([(source, user_id) for source in self._connectors])

    async def _hydrate_from_search(self, term: str) -> list[FullRecord]:
        groups = deduplicate(await fan_out_search(self._connectors, term))
        if not groups:
            return []

        wanted = term.lower()
        group = next((g for g in groups if g.key == wanted), groups[0])
        hits = _first_hit_per_source(group.matches)[: self._hydrate_limit]
        logger.debug(
            "Hydrating %d search hits for %r",
            len(hits),
            term,
            extra={"identifier": term, "records": len(hits)},
        )
        return await self._fetch([(hit.source, hit.id) for hit in hits])

    async def _find_related(self, accounts: list[FullRecord]) -> list[FullRecord]:
        anchor = normalize_value(accounts[0].email)
        if not anchor:
            return []
        anchor = anchor.lower()

        present = {account.source for account in accounts}
        missing = [
            (source, connector)
            for source, connector in self._connectors.items()
            if source not in present
        ]
        if not missing:
            return []

        searches = await settle_all(
            [(source, connector_call(connector, "search_users", anchor)) for source, connector in missing]
        )
        targets: list[tuple[Source, str]] = []
        for outcome in searches:
            if not outcome.ok:
                logger.warning(
                    "Related account search failed for %s: %s",
                    outcome.source.label(),
                    outcome.error,
                    extra={"source": outcome.source.value, "identifier": anchor},
                )
                continue
            hit = next(
                (r for r in outcome.value or [] if (normalize_value(r.email) or "").lower() == anchor),
                None,
            )
            if hit is not None:
                targets.append((outcome.source, hit.id))

        return await self._fetch(targets)

    async def _fetch(self, targets: list[tuple[Source, str]]) -> list[FullRecord]:
        """Native lookups for (source, id) pairs, concurrently, misses dropped."""

        calls = [
            (source, connector_call(self._connectors[source], "get_user_by_id", user_id))
            for source, user_id in targets
            if source in self._connectors
        ]
        records: list[FullRecord] = []
        for outcome in await settle_all(calls):
            if not outcome.ok:
                logger.warning(
                    "%s lookup failed: %s",
                    outcome.source.label(),
                    outcome.error,
                    extra={"source": outcome.source.value},
                )
                continue
            if outcome.value is not None:
                records.append(outcome.value)
        return records


def _first_hit_per_source(matches: Iterable[PartialRecord]) -> list[PartialRecord]:
    seen: set[Source] = set()
    hits: list[PartialRecord] = []
    for match in matches:
        if match.source in seen:
            continue
        seen.add(match.source)
        hits.append(match)
    return hits
