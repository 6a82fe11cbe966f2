"""Person-level grouping of raw search hits.

No backend shares a primary key with the others, so hits are linked by a
heuristic key: email first, then username, then the native id.

Known limitation: two different people who share a bare username in two
directories, with no email on either side, end up in the same group. There
is no other field the sources agree on to tell them apart.
"""

from __future__ import annotations

from typing import Iterable

from core.domain.models import AggregatedSearchResult, PartialRecord


def normalize_value(value: str | None) -> str | None:
    """Trimmed value, or `None` when nothing is left."""

    v = (value or "").strip()
    return v or None


def person_key(record: PartialRecord) -> str:
    """Deduplication key: lower(email) | lower(username) | raw id."""

    email = normalize_value(record.email)
    if email:
        return email.lower()
    username = normalize_value(record.username)
    if username:
        return username.lower()
    return record.id


def deduplicate(records: Iterable[PartialRecord]) -> list[AggregatedSearchResult]:
    """Group records by `person_key`, in input order.

    The first record seen for a key decides the aggregate's display name,
    email and username. Later records only add to `matches` and `sources`.
    """

    groups: dict[str, AggregatedSearchResult] = {}
    for record in records:
        key = person_key(record)
        existing = groups.get(key)
        if existing is None:
            groups[key] = AggregatedSearchResult(
                key=key,
                display_name=record.display_name,
                email=normalize_value(record.email),
                username=normalize_value(record.username),
                matches=[record],
                sources=[record.source],
            )
            continue

        existing.matches.append(record)
        if record.source not in existing.sources:
            existing.sources.append(record.source)

    return list(groups.values())


def flatten(results: Iterable[AggregatedSearchResult]) -> list[PartialRecord]:
    """Inverse of grouping: every match of every aggregate, in order."""

    return [match for result in results for match in result.matches]


def rank_results(results: Iterable[AggregatedSearchResult]) -> list[AggregatedSearchResult]:
    """Stable ordering for display: name, then email, then username."""

    return sorted(
        results,
        key=lambda r: (
            (r.display_name or "").lower(),
            (r.email or "").lower(),
            (r.username or "").lower(),
        ),
    )
