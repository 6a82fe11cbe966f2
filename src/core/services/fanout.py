"""All-settled fan-out across directory connectors.

Partial failure is the normal case here: one backend being slow, down or
unauthorized must never hide the results of the others. Every branch is
awaited independently and its outcome recorded, success or error.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Mapping, Sequence, TypeVar

from core.domain.models import PartialRecord, Source
from core.errors import FanOutError
from core.interfaces.connector import DirectoryConnector

logger = logging.getLogger("account_hub.fanout")

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one fan-out branch."""

    source: Source
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    calls: Sequence[tuple[Source, Callable[[], Awaitable[T]]]],
) -> list[Settled[T]]:
    """Run every call concurrently and wait for all of them to settle.

    Results come back in call order. A branch that raises is recorded, not
    propagated. The only hard failure is every branch raising while its
    request is being issued, which means the calls themselves are broken.
    """

    issued: list[tuple[Source, Awaitable[T]]] = []
    outcomes: dict[int, Settled[T]] = {}
    for index, (source, call) in enumerate(calls):
        try:
            issued.append((source, call()))
        except Exception as exc:
            outcomes[index] = Settled(source=source, error=exc)

    if calls and not issued:
        first = outcomes[0].error
        raise FanOutError(f"all {len(calls)} fan-out calls failed to start") from first

    gathered = await asyncio.gather(*(aw for _, aw in issued), return_exceptions=True)

    pending = iter(zip(issued, gathered))
    settled: list[Settled[T]] = []
    for index in range(len(calls)):
        if index in outcomes:
            settled.append(outcomes[index])
            continue
        (source, _), result = next(pending)
        if isinstance(result, BaseException):
            settled.append(Settled(source=source, error=result))
        else:
            settled.append(Settled(source=source, value=result))
    return settled


async def fan_out_search(
    connectors: Mapping[Source, DirectoryConnector],
    query: str,
) -> list[PartialRecord]:
    """Search every connector at once and concatenate the successful results.

    Sources appear in connector order; each source keeps its own order.
    """

    calls = [
        (source, connector_call(connector, "search_users", query))
        for source, connector in connectors.items()
    ]
    records: list[PartialRecord] = []
    for outcome in await settle_all(calls):
        if not outcome.ok:
            logger.warning(
                "%s search failed: %s",
                outcome.source.label(),
                outcome.error,
                extra={"source": outcome.source.value},
            )
            continue
        records.extend(outcome.value or [])
    logger.debug("Fan-out search returned %d records", len(records), extra={"records": len(records)})
    return records


def connector_call(connector: DirectoryConnector, method: str, *args: object) -> Callable[[], Awaitable]:
    """Defer both the method lookup and the call until the fan-out issues it."""

    return lambda: getattr(connector, method)(*args)
