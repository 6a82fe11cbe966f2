"""Tests for the all-settled fan-out."""

from __future__ import annotations

import asyncio
import logging

import pytest

from core.domain.models import Source
from core.errors import FanOutError
from core.services.fanout import fan_out_search, settle_all
from tests.fakes import BrokenConnector, FakeConnector, make_user


async def _value(value):
    return value


async def _boom(message):
    raise RuntimeError(message)


@pytest.mark.asyncio
async def test_settle_all_keeps_call_order_and_records_errors():
    outcomes = await settle_all(
        [
            (Source.OKTA, lambda: _value([1])),
            (Source.JUMPCLOUD, lambda: _boom("jumpcloud down")),
            (Source.ACTIVE_DIRECTORY, lambda: _value([3])),
        ]
    )

    assert [o.source for o in outcomes] == [Source.OKTA, Source.JUMPCLOUD, Source.ACTIVE_DIRECTORY]
    assert [o.ok for o in outcomes] == [True, False, True]
    assert outcomes[0].value == [1]
    assert str(outcomes[1].error) == "jumpcloud down"


@pytest.mark.asyncio
async def test_settle_all_records_a_call_that_fails_to_start():
    def not_wired():
        raise TypeError("not wired")

    outcomes = await settle_all([(Source.OKTA, not_wired), (Source.JUMPCLOUD, lambda: _value("ok"))])

    assert isinstance(outcomes[0].error, TypeError)
    assert outcomes[1].value == "ok"


@pytest.mark.asyncio
async def test_settle_all_raises_when_no_call_could_start():
    def not_wired():
        raise TypeError("not wired")

    with pytest.raises(FanOutError):
        await settle_all([(Source.OKTA, not_wired), (Source.JUMPCLOUD, not_wired)])


@pytest.mark.asyncio
async def test_settle_all_with_no_calls():
    assert await settle_all([]) == []


@pytest.mark.asyncio
async def test_fan_out_search_survives_one_failing_source(caplog):
    okta = FakeConnector(Source.OKTA, [make_user(Source.OKTA, "00u1", email="jane@x.com")])
    jumpcloud = FakeConnector(Source.JUMPCLOUD, fail_search=True)
    ad = FakeConnector(Source.ACTIVE_DIRECTORY, [make_user(Source.ACTIVE_DIRECTORY, "CN=Jane,DC=x", email="jane@x.com")])

    with caplog.at_level(logging.WARNING, logger="account_hub.fanout"):
        records = await fan_out_search(
            {Source.OKTA: okta, Source.JUMPCLOUD: jumpcloud, Source.ACTIVE_DIRECTORY: ad},
            "jane",
        )

    assert [(r.source, r.id) for r in records] == [
        (Source.OKTA, "00u1"),
        (Source.ACTIVE_DIRECTORY, "CN=Jane,DC=x"),
    ]
    assert "JumpCloud search failed" in caplog.text


@pytest.mark.asyncio
async def test_fan_out_search_keeps_per_source_order():
    okta = FakeConnector(
        Source.OKTA,
        [
            make_user(Source.OKTA, "b", email="jane.b@x.com"),
            make_user(Source.OKTA, "a", email="jane.a@x.com"),
        ],
    )

    records = await fan_out_search({Source.OKTA: okta}, "jane")

    assert [r.id for r in records] == ["b", "a"]


@pytest.mark.asyncio
async def test_fan_out_search_raises_when_every_connector_is_broken():
    connectors = {
        Source.OKTA: BrokenConnector(Source.OKTA),
        Source.JUMPCLOUD: BrokenConnector(Source.JUMPCLOUD),
    }

    with pytest.raises(FanOutError):
        await fan_out_search(connectors, "jane")


@pytest.mark.asyncio
async def test_fan_out_search_runs_sources_concurrently():
    released = asyncio.Event()

    class Waiting(FakeConnector):
        async def search_users(self, query):
            await released.wait()
            return await super().search_users(query)

    class Releasing(FakeConnector):
        async def search_users(self, query):
            released.set()
            return await super().search_users(query)

    connectors = {
        Source.OKTA: Waiting(Source.OKTA, [make_user(Source.OKTA, "00u1", email="jane@x.com")]),
        Source.JUMPCLOUD: Releasing(Source.JUMPCLOUD),
    }

    records = await asyncio.wait_for(fan_out_search(connectors, "jane"), timeout=2)

    assert [r.id for r in records] == ["00u1"]
