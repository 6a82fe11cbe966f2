"""Tests for MFA device aggregation."""

from __future__ import annotations

import asyncio

import pytest

from core.domain.models import MFADevice, Source
from core.services.mfa import apply_mfa_flags, collect_mfa_devices
from tests.fakes import FakeConnector, make_user


def _device(device_id: str, source: Source) -> MFADevice:
    return MFADevice(id=device_id, type="totp", name="Authenticator App", source=source)


@pytest.mark.asyncio
async def test_devices_are_collected_in_account_order():
    okta_user = make_user(Source.OKTA, "00u1", email="jane@x.com")
    jc_user = make_user(Source.JUMPCLOUD, "5f1", email="jane@x.com")
    connectors = {
        Source.OKTA: FakeConnector(Source.OKTA, devices={"00u1": [_device("f1", Source.OKTA), _device("f2", Source.OKTA)]}),
        Source.JUMPCLOUD: FakeConnector(Source.JUMPCLOUD, devices={"5f1": [_device("5f1-totp", Source.JUMPCLOUD)]}),
    }

    devices = await collect_mfa_devices(connectors, [jc_user, okta_user])

    assert [d.id for d in devices] == ["5f1-totp", "f1", "f2"]


@pytest.mark.asyncio
async def test_a_failing_source_contributes_nothing(caplog):
    accounts = [make_user(Source.OKTA, "00u1"), make_user(Source.JUMPCLOUD, "5f1")]
    connectors = {
        Source.OKTA: FakeConnector(Source.OKTA, fail_mfa=True),
        Source.JUMPCLOUD: FakeConnector(Source.JUMPCLOUD, devices={"5f1": [_device("5f1-totp", Source.JUMPCLOUD)]}),
    }

    devices = await collect_mfa_devices(connectors, accounts)

    assert [d.id for d in devices] == ["5f1-totp"]
    assert "Failed to get MFA devices for okta:00u1" in caplog.text


@pytest.mark.asyncio
async def test_account_without_connector_is_skipped():
    devices = await collect_mfa_devices({}, [make_user(Source.ACTIVE_DIRECTORY, "CN=a,DC=x")])

    assert devices == []


@pytest.mark.asyncio
async def test_lookups_run_one_at_a_time():
    in_flight = 0
    peak = 0

    class Slow(FakeConnector):
        async def get_mfa_devices(self, user_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1
            return []

    connectors = {Source.OKTA: Slow(Source.OKTA), Source.JUMPCLOUD: Slow(Source.JUMPCLOUD)}
    accounts = [make_user(Source.OKTA, "00u1"), make_user(Source.JUMPCLOUD, "5f1")]

    await collect_mfa_devices(connectors, accounts)

    assert peak == 1


def test_apply_mfa_flags_marks_only_sources_with_devices():
    accounts = [make_user(Source.OKTA, "00u1"), make_user(Source.JUMPCLOUD, "5f1")]

    flagged = apply_mfa_flags(accounts, [_device("f1", Source.OKTA)])

    assert [a.mfa_enabled for a in flagged] == [True, False]
    assert accounts[0].mfa_enabled is False
