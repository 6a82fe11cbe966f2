"""MFA factor aggregation across linked accounts."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from core.domain.models import FullRecord, MFADevice, Source
from core.interfaces.connector import DirectoryConnector

logger = logging.getLogger("account_hub.mfa")


async def collect_mfa_devices(
    connectors: Mapping[Source, DirectoryConnector],
    accounts: Iterable[FullRecord],
) -> list[MFADevice]:
    """Collect every enrolled factor, one account at a time, in account order.

    A failing account contributes no devices and the loop carries on.
    """

    devices: list[MFADevice] = []
    for account in accounts:
        connector = connectors.get(account.source)
        if connector is None:
            logger.warning(
                "No connector for %s, skipping MFA devices",
                account.source.label(),
                extra={"source": account.source.value},
            )
            continue
        try:
            found = await connector.get_mfa_devices(account.source_id)
        except Exception as exc:
            logger.warning(
                "Failed to get MFA devices for %s:%s: %s",
                account.source.value,
                account.source_id,
                exc,
                extra={"source": account.source.value, "identifier": account.source_id},
            )
            continue
        devices.extend(found)
    return devices


def apply_mfa_flags(accounts: Iterable[FullRecord], devices: Iterable[MFADevice]) -> list[FullRecord]:
    """Mark accounts whose source reported at least one factor as MFA-enabled."""

    device_sources = {device.source for device in devices}
    return [
        account.model_copy(update={"mfa_enabled": True})
        if account.source in device_sources
        else account
        for account in accounts
    ]
