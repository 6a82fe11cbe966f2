"""Directory connectors (one per backend).

Each module implements `core.interfaces.connector.DirectoryConnector`.
"""

from __future__ import annotations

from core.config import AppSettings
from core.domain.models import Source
from core.interfaces.connector import DirectoryConnector

from adapters.connectors.active_directory import ActiveDirectoryConnector
from adapters.connectors.jumpcloud import JumpCloudConnector
from adapters.connectors.okta import OktaConnector

__all__ = [
	"ActiveDirectoryConnector",
	"JumpCloudConnector",
	"OktaConnector",
	"build_connectors",
]


def build_connectors(settings: AppSettings | None = None) -> dict[Source, DirectoryConnector]:
    """Connectors for every configured backend, in lookup order.

    The order matters: when several sources match an identifier, the first
    one here becomes the unified account's primary source.
    """

    settings = settings or AppSettings()
    connectors: dict[Source, DirectoryConnector] = {}
    if settings.okta_configured:
        connectors[Source.OKTA] = OktaConnector(settings)
    if settings.jumpcloud_configured:
        connectors[Source.JUMPCLOUD] = JumpCloudConnector(settings)
    if settings.ad_configured:
        connectors[Source.ACTIVE_DIRECTORY] = ActiveDirectoryConnector(settings)
    return connectors
