"""Shared fixtures."""

from __future__ import annotations

import logging

import pytest

from core.domain.models import FullRecord, Source
from tests.fakes import make_user


@pytest.fixture(autouse=True)
def _reset_account_hub_logger():
    """CLI tests install handlers on the account_hub logger; undo that."""

    logger = logging.getLogger("account_hub")
    yield
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def jane_okta() -> FullRecord:
    return make_user(Source.OKTA, "00u1jane", email="jane@x.com", username="jane@x.com", display_name="Jane Doe")


@pytest.fixture
def jane_jumpcloud() -> FullRecord:
    return make_user(Source.JUMPCLOUD, "5f1c0e0b9d3e4a0012345678", email="jane@x.com", username="jdoe", display_name="Jane Doe")


@pytest.fixture
def jane_ad() -> FullRecord:
    return make_user(
        Source.ACTIVE_DIRECTORY,
        "CN=Jane Doe,OU=Staff,DC=corp,DC=example,DC=com",
        email="Jane@X.com",
        username="jdoe",
        display_name="Jane Doe",
    )
