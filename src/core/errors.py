"""Exceptions raised by the aggregation engine and its connectors.

Expected absence (no match, unsupported action, unreachable backend) is
never an exception: it comes back as `None`, an empty list or `False`.
These types cover the remaining hard failures.
"""

from __future__ import annotations


class AccountHubError(Exception):
    """Base class for every error raised by account-hub."""


class FanOutError(AccountHubError):
    """Every branch of a fan-out failed while being issued."""


class InvalidIdentifierError(AccountHubError, ValueError):
    """An account identifier that cannot be looked up at all (e.g. blank)."""


class AccountResolutionError(AccountHubError):
    """Resolving a unified account failed for a reason other than a connector."""


class DirectoryOperationError(AccountHubError):
    """A directory backend rejected a read or write operation."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
