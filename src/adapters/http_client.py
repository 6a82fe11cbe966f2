"""httpx wrapper shared by the REST directory connectors.

Tests pass an `httpx.MockTransport` through `transport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    base_url: str = "",
    timeout_seconds: float = 10.0,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with sane defaults.

    Every connector call gets its own bounded timeout; a slow backend only
    delays its own contribution.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )
