"""
httpbuilder/utils/http_client.py

WHAT THIS FILE IS FOR
---------------------
This module owns the ONE physical `httpx.AsyncClient` that every
RequestBuilder dispatches through, so connections are pooled and reused
across requests.

It exists to:
- Build the client from Settings (limits, ceiling timeout, redirects,
  User-Agent)
- Hand out builders already bound to that client (`request(url)`)
- Close the client when the application shuts down

This client is intentionally kept *very thin*.

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- Per-request configuration (RequestBuilder)
- Retry logic
- Response interpretation

OWNERSHIP
---------
There is no module-level client. The application's composition root
constructs SharedHttpClient once and passes it (or its builders) to the
code that needs it:

    settings = get_settings()
    async with SharedHttpClient(settings) as http:
        resp = await http.request("https://example.org").send()

`httpx.AsyncClient` is safe for concurrent use by independent requests,
so many builders may send through it at the same time.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from httpbuilder.builder.request_builder import RequestBuilder, URLTypes
from httpbuilder.utils.settings import Settings

logger = structlog.get_logger(__name__)


class SharedHttpClient:
    """
    Process-wide holder of the shared httpx.AsyncClient.

    `transport` is passed straight to httpx (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.client_timeout_seconds),
            limits=httpx.Limits(
                max_connections=settings.max_connections,
                max_keepalive_connections=settings.max_keepalive_connections,
                keepalive_expiry=settings.keepalive_expiry_seconds,
            ),
            follow_redirects=settings.follow_redirects,
            headers={"User-Agent": settings.user_agent},
            transport=transport,
        )
        logger.info(
            "shared_http_client_created",
            max_connections=settings.max_connections,
            max_keepalive_connections=settings.max_keepalive_connections,
            client_timeout_seconds=settings.client_timeout_seconds,
            follow_redirects=settings.follow_redirects,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def request(self, url: URLTypes) -> RequestBuilder:
        """New builder bound to the shared client, using the configured default timeout."""
        return RequestBuilder.create(
            url,
            client=self._client,
            timeout_ms=self.settings.default_timeout_ms,
        )

    async def aclose(self) -> None:
        if self._client.is_closed:
            return
        await self._client.aclose()
        logger.info("shared_http_client_closed")

    async def __aenter__(self) -> "SharedHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
