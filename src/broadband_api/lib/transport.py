"""Shared outbound HTTP client handling for geocoders, the block resolver, and provider sources.

Components accept an optional long-lived ``httpx.AsyncClient`` (constructed
once at process start, or a mock-transport client in tests).  When none is
given, a short-lived client is opened per request.  Every request also
passes an explicit per-call timeout, so injected clients stay bounded.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

USER_AGENT = "broadband-api/1.0"


@asynccontextmanager
async def http_client(client: httpx.AsyncClient | None, timeout: float) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a temporary one closed on exit.

    Args:
        client: Shared client, or None to open a temporary one.
        timeout: Timeout in seconds for the temporary client.
    """
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, headers={"User-Agent": USER_AGENT}) as owned:
        yield owned
