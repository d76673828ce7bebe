"""
Shared httpx client handling for provider adapters.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from isp_finder import __version__
from isp_finder.config import settings

USER_AGENT = f"isp-finder/{__version__}"


@asynccontextmanager
async def provider_client(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield the caller's client, or a short-lived one bounded by HTTP_CLIENT_TIMEOUT.

    Injected clients are left open for their owner to close.
    """
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=settings.HTTP_CLIENT_TIMEOUT,
        follow_redirects=True,
    ) as owned:
        yield owned
