# backend/croppredict/http.py
"""Shared async HTTP client for the market-price and weather tools."""
import logging
from typing import Optional

import httpx

log = logging.getLogger("croppredict.http")

# upstreams are small JSON/XML lookups; a slow one just triggers the tool fallback
TOOL_TIMEOUT = httpx.Timeout(15.0, connect=5.0)
USER_AGENT = "CropPredict/1.0"

client: Optional[httpx.AsyncClient] = None


async def init_http(transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
    global client
    client = httpx.AsyncClient(timeout=TOOL_TIMEOUT, transport=transport,
                               headers={"User-Agent": USER_AGENT})
    log.info("HTTP client initialized")


async def close_http() -> None:
    global client
    if client is not None:
        await client.aclose()
        client = None
        log.info("HTTP client closed")


async def ensure_http_client() -> httpx.AsyncClient:
    """The app-wide client; created on first use outside the app lifecycle."""
    if client is None:
        await init_http()
    return client
