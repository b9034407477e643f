"""
HTTP client utilities with sane defaults for upstream Harvest calls.
"""
from __future__ import annotations
import httpx

from portal.config import settings


def create_http_client(
    timeout: float | None = None,
    user_agent: str | None = None,
    **kwargs
) -> httpx.AsyncClient:
    """
    Create a configured async HTTP client with:
    - Sane timeout defaults (HARVEST_TIMEOUT_SECONDS, 10s connect)
    - Harvest-compliant User-Agent
    - No transport retries: failures surface once to the caller
    """
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", user_agent or settings.HARVEST_USER_AGENT)

    timeout_config = httpx.Timeout(timeout or settings.HARVEST_TIMEOUT_SECONDS, connect=10.0)

    transport = kwargs.pop("transport", None) or httpx.AsyncHTTPTransport(retries=0)

    return httpx.AsyncClient(
        timeout=timeout_config,
        headers=headers,
        transport=transport,
        follow_redirects=False,
        **kwargs
    )
