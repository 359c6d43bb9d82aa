from __future__ import annotations

import httpx

from .settings import settings

_client: httpx.AsyncClient | None = None


def get_shared_http_client() -> httpx.AsyncClient:
    """
    Return the process-wide upstream client.

    Streaming bodies outlive the request handler (the usage consumer keeps
    reading after the response has been returned), so the client cannot be
    scoped to a single request.
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout),
            trust_env=True,
        )
    return _client


async def close_shared_http_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None


__all__ = ["close_shared_http_client", "get_shared_http_client"]
