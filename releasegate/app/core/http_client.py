"""Shared HTTP client management for connection pooling.

This module provides a singleton-like HTTP client that is initialized
on application startup and shared by the identity, GitHub and OpenAI
clients for connection reuse.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from releasegate.app.core.config import settings


# Shared HTTP client for connection pooling
_shared_http_client: httpx.AsyncClient | None = None


def build_timeout(total: float | None = None) -> httpx.Timeout:
    """Build the granular timeout used for every upstream call.

    The read timeout is the overall upstream bound; connect, write and
    pool waits are capped by it as well.
    """
    bound = total if total is not None else settings.upstream_timeout_seconds
    return httpx.Timeout(
        connect=min(settings.httpx_connect_timeout, bound),
        read=bound,
        write=min(settings.httpx_write_timeout, bound),
        pool=min(settings.httpx_pool_timeout, bound),
    )


def get_optional_http_client() -> httpx.AsyncClient | None:
    """Return the shared client, or None outside the application lifespan."""
    return _shared_http_client


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client():
                yield
    """
    global _shared_http_client

    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )

    _shared_http_client = httpx.AsyncClient(timeout=build_timeout(), limits=limits)

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
