from abc import ABC
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional

import httpx

from releasegate.app.core.http_client import build_timeout


class UpstreamClient(ABC):
    """Base class for REST clients of external services.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own per call if not provided.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize the client.

        Args:
            base_url: The API base URL
            api_key: Key used to authenticate against the service
            http_client: Optional shared HTTP client for connection pooling
            timeout: Upper bound for one call in seconds; defaults to
                UPSTREAM_TIMEOUT_SECONDS
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')  # Remove trailing slash
        self.api_key = api_key
        self.timeout = build_timeout(timeout)
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        """Build the default HTTP headers for API requests."""
        return {"Content-Type": "application/json"}

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        # Fallback outside the application lifespan (scripts, tests)
        return httpx.AsyncClient(timeout=self.timeout)

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Context manager for HTTP client lifecycle.

        If using shared client, just yield it.
        If using per-call client, close it afterwards.
        """
        client = self._get_client()
        is_shared = self._http_client is not None
        try:
            yield client
        finally:
            if not is_shared:
                await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        """Build full URL for an API endpoint (e.g. "/auth/v1/user")."""
        return f"{self.base_url}{endpoint}"
