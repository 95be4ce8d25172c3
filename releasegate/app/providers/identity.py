"""REST client for the Supabase Auth (GoTrue) identity service.

Only the three calls the gateway needs are implemented: resolve the user
behind an access token, look a user up with the service key, and refresh a
session. "Not found" style answers come back as None; transport failures and
unexpected statuses raise so callers can tell them apart.
"""

from typing import Any, Dict, Optional

import httpx

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger
from releasegate.app.exceptions import UpstreamServiceError, UpstreamTimeoutError
from releasegate.app.providers.base import UpstreamClient

logger = get_logger(__name__)

SERVICE_NAME = "identity"


class IdentityClient(UpstreamClient):
    """Supabase Auth client.

    ``api_key`` is the anonymous key sent as ``apikey`` on user-scoped
    calls; ``service_key`` authorizes the admin user lookup.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        service_key: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.service_key = service_key if service_key is not None else settings.supabase_service_key
        super().__init__(
            base_url=base_url if base_url is not None else settings.supabase_url,
            api_key=api_key if api_key is not None else settings.identity_api_key,
            http_client=http_client,
            timeout=timeout,
        )

    def _build_headers(self) -> Dict[str, str]:
        return {"apikey": self.api_key, "Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        headers: Dict[str, str],
        json: Optional[Dict[str, Any]] = None,
        absent_statuses: tuple[int, ...] = (),
    ) -> Optional[Dict[str, Any]]:
        url = self._get_endpoint_url(endpoint)
        try:
            async with self._client_context() as client:
                response = await client.request(
                    method, url, headers=headers, json=json, timeout=self.timeout
                )
        except httpx.TimeoutException as e:
            logger.warning(f"Identity service timed out on {endpoint}: {e}")
            raise UpstreamTimeoutError(SERVICE_NAME) from e
        except httpx.HTTPError as e:
            logger.warning(f"Identity service request to {endpoint} failed: {type(e).__name__}: {e}")
            raise UpstreamServiceError(SERVICE_NAME) from e

        if response.status_code in absent_statuses:
            return None
        if response.status_code >= 400:
            logger.warning(f"Identity service answered {response.status_code} on {endpoint}")
            raise UpstreamServiceError(SERVICE_NAME)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamServiceError(SERVICE_NAME) from e

    async def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Return the user owning ``access_token``, or None if it is rejected."""
        headers = {**self.headers, "Authorization": f"Bearer {access_token}"}
        return await self._request(
            "GET", "/auth/v1/user", headers=headers, absent_statuses=(401, 403)
        )

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Admin lookup of a user record including its metadata."""
        headers = {
            **self.headers,
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
        }
        return await self._request(
            "GET", f"/auth/v1/admin/users/{user_id}", headers=headers, absent_statuses=(404,)
        )

    async def refresh_session(self, refresh_token: str) -> Optional[Dict[str, Any]]:
        """Exchange a refresh token for a new session.

        Returns None when the refresh token is invalid or already used.
        """
        return await self._request(
            "POST",
            "/auth/v1/token?grant_type=refresh_token",
            headers=self.headers,
            json={"refresh_token": refresh_token},
            absent_statuses=(400, 401, 403),
        )
