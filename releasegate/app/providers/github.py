"""GitHub REST client acting on behalf of a user.

The delegated token is passed per call; the client itself holds no
credential. GET requests are retried on 5xx, network errors and timeouts.
Failures are mapped onto gateway exceptions so handlers never see raw
httpx errors or GitHub error bodies.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger
from releasegate.app.exceptions import (
    UpstreamAuthError,
    UpstreamNotFoundError,
    UpstreamRateLimitError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)
from releasegate.app.providers.base import UpstreamClient
from releasegate.app.providers.retry import RetryPolicy, with_retry

logger = get_logger(__name__)

SERVICE_NAME = "github"
GITHUB_API_VERSION = "2022-11-28"


def _segment(value: str) -> str:
    """Percent-encode one path parameter, slashes and bare dots included."""
    if value in (".", ".."):
        return value.replace(".", "%2E")
    return quote(value, safe="")


@dataclass
class GitHubResponse:
    """Decoded GitHub answer plus the rate-limit headers callers relay."""
    data: Any
    status_code: int = 200
    rate_limit_remaining: Optional[str] = None
    rate_limit_reset: Optional[str] = None

    def rate_limit_headers(self) -> Dict[str, Optional[str]]:
        return {
            "x-ratelimit-remaining": self.rate_limit_remaining,
            "x-ratelimit-reset": self.rate_limit_reset,
        }


class GitHubClient(UpstreamClient):
    """Client for the GitHub REST endpoints used by the gateway."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(
            base_url=base_url if base_url is not None else settings.github_api_url,
            http_client=http_client,
            timeout=timeout,
        )
        self.retry_policy = retry_policy or RetryPolicy(max_retries=settings.github_max_retries)

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "User-Agent": "releasegate",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _get(
        self, token: str, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> httpx.Response:
        headers = {**self.headers, "Authorization": f"Bearer {token}"}
        async with self._client_context() as client:
            response = await client.get(
                self._get_endpoint_url(endpoint),
                headers=headers,
                params=dict(params or {}),
                timeout=self.timeout,
            )
        if response.status_code >= 500:
            response.raise_for_status()
        return response

    async def request(
        self, token: str, endpoint: str, params: Optional[Mapping[str, Any]] = None
    ) -> GitHubResponse:
        """GET ``endpoint`` with ``token`` and decode the JSON answer.

        Raises:
            UpstreamNotFoundError: GitHub answered 404
            UpstreamAuthError: GitHub rejected the token (401)
            UpstreamRateLimitError: GitHub's own rate limit is exhausted
            UpstreamTimeoutError: the call did not finish in time
            UpstreamServiceError: any other failure
        """
        try:
            response = await with_retry(self.retry_policy)(self._get)(token, endpoint, params)
        except httpx.TimeoutException as e:
            logger.warning(f"GitHub request to {endpoint} timed out: {e}")
            raise UpstreamTimeoutError(SERVICE_NAME) from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"GitHub answered {e.response.status_code} on {endpoint}")
            raise UpstreamServiceError(SERVICE_NAME) from e
        except httpx.HTTPError as e:
            logger.warning(f"GitHub request to {endpoint} failed: {type(e).__name__}: {e}")
            raise UpstreamServiceError(SERVICE_NAME) from e

        remaining = response.headers.get("x-ratelimit-remaining")
        reset = response.headers.get("x-ratelimit-reset")
        status = response.status_code

        if status == 404:
            raise UpstreamNotFoundError()
        if status == 401:
            raise UpstreamAuthError()
        if status == 429 or (
            status == 403 and (remaining == "0" or "retry-after" in response.headers)
        ):
            raise UpstreamRateLimitError(SERVICE_NAME)
        if status >= 400:
            logger.warning(f"GitHub answered {status} on {endpoint}")
            raise UpstreamServiceError(SERVICE_NAME)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamServiceError(SERVICE_NAME) from e

        return GitHubResponse(
            data=data,
            status_code=status,
            rate_limit_remaining=remaining,
            rate_limit_reset=reset,
        )

    def _repo_path(self, owner: str, repo: str) -> str:
        return f"/repos/{_segment(owner)}/{_segment(repo)}"

    async def list_tags(
        self, token: str, owner: str, repo: str, **pagination: int
    ) -> GitHubResponse:
        return await self.request(token, f"{self._repo_path(owner, repo)}/tags", pagination)

    async def compare_commits(
        self, token: str, owner: str, repo: str, base: str, head: str
    ) -> GitHubResponse:
        basehead = f"{_segment(base)}...{_segment(head)}"
        return await self.request(token, f"{self._repo_path(owner, repo)}/compare/{basehead}")

    async def list_repos_for_authenticated_user(self, token: str, **params: Any) -> GitHubResponse:
        return await self.request(token, "/user/repos", params)

    async def get_repo(self, token: str, owner: str, repo: str) -> GitHubResponse:
        return await self.request(token, self._repo_path(owner, repo))

    async def get_authenticated_user(self, token: str) -> GitHubResponse:
        """Fetch the user behind ``token``; used to check a token works."""
        return await self.request(token, "/user")
