"""Dependencies and pipeline steps shared by the API handlers.

Client factories are plain functions so tests can swap them through
``app.dependency_overrides``.
"""

import time
from typing import Any, Dict, Optional

from fastapi import Depends, Request, Response

from releasegate.app.core.config import settings
from releasegate.app.core.http_client import get_optional_http_client
from releasegate.app.exceptions import (
    ConfigurationError,
    MethodNotAllowedError,
    RateLimitError,
    ValidationError,
)
from releasegate.app.middleware.auth import AuthVerifier
from releasegate.app.middleware.rate_limit import RateLimiter, RateLimitResult, get_rate_limiter
from releasegate.app.middleware.request_logger import RequestLogger
from releasegate.app.providers.github import GitHubClient
from releasegate.app.providers.identity import IdentityClient
from releasegate.app.providers.openai import ReleaseNotesEnhancer
from releasegate.app.services.token_resolver import TokenResolver

# Every method is routed so the handler itself answers 405 in the usual body.
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

IDENTITY_SETTINGS = ("supabase_url", "supabase_service_key")


def get_identity_client() -> IdentityClient:
    return IdentityClient(http_client=get_optional_http_client())


def get_github_client() -> GitHubClient:
    return GitHubClient(http_client=get_optional_http_client())


def get_enhancer() -> ReleaseNotesEnhancer:
    return ReleaseNotesEnhancer()


def get_limiter() -> RateLimiter:
    return get_rate_limiter()


def get_auth_verifier(
    identity_client: IdentityClient = Depends(get_identity_client),
) -> AuthVerifier:
    return AuthVerifier(identity_client)


def get_token_resolver(
    identity_client: IdentityClient = Depends(get_identity_client),
    github_client: GitHubClient = Depends(get_github_client),
) -> TokenResolver:
    return TokenResolver(identity_client, github_client)


def check_method(request: Request) -> Optional[Response]:
    """Answer OPTIONS directly and reject anything but POST.

    Returns the response to send for OPTIONS, None to carry on.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200)
    if request.method != "POST":
        raise MethodNotAllowedError()
    return None


def require_settings(request_logger: RequestLogger, *names: str) -> None:
    """Fail with a configuration error when any named setting is unset."""
    missing = settings.missing(*names)
    if missing:
        request_logger.error("Missing required configuration", data={"missing": missing})
        raise ConfigurationError(missing)


async def enforce_rate_limit(
    limiter: RateLimiter,
    request_logger: RequestLogger,
    scope: str,
    user_id: str,
    limit: int,
) -> RateLimitResult:
    """Count one request against ``scope`` for the user or raise 429."""
    result = await limiter.check_and_consume(
        f"{scope}:{user_id}", limit, settings.rate_limit_window_seconds
    )
    request_logger.log_rate_limit(user_id, result.allowed, result.limit, result.count)
    if not result.allowed:
        raise RateLimitError(
            limit=result.limit, reset_at=result.reset_at, retry_after=result.retry_after
        )
    return result


async def read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    return body


class ExternalCall:
    """Times one upstream call and reports it through ``log_external_api``.

        async with ExternalCall(request_logger, "github", "repos.get"):
            response = await client.get_repo(...)
    """

    def __init__(self, request_logger: RequestLogger, service: str, endpoint: str):
        self.request_logger = request_logger
        self.service = service
        self.endpoint = endpoint
        self._start = 0.0

    async def __aenter__(self) -> "ExternalCall":
        self._start = time.monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        duration_ms = int((time.monotonic() - self._start) * 1000)
        self.request_logger.log_external_api(
            self.service, self.endpoint, exc is None, duration_ms, exc
        )
        return False
