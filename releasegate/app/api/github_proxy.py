"""Allow-listed GitHub REST calls made with the user's delegated token."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from releasegate.app.api.deps import (
    IDENTITY_SETTINGS,
    ROUTED_METHODS,
    ExternalCall,
    check_method,
    enforce_rate_limit,
    get_auth_verifier,
    get_github_client,
    get_limiter,
    get_token_resolver,
    read_json_body,
    require_settings,
)
from releasegate.app.core.config import settings
from releasegate.app.exceptions import ValidationError
from releasegate.app.middleware.auth import AuthVerifier
from releasegate.app.middleware.rate_limit import RateLimiter
from releasegate.app.middleware.request_logger import get_request_logger, with_logging
from releasegate.app.providers.github import GitHubClient
from releasegate.app.services.github_operations import get_operation
from releasegate.app.services.token_resolver import SessionCredentials, TokenResolver

router = APIRouter(tags=["github"])


@router.api_route("/api/github-proxy", methods=ROUTED_METHODS)
@with_logging("github-proxy")
async def github_proxy(
    request: Request,
    verifier: AuthVerifier = Depends(get_auth_verifier),
    limiter: RateLimiter = Depends(get_limiter),
    resolver: TokenResolver = Depends(get_token_resolver),
    github_client: GitHubClient = Depends(get_github_client),
) -> Response:
    """Proxy one GitHub operation.

    Request body: ``{"endpoint": "repos.get", "owner": ..., "repo": ...}``;
    everything besides ``endpoint`` is the operation's parameters.
    """
    preflight = check_method(request)
    if preflight is not None:
        return preflight

    request_logger = get_request_logger(request)
    require_settings(request_logger, *IDENTITY_SETTINGS)

    user = await verifier.verify(request.headers.get("Authorization"), request_logger)
    await enforce_rate_limit(
        limiter, request_logger, "github", user.user_id, settings.github_rate_limit
    )

    body = await read_json_body(request)
    endpoint = body.pop("endpoint", None)
    if not endpoint or not isinstance(endpoint, str):
        raise ValidationError("Invalid endpoint")

    operation = get_operation(endpoint)
    if operation is None:
        raise ValidationError("Unsupported endpoint")
    params = operation.validate(body)
    if not params.valid:
        raise ValidationError(params.error)

    token = await resolver.resolve(user, SessionCredentials.from_request(request), request_logger)

    async with ExternalCall(request_logger, "github", endpoint):
        result = await operation.invoke(github_client, token, params.value)

    request_logger.info(f"GitHub API {endpoint} called", {"user_id": user.user_id})
    return JSONResponse({"data": result.data, "headers": result.rate_limit_headers()})
