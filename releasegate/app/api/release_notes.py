"""Server-side release-notes generation between two refs."""

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
from releasegate.app.core.validation import parse_github_url, validate_compare_commits
from releasegate.app.exceptions import ValidationError
from releasegate.app.middleware.auth import AuthVerifier
from releasegate.app.middleware.rate_limit import RateLimiter
from releasegate.app.middleware.request_logger import get_request_logger, with_logging
from releasegate.app.providers.github import GitHubClient
from releasegate.app.services.release_notes import (
    categorize,
    commits_from_comparison,
    format_release_notes,
)
from releasegate.app.services.token_resolver import SessionCredentials, TokenResolver

router = APIRouter(tags=["release-notes"])


@router.api_route("/api/release-notes", methods=ROUTED_METHODS)
@with_logging("release-notes")
async def generate_release_notes(
    request: Request,
    verifier: AuthVerifier = Depends(get_auth_verifier),
    limiter: RateLimiter = Depends(get_limiter),
    resolver: TokenResolver = Depends(get_token_resolver),
    github_client: GitHubClient = Depends(get_github_client),
) -> Response:
    """Compare two refs and render the commits as release notes.

    Request body: ``{"repoUrl": "https://github.com/o/r", "base": ..., "head": ...}``.
    Counts against the GitHub quota.
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
    repository = parse_github_url(body.get("repoUrl"))
    if not repository.valid:
        raise ValidationError(repository.error)
    params = validate_compare_commits({
        "owner": repository.value["owner"],
        "repo": repository.value["repo"],
        "base": body.get("base"),
        "head": body.get("head"),
    })
    if not params.valid:
        raise ValidationError(params.error)

    token = await resolver.resolve(user, SessionCredentials.from_request(request), request_logger)

    async with ExternalCall(request_logger, "github", "repos.compareCommits"):
        comparison = await github_client.compare_commits(token, **params.value)

    commits = commits_from_comparison(comparison.data or {})
    categorized = categorize(commits)
    markdown = format_release_notes(
        categorized, repository.value["url"], params.value["base"], params.value["head"]
    )

    request_logger.info("Release notes generated", {"commit_count": len(commits)})
    return JSONResponse({
        "markdown": markdown,
        "commitCount": len(commits),
        "categories": categorized.counts(),
    })
