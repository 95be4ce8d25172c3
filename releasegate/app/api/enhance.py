"""AI enhancement of generated release notes."""

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from releasegate.app.api.deps import (
    IDENTITY_SETTINGS,
    ROUTED_METHODS,
    ExternalCall,
    check_method,
    enforce_rate_limit,
    get_auth_verifier,
    get_enhancer,
    get_limiter,
    read_json_body,
    require_settings,
)
from releasegate.app.core.config import settings
from releasegate.app.core.validation import validate_markdown
from releasegate.app.exceptions import ValidationError
from releasegate.app.middleware.auth import AuthVerifier
from releasegate.app.middleware.rate_limit import RateLimiter
from releasegate.app.middleware.request_logger import get_request_logger, with_logging
from releasegate.app.providers.openai import ReleaseNotesEnhancer

router = APIRouter(tags=["enhance"])


@router.api_route("/api/enhance-release-notes", methods=ROUTED_METHODS)
@with_logging("enhance-release-notes")
async def enhance_release_notes(
    request: Request,
    verifier: AuthVerifier = Depends(get_auth_verifier),
    limiter: RateLimiter = Depends(get_limiter),
    enhancer: ReleaseNotesEnhancer = Depends(get_enhancer),
) -> Response:
    """Rewrite release-notes markdown to be more engaging.

    Request body: ``{"markdown": "..."}``. Limited to ENHANCE_RATE_LIMIT
    calls per user per window.
    """
    preflight = check_method(request)
    if preflight is not None:
        return preflight

    request_logger = get_request_logger(request)
    require_settings(request_logger, *IDENTITY_SETTINGS, "openai_api_key")

    user = await verifier.verify(request.headers.get("Authorization"), request_logger)
    usage = await enforce_rate_limit(
        limiter, request_logger, "enhance", user.user_id, settings.enhance_rate_limit
    )

    body = await read_json_body(request)
    result = validate_markdown(body.get("markdown"))
    if not result.valid:
        raise ValidationError(result.error)

    async with ExternalCall(request_logger, "openai", "chat.completions"):
        enhanced = await enhancer.enhance(result.value)

    request_logger.info("Release notes enhanced", {
        "input_length": len(result.value),
        "output_length": len(enhanced),
    })
    return JSONResponse({
        "enhanced": enhanced,
        "usage": {"requestsRemaining": usage.remaining},
    })
