"""Health endpoint reporting which integrations are configured."""

from typing import Any

from fastapi import APIRouter

from releasegate.app.core.config import settings
from releasegate.app.middleware.rate_limit import InMemoryRateLimitStore, get_rate_limiter

router = APIRouter(tags=["health"])


def _configured(*names: str) -> dict[str, str]:
    return {"status": "configured" if not settings.missing(*names) else "not configured"}


@router.get("/health")
async def health() -> dict[str, Any]:
    """Report component configuration without revealing any values."""
    components: dict[str, Any] = {
        "identity": _configured("supabase_url", "supabase_service_key"),
        "github": {"status": "configured", "api_url": settings.github_api_url},
        "openai": _configured("openai_api_key"),
    }

    store = get_rate_limiter().store
    components["rate_limit"] = {
        "status": "ok",
        "store": "memory" if isinstance(store, InMemoryRateLimitStore) else "redis",
    }

    status = "ok"
    if components["identity"]["status"] != "configured":
        status = "degraded"
    return {"status": status, "components": components}
