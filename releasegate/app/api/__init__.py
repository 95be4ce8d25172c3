"""API endpoints package for the gateway."""

from releasegate.app.api.enhance import router as enhance_router
from releasegate.app.api.github_proxy import router as github_proxy_router
from releasegate.app.api.health import router as health_router
from releasegate.app.api.release_notes import router as release_notes_router

__all__ = [
    "enhance_router",
    "github_proxy_router",
    "health_router",
    "release_notes_router",
]
