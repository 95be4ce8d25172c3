from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from releasegate.app.api import (
    enhance_router,
    github_proxy_router,
    health_router,
    release_notes_router,
)
from releasegate.app.core.config import settings
from releasegate.app.core.http_client import init_http_client
from releasegate.app.core.logging import get_log_context, get_logger, setup_logging
from releasegate.app.exceptions import GatewayException
from releasegate.app.middleware.request_id import RequestIdMiddleware, get_request_id


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Share one HTTP connection pool for the lifetime of the app."""
        async with init_http_client() as http_client:
            missing = settings.missing(
                "supabase_url", "supabase_service_key", "openai_api_key"
            )
            if missing:
                # Handlers answer 500 until these are set
                logger.warning(f"Missing configuration: {', '.join(missing)}")
            logger.info(
                "Application startup complete",
                extra=get_log_context(
                    function_name="lifespan",
                    environment=settings.environment,
                    debug_mode=settings.debug,
                ),
            )
            yield {"http_client": http_client}

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Releasegate",
        description="Release notes backend: GitHub proxy, AI enhancement and notes generation",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    # Request ID middleware for tracing
    app.add_middleware(RequestIdMiddleware)

    # CORS middleware (outermost - handles preflight requests first).
    # With credentials allowed, a wildcard origin is answered with the
    # request's own origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS", "PATCH", "DELETE", "POST", "PUT"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )

    app.include_router(github_proxy_router)
    app.include_router(enhance_router)
    app.include_router(release_notes_router)
    app.include_router(health_router)

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:
        """Render gateway errors raised outside the logged handlers."""
        request_id = get_request_id(request)
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": request_id, "path": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(request_id),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Full details go to the server log; the client only gets the
        request id to quote.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "exception_type": type(exc).__name__,
            },
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "requestId": request_id},
        )

    return app


# Create the application instance
app = create_app()
