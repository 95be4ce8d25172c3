"""Middleware package for the gateway."""

from releasegate.app.middleware.auth import AuthVerifier, AuthenticatedUser, get_bearer_token
from releasegate.app.middleware.rate_limit import RateLimiter, get_rate_limiter
from releasegate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from releasegate.app.middleware.request_logger import RequestLogger, begin_request, with_logging

__all__ = [
    "AuthVerifier",
    "AuthenticatedUser",
    "get_bearer_token",
    "RateLimiter",
    "get_rate_limiter",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestLogger",
    "begin_request",
    "with_logging",
]
