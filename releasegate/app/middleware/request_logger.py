"""Per-request structured logging.

Every inbound request gets a RequestLogger carrying the request id and
start time; all entries it writes share that id. ``with_logging`` wraps an
endpoint so the logger is attached, the request and response are logged,
and any escaping exception still produces exactly one JSON response.
"""

import functools
import logging
import time
import traceback
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from releasegate.app.core.config import settings
from releasegate.app.core.logging import get_logger
from releasegate.app.exceptions import GatewayException
from releasegate.app.middleware.request_id import generate_request_id, get_request_id

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})

_request_log = get_logger("releasegate.requests")


def sanitize_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy headers with credential-bearing values replaced."""
    return {
        key: (REDACTED if key.lower() in SENSITIVE_HEADERS and value else value)
        for key, value in dict(headers).items()
    }


def sanitize_error(error: Any) -> Any:
    """Reduce an exception to name and message.

    The stack trace is kept only in development.
    """
    if not isinstance(error, BaseException):
        return error
    sanitized: Dict[str, Any] = {"name": type(error).__name__, "message": str(error)}
    if settings.is_development:
        sanitized["stack"] = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
    return sanitized


class RequestLogger:
    """Structured logger bound to one inbound request."""

    def __init__(
        self,
        function_name: str,
        request_id: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.function_name = function_name
        self.request_id = request_id or generate_request_id()
        self.user_id: Optional[str] = None
        self._logger = logger or _request_log
        self._clock = clock
        self._start = clock()

    @property
    def elapsed_ms(self) -> int:
        return int((self._clock() - self._start) * 1000)

    def _sanitize(self, data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        entry = dict(data or {})
        for key, value in entry.items():
            if key.lower().endswith("headers") and isinstance(value, Mapping):
                entry[key] = sanitize_headers(value)
        if "error" in entry:
            entry["error"] = sanitize_error(entry["error"])
        return entry

    def _emit(self, level: int, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
        extra = {
            "function_name": self.function_name,
            "request_id": self.request_id,
            "duration_ms": self.elapsed_ms,
            "data": self._sanitize(data),
        }
        if self.user_id:
            extra["user_id"] = self.user_id
        self._logger.log(level, message, extra=extra)

    def info(self, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
        self._emit(logging.INFO, message, data)

    def warn(self, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
        self._emit(logging.WARNING, message, data)

    warning = warn

    def error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        payload = dict(data or {})
        if error is not None:
            payload["error"] = error
        self._emit(logging.ERROR, message, payload)

    def debug(self, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
        if not settings.debug_logging:
            return
        self._emit(logging.DEBUG, message, data)

    async def log_request(self, request: Request) -> None:
        body = await request.body()
        self.info("API request received", {
            "method": request.method,
            "url": str(request.url),
            "headers": dict(request.headers),
            "query": dict(request.query_params),
            "body_size": len(body),
        })

    def log_response(self, status_code: int, response_size: int = 0) -> None:
        self.info("API response sent", {
            "status_code": status_code,
            "response_size": response_size,
            "total_duration_ms": self.elapsed_ms,
        })

    def log_auth(
        self,
        success: bool,
        user_id: Optional[str] = None,
        error: Optional[BaseException | str] = None,
    ) -> None:
        if success:
            self.user_id = user_id or self.user_id
            self.info("Authentication successful", {"user_id": user_id})
        else:
            reason = str(error) if error else "Unknown error"
            self.warn("Authentication failed", {"user_id": user_id, "error": reason})

    def log_rate_limit(self, user_id: str, allowed: bool, limit: int, count: int) -> None:
        data = {"user_id": user_id, "limit": limit, "count": count, "allowed": allowed}
        if allowed:
            self.debug("Rate limit check", data)
        else:
            self.warn("Rate limit exceeded", data)

    def log_external_api(
        self,
        service: str,
        endpoint: str,
        success: bool,
        duration_ms: int,
        error: Optional[BaseException] = None,
    ) -> None:
        message = f"External API call to {service}"
        data = {
            "service": service,
            "endpoint": endpoint,
            "success": success,
            "external_duration_ms": duration_ms,
        }
        if success:
            self.info(message, data)
        else:
            self.error(message, error, data)


def begin_request(function_name: str, request_id: Optional[str] = None) -> RequestLogger:
    """Start logging a new inbound request."""
    return RequestLogger(function_name, request_id=request_id)


def get_request_logger(request: Request) -> RequestLogger:
    """Return the logger attached by ``with_logging``, creating one if absent."""
    request_logger = getattr(request.state, "logger", None)
    if request_logger is None:
        request_logger = begin_request("unknown", get_request_id(request))
        request.state.logger = request_logger
    return request_logger


def error_response(exc: GatewayException, request_id: Optional[str]) -> JSONResponse:
    """Render a gateway exception as the public JSON error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(request_id),
        headers=exc.headers,
    )


def _find_request(args: tuple, kwargs: dict) -> Optional[Request]:
    request = kwargs.get("request")
    if isinstance(request, Request):
        return request
    return next((a for a in args if isinstance(a, Request)), None)


def with_logging(
    function_name: str,
) -> Callable[[Callable[..., Awaitable[Response]]], Callable[..., Awaitable[Response]]]:
    """Wrap an async endpoint with request/response logging.

    The endpoint must take ``request: Request``. Gateway exceptions become
    their JSON error response; anything else becomes a generic 500 that
    carries the request id.
    """

    def decorator(handler: Callable[..., Awaitable[Response]]) -> Callable[..., Awaitable[Response]]:
        @functools.wraps(handler)
        async def wrapper(*args: Any, **kwargs: Any) -> Response:
            request = _find_request(args, kwargs)
            request_logger = begin_request(
                function_name, get_request_id(request) if request is not None else None
            )
            if request is not None:
                request.state.logger = request_logger
                await request_logger.log_request(request)

            try:
                response = await handler(*args, **kwargs)
            except GatewayException as exc:
                data = {"status_code": exc.status_code, "error_type": type(exc).__name__}
                if exc.status_code >= 500:
                    request_logger.error("Request failed", exc, data)
                else:
                    request_logger.warn(f"Request rejected: {exc.message}", data)
                response = error_response(exc, request_logger.request_id)
            except StarletteHTTPException as exc:
                request_logger.warn("Request rejected", {"status_code": exc.status_code})
                response = JSONResponse(
                    status_code=exc.status_code,
                    content={"error": str(exc.detail)},
                    headers=getattr(exc, "headers", None),
                )
            except Exception as exc:
                request_logger.error("Unhandled error in function", exc)
                response = JSONResponse(
                    status_code=500,
                    content={
                        "error": "Internal server error",
                        "requestId": request_logger.request_id,
                    },
                )

            request_logger.log_response(
                response.status_code, len(getattr(response, "body", b"") or b"")
            )
            return response

        return wrapper

    return decorator
