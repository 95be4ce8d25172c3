"""Request ID middleware.

This middleware adds a unique request ID to each incoming request,
enabling request tracking across logs and responses.
"""

import re
import secrets

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# Inbound ids are echoed into logs and headers, so only accept plain tokens.
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9_.-]{1,128}")


def generate_request_id() -> str:
    """Generate a short random request id (16 hex chars)."""
    return secrets.token_hex(8)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add a request ID to all requests.

    The request ID is:
    1. Extracted from X-Request-ID header if present and well-formed
    2. Generated if not present
    3. Added to request.state for access in endpoints
    4. Returned in X-Request-ID response header
    """

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and add request ID."""
        request_id = request.headers.get(self.header_name)
        if not request_id or not _REQUEST_ID_RE.fullmatch(request_id):
            request_id = generate_request_id()

        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


def get_request_id(request: Request) -> str | None:
    """Get request ID from request state, if the middleware assigned one."""
    return getattr(request.state, "request_id", None)
