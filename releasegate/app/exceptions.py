"""Custom exceptions for the release notes gateway."""

from typing import Any


class GatewayException(Exception):
    """Base class for gateway exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    The message is what the client sees, so it must never carry
    upstream error bodies or stack traces.
    """
    status_code: int = 500
    default_message: str = "An error occurred while processing your request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        """Extra response headers for this error, if any."""
        return None

    def to_response(self, request_id: str | None = None) -> dict[str, Any]:
        """Convert to the API error body.

        Server errors carry the request id so the caller can quote it
        when reporting a problem.
        """
        body: dict[str, Any] = {"error": self.message}
        if self.status_code >= 500 and request_id:
            body["requestId"] = request_id
        return body


class AuthenticationError(GatewayException):
    """Raised when bearer token authentication fails.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401
    default_message = "Unauthorized"


class ReauthenticationRequiredError(AuthenticationError):
    """Raised when no GitHub credential can be found for the user.

    The user has to sign out and sign in again to re-link GitHub.
    """
    default_message = (
        "GitHub authentication required. Please sign out and sign in again."
    )


class UpstreamAuthError(AuthenticationError):
    """Raised when GitHub rejects the delegated token."""
    default_message = "GitHub token expired. Please sign out and sign in again."


class ValidationError(GatewayException):
    """Raised when request input is malformed.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    default_message = "Invalid request"


class MethodNotAllowedError(GatewayException):
    """Maps to HTTP 405 Method Not Allowed."""
    status_code = 405
    default_message = "Method not allowed"


class RateLimitError(GatewayException):
    """Raised when a user has used up the quota for the current window.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    default_message = "Rate limit exceeded. Try again later."

    def __init__(
        self,
        limit: int = 0,
        reset_at: float | None = None,
        retry_after: int | None = None,
        message: str | None = None,
    ):
        self.limit = limit
        self.reset_at = reset_at
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str] | None:
        if self.retry_after is None:
            return None
        return {"Retry-After": str(self.retry_after)}


class UpstreamNotFoundError(GatewayException):
    """Raised when GitHub answers 404 for the requested resource."""
    status_code = 404
    default_message = "Resource not found"


class ConfigurationError(GatewayException):
    """Raised when required secrets are missing from the environment.

    The missing names are kept for the server log only.
    """
    status_code = 500
    default_message = "Server configuration error"

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        super().__init__(message)


class UpstreamServiceError(GatewayException):
    """Raised when GitHub, the identity service or the AI service fails."""
    status_code = 500

    def __init__(self, service: str = "upstream", message: str | None = None):
        self.service = service
        super().__init__(message)


class UpstreamRateLimitError(UpstreamServiceError):
    """Raised when the upstream service reports its own rate limit."""
    status_code = 429
    default_message = "Upstream service rate limit exceeded. Try again later."


class UpstreamTimeoutError(UpstreamServiceError):
    """Raised when an upstream call exceeds its timeout. Safe to retry."""
    status_code = 504
    default_message = "Upstream service timed out. Please try again."


class TokenLookupError(UpstreamServiceError):
    """Raised when the GitHub credential lookup failed for transient reasons."""
    default_message = "Unable to look up GitHub credentials. Please try again."
