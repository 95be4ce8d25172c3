from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Request

from releasegate.app.exceptions import AuthenticationError, UpstreamServiceError
from releasegate.app.middleware.request_logger import RequestLogger
from releasegate.app.providers.identity import IdentityClient


@dataclass
class AuthenticatedUser:
    """User resolved from a verified bearer token."""
    user_id: str
    email: Optional[str] = None
    app_metadata: Dict[str, Any] = field(default_factory=dict)
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_identity(cls, payload: Dict[str, Any]) -> "AuthenticatedUser":
        return cls(
            user_id=str(payload["id"]),
            email=payload.get("email"),
            app_metadata=payload.get("app_metadata") or {},
            user_metadata=payload.get("user_metadata") or {},
        )


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Returns:
        The token string if present, None otherwise
    """
    return parse_bearer_token(request.headers.get("Authorization"))


def parse_bearer_token(authorization: Optional[str]) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.replace("Bearer ", "", 1).strip() or None


class AuthVerifier:
    """Exchanges a bearer session token for the identity-service user."""

    def __init__(self, identity_client: IdentityClient):
        self.identity_client = identity_client

    async def verify(
        self, authorization: Optional[str], request_logger: RequestLogger
    ) -> AuthenticatedUser:
        """Verify the ``Authorization`` header value.

        Raises:
            AuthenticationError: "Unauthorized" when the header is missing or
                not a bearer token, "Invalid token" when the identity service
                rejects the token or cannot be reached
        """
        token = parse_bearer_token(authorization)
        if token is None:
            request_logger.log_auth(False, error="Missing or invalid authorization header")
            raise AuthenticationError("Unauthorized")

        try:
            payload = await self.identity_client.get_user(token)
        except UpstreamServiceError as e:
            request_logger.log_auth(False, error=e)
            raise AuthenticationError("Invalid token") from e

        if not payload or not payload.get("id"):
            request_logger.log_auth(False, error="Invalid token")
            raise AuthenticationError("Invalid token")

        user = AuthenticatedUser.from_identity(payload)
        request_logger.log_auth(True, user.user_id)
        return user
