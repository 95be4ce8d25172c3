"""Resolve the GitHub token to act with on behalf of a signed-in user.

Strategies run in priority order and the first token found wins. A strategy
answers None when its source simply has no token, and raises a gateway
exception when the source could not be consulted. The difference matters at
the end: a user with no token anywhere must sign in again (401), while a
lookup that failed on the way may succeed on retry (500).
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import Request

from releasegate.app.exceptions import (
    GatewayException,
    ReauthenticationRequiredError,
    TokenLookupError,
    UpstreamAuthError,
    UpstreamNotFoundError,
)
from releasegate.app.middleware.auth import AuthenticatedUser, get_bearer_token
from releasegate.app.middleware.request_logger import RequestLogger
from releasegate.app.providers.github import GitHubClient
from releasegate.app.providers.identity import IdentityClient

PROVIDER_TOKEN_HEADER = "X-Provider-Token"
REFRESH_TOKEN_HEADER = "X-Refresh-Token"
METADATA_TOKEN_KEYS = ("provider_token", "github_token")


@dataclass
class SessionCredentials:
    """Session material the client sent along with the request."""
    access_token: str
    refresh_token: Optional[str] = None
    provider_token: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "SessionCredentials":
        return cls(
            access_token=get_bearer_token(request) or "",
            refresh_token=(request.headers.get(REFRESH_TOKEN_HEADER) or "").strip() or None,
            provider_token=(request.headers.get(PROVIDER_TOKEN_HEADER) or "").strip() or None,
        )


TokenFetcher = Callable[[AuthenticatedUser, SessionCredentials], Awaitable[Optional[str]]]


@dataclass
class TokenStrategy:
    name: str
    fetch: TokenFetcher


def token_from_metadata(record: Dict[str, Any]) -> Optional[str]:
    """Find a stored GitHub token in a user record's metadata."""
    for section in ("app_metadata", "user_metadata"):
        metadata = record.get(section) or {}
        for key in METADATA_TOKEN_KEYS:
            token = metadata.get(key)
            if isinstance(token, str) and token.strip():
                return token.strip()
    return None


class TokenResolver:
    """Ordered chain of GitHub token sources."""

    def __init__(
        self,
        identity_client: IdentityClient,
        github_client: GitHubClient,
        strategies: Optional[List[TokenStrategy]] = None,
    ):
        self.identity_client = identity_client
        self.github_client = github_client
        self.strategies = strategies or [
            TokenStrategy("session", self._from_session),
            TokenStrategy("refreshed_session", self._from_refreshed_session),
            TokenStrategy("user_metadata", self._from_user_metadata),
            TokenStrategy("access_token_probe", self._from_access_token_probe),
        ]

    async def _from_session(
        self, user: AuthenticatedUser, session: SessionCredentials
    ) -> Optional[str]:
        return session.provider_token

    async def _from_refreshed_session(
        self, user: AuthenticatedUser, session: SessionCredentials
    ) -> Optional[str]:
        if not session.refresh_token:
            return None
        refreshed = await self.identity_client.refresh_session(session.refresh_token)
        if not refreshed:
            return None
        return refreshed.get("provider_token") or None

    async def _from_user_metadata(
        self, user: AuthenticatedUser, session: SessionCredentials
    ) -> Optional[str]:
        record = await self.identity_client.get_user_by_id(user.user_id)
        if not record:
            return None
        return token_from_metadata(record)

    async def _from_access_token_probe(
        self, user: AuthenticatedUser, session: SessionCredentials
    ) -> Optional[str]:
        if not session.access_token:
            return None
        try:
            await self.github_client.get_authenticated_user(session.access_token)
        except (UpstreamAuthError, UpstreamNotFoundError):
            return None
        return session.access_token

    async def resolve(
        self,
        user: AuthenticatedUser,
        session: SessionCredentials,
        request_logger: RequestLogger,
    ) -> str:
        """Return the first GitHub token any strategy produces.

        Raises:
            ReauthenticationRequiredError: no source holds a token
            TokenLookupError: no token found and some source failed
        """
        failures: List[str] = []
        outcomes: Dict[str, str] = {}

        for strategy in self.strategies:
            request_logger.debug("Trying GitHub token source", {"strategy": strategy.name})
            try:
                token = await strategy.fetch(user, session)
            except GatewayException as e:
                failures.append(f"{strategy.name}: {type(e).__name__}")
                outcomes[strategy.name] = f"failed: {type(e).__name__}"
                request_logger.warn(
                    "GitHub token source failed",
                    {"strategy": strategy.name, "error": e},
                )
                continue

            if token:
                request_logger.info("GitHub token resolved", {"strategy": strategy.name})
                return token
            outcomes[strategy.name] = "no token"
            request_logger.info("GitHub token source had no token", {"strategy": strategy.name})

        if failures:
            request_logger.error(
                "GitHub token lookup failed",
                data={"user_id": user.user_id, "failures": failures, "attempts": outcomes},
            )
            raise TokenLookupError("token_lookup")

        request_logger.warn(
            "No GitHub token available", {"user_id": user.user_id, "attempts": outcomes}
        )
        raise ReauthenticationRequiredError()
