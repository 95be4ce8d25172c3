"""Shared fixtures: configured settings, fake upstream clients and an app."""

import logging
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from releasegate.app.api.deps import (
    get_enhancer,
    get_github_client,
    get_identity_client,
    get_limiter,
)
from releasegate.app.core.config import settings
from releasegate.app.middleware.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    reset_rate_limiter,
)
from releasegate.app.providers.github import GitHubResponse
from releasegate.app.providers.openai import ReleaseNotesEnhancer

VALID_TOKEN = "session-token"
USER_ID = "user-123"


class FakeIdentityClient:
    """In-memory stand-in for IdentityClient."""

    def __init__(
        self,
        users: Optional[Dict[str, Dict[str, Any]]] = None,
        records: Optional[Dict[str, Dict[str, Any]]] = None,
        sessions: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.users = users if users is not None else {
            VALID_TOKEN: {"id": USER_ID, "email": "dev@example.com"}
        }
        self.records = records or {}
        self.sessions = sessions or {}
        self.calls: List[str] = []

    async def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        self.calls.append("get_user")
        return self.users.get(access_token)

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append("get_user_by_id")
        return self.records.get(user_id)

    async def refresh_session(self, refresh_token: str) -> Optional[Dict[str, Any]]:
        self.calls.append("refresh_session")
        return self.sessions.get(refresh_token)


class FakeGitHubClient:
    """Records calls and answers from a canned response table."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[tuple] = []

    def _answer(self, name: str, token: str, **params: Any) -> GitHubResponse:
        self.calls.append((name, token, params))
        answer = self.responses.get(name, [])
        if isinstance(answer, Exception):
            raise answer
        return GitHubResponse(data=answer, rate_limit_remaining="4999", rate_limit_reset="1700000000")

    async def list_tags(self, token: str, owner: str, repo: str, **pagination: int) -> GitHubResponse:
        return self._answer("list_tags", token, owner=owner, repo=repo, **pagination)

    async def compare_commits(
        self, token: str, owner: str, repo: str, base: str, head: str
    ) -> GitHubResponse:
        return self._answer("compare_commits", token, owner=owner, repo=repo, base=base, head=head)

    async def list_repos_for_authenticated_user(self, token: str, **params: Any) -> GitHubResponse:
        return self._answer("list_repos_for_authenticated_user", token, **params)

    async def get_repo(self, token: str, owner: str, repo: str) -> GitHubResponse:
        return self._answer("get_repo", token, owner=owner, repo=repo)

    async def get_authenticated_user(self, token: str) -> GitHubResponse:
        return self._answer("get_authenticated_user", token)


def make_completion(content: Optional[str]) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    response.usage = MagicMock()
    response.usage.total_tokens = 42
    return response


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def handler():
    logger = logging.getLogger("releasegate.requests")
    list_handler = ListHandler()
    previous_level = logger.level
    logger.addHandler(list_handler)
    logger.setLevel(logging.DEBUG)
    yield list_handler
    logger.removeHandler(list_handler)
    logger.setLevel(previous_level)


@pytest.fixture
def production(monkeypatch):
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "environment", "production")
    return settings


@pytest.fixture(autouse=True)
def fresh_rate_limiter():
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def configured_settings(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", "https://identity.test")
    monkeypatch.setattr(settings, "supabase_service_key", "service-key")
    monkeypatch.setattr(settings, "supabase_anon_key", "anon-key")
    monkeypatch.setattr(settings, "openai_api_key", "sk-test")
    monkeypatch.setattr(settings, "github_api_url", "https://api.github.test")
    monkeypatch.setattr(settings, "enhance_rate_limit", 10)
    monkeypatch.setattr(settings, "github_rate_limit", 60)
    monkeypatch.setattr(settings, "rate_limit_window_seconds", 3600)
    return settings


@pytest.fixture
def identity_client() -> FakeIdentityClient:
    return FakeIdentityClient()


@pytest.fixture
def github_client() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def openai_client() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(
        return_value=make_completion("## Shiny release notes")
    )
    return client


@pytest.fixture
def limiter() -> RateLimiter:
    return RateLimiter(InMemoryRateLimitStore())


@pytest.fixture
def app(configured_settings, identity_client, github_client, openai_client, limiter):
    from releasegate.app.main import create_app

    application = create_app()
    application.dependency_overrides[get_identity_client] = lambda: identity_client
    application.dependency_overrides[get_github_client] = lambda: github_client
    application.dependency_overrides[get_limiter] = lambda: limiter
    application.dependency_overrides[get_enhancer] = lambda: ReleaseNotesEnhancer(
        api_key="sk-test", client=openai_client
    )
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {VALID_TOKEN}",
        "X-Provider-Token": "gho_provider",
    }
