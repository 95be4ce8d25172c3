"""The GitHub operations the proxy accepts, keyed by endpoint name."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from releasegate.app.core.validation import (
    ValidationResult,
    validate_compare_commits,
    validate_get_repo,
    validate_list_for_authenticated_user,
    validate_list_tags,
)
from releasegate.app.providers.github import GitHubClient, GitHubResponse

Invoker = Callable[[GitHubClient, str, Dict[str, Any]], Awaitable[GitHubResponse]]


@dataclass(frozen=True)
class GitHubOperation:
    """Validator for the request params plus the call that uses them."""
    name: str
    validate: Callable[[Mapping[str, Any]], ValidationResult]
    invoke: Invoker


GITHUB_OPERATIONS: Dict[str, GitHubOperation] = {
    op.name: op
    for op in (
        GitHubOperation(
            "repos.listTags",
            validate_list_tags,
            lambda client, token, params: client.list_tags(token, **params),
        ),
        GitHubOperation(
            "repos.compareCommits",
            validate_compare_commits,
            lambda client, token, params: client.compare_commits(token, **params),
        ),
        GitHubOperation(
            "repos.listForAuthenticatedUser",
            validate_list_for_authenticated_user,
            lambda client, token, params: client.list_repos_for_authenticated_user(token, **params),
        ),
        GitHubOperation(
            "repos.get",
            validate_get_repo,
            lambda client, token, params: client.get_repo(token, **params),
        ),
    )
}


def get_operation(endpoint: str) -> Optional[GitHubOperation]:
    return GITHUB_OPERATIONS.get(endpoint)
