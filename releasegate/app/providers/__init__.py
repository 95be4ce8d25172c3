"""Clients for the external services the gateway calls.

This package provides:
- Base client with shared-connection handling (UpstreamClient)
- Supabase Auth client (IdentityClient)
- GitHub REST client (GitHubClient)
- AI release-notes rewrite (ReleaseNotesEnhancer)
- Retry mechanism (RetryPolicy, with_retry)
"""

from releasegate.app.providers.base import UpstreamClient
from releasegate.app.providers.github import GitHubClient, GitHubResponse
from releasegate.app.providers.identity import IdentityClient
from releasegate.app.providers.openai import ReleaseNotesEnhancer
from releasegate.app.providers.retry import RetryPolicy, with_retry

__all__ = [
    "UpstreamClient",
    "GitHubClient",
    "GitHubResponse",
    "IdentityClient",
    "ReleaseNotesEnhancer",
    "RetryPolicy",
    "with_retry",
]
