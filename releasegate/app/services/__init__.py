"""Services package for the gateway.

This package provides:
- GitHub token resolution for signed-in users
- The table of proxied GitHub operations
- Commit classification and release-notes formatting
"""

from releasegate.app.services.github_operations import GITHUB_OPERATIONS, get_operation
from releasegate.app.services.release_notes import (
    CategorizedCommits,
    Commit,
    categorize,
    commits_from_comparison,
    format_release_notes,
)
from releasegate.app.services.token_resolver import SessionCredentials, TokenResolver

__all__ = [
    "GITHUB_OPERATIONS",
    "get_operation",
    "CategorizedCommits",
    "Commit",
    "categorize",
    "commits_from_comparison",
    "format_release_notes",
    "SessionCredentials",
    "TokenResolver",
]
