"""Commit classification and release-notes markdown rendering."""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple

UNKNOWN_AUTHOR = "Unknown author"

SECTION_TITLES = (
    ("features", "🚀 Features"),
    ("fixes", "🐛 Bug Fixes"),
    ("breaking_changes", "⚠️ Breaking Changes"),
    ("others", "📝 Other Commits"),
)


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author_name: str
    author_date: str
    url: str

    @property
    def title(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(frozen=True)
class CategorizedCommits:
    features: Tuple[Commit, ...] = ()
    fixes: Tuple[Commit, ...] = ()
    breaking_changes: Tuple[Commit, ...] = ()
    others: Tuple[Commit, ...] = ()

    def counts(self) -> dict:
        return {
            "features": len(self.features),
            "fixes": len(self.fixes),
            "breakingChanges": len(self.breaking_changes),
            "others": len(self.others),
        }


def classify(message: str) -> str:
    """Return the category name for one commit message.

    Conventional prefixes are checked before the breaking-change marker,
    so "feat: ... BREAKING CHANGE" stays a feature.
    """
    lowered = message.lower()
    if lowered.startswith("feat") or lowered.startswith("feature"):
        return "features"
    if lowered.startswith("fix"):
        return "fixes"
    if "breaking change" in lowered:
        return "breaking_changes"
    return "others"


def categorize(commits: Iterable[Commit]) -> CategorizedCommits:
    """Partition commits into the four categories, keeping input order."""
    buckets: dict[str, List[Commit]] = {name: [] for name, _ in SECTION_TITLES}
    for commit in commits:
        buckets[classify(commit.message)].append(commit)
    return CategorizedCommits(**{name: tuple(items) for name, items in buckets.items()})


def format_release_notes(
    categorized: CategorizedCommits, repo_url: str, start_ref: str, end_ref: str
) -> str:
    """Render categorized commits as markdown with a compare link footer."""
    parts = [f"## Release Notes ({start_ref}...{end_ref})\n\n"]

    for name, title in SECTION_TITLES:
        commits = getattr(categorized, name)
        if not commits:
            continue
        parts.append(f"### {title}\n\n")
        for commit in commits:
            parts.append(f"- {commit.title} ([{commit.short_sha}]({commit.url}))\n")
        parts.append("\n")

    parts.append(f"\n**Full Changelog**: {repo_url}/compare/{start_ref}...{end_ref}\n")
    return "".join(parts)


def commits_from_comparison(payload: Mapping[str, Any]) -> List[Commit]:
    """Map the ``commits`` of a GitHub compare payload to Commit records."""
    commits = []
    for item in payload.get("commits") or []:
        details = item.get("commit") or {}
        author = details.get("author") or {}
        commits.append(
            Commit(
                sha=item.get("sha", ""),
                message=details.get("message", ""),
                author_name=author.get("name") or UNKNOWN_AUTHOR,
                author_date=author.get("date") or "",
                url=item.get("html_url", ""),
            )
        )
    return commits
