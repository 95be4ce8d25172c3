"""Tests for commit classification and release-notes rendering."""

import pytest

from releasegate.app.services.release_notes import (
    CategorizedCommits,
    Commit,
    categorize,
    classify,
    commits_from_comparison,
    format_release_notes,
)

REPO_URL = "https://github.com/octo/hello"


def commit(message: str, sha: str = "abcdef1234567890") -> Commit:
    return Commit(
        sha=sha,
        message=message,
        author_name="Dev",
        author_date="2024-01-01T00:00:00Z",
        url=f"{REPO_URL}/commit/{sha}",
    )


class TestClassify:
    @pytest.mark.parametrize(
        ("message", "category"),
        [
            ("feat: add login", "features"),
            ("Feature: dark mode", "features"),
            ("FIX: crash on start", "fixes"),
            ("fixup! typo", "fixes"),
            ("refactor!: BREAKING CHANGE drop node 14", "breaking_changes"),
            ("docs: readme", "others"),
            ("", "others"),
        ],
    )
    def test_categories(self, message, category):
        assert classify(message) == category

    def test_prefix_wins_over_breaking_change(self):
        assert classify("feat: new API\n\nBREAKING CHANGE: removes v1") == "features"
        assert classify("fix: patch\n\nbreaking change inside") == "fixes"


class TestCategorize:
    def test_partition_is_total_and_ordered(self):
        commits = [
            commit("feat: one", "1" * 40),
            commit("chore: two", "2" * 40),
            commit("feat: three", "3" * 40),
            commit("fix: four", "4" * 40),
        ]
        result = categorize(commits)

        assert [c.message for c in result.features] == ["feat: one", "feat: three"]
        assert [c.message for c in result.fixes] == ["fix: four"]
        assert result.breaking_changes == ()
        assert [c.message for c in result.others] == ["chore: two"]
        total = len(result.features) + len(result.fixes) + len(result.breaking_changes) + len(result.others)
        assert total == len(commits)

    def test_empty(self):
        assert categorize([]) == CategorizedCommits()

    def test_counts_use_api_names(self):
        result = categorize([commit("feat: a"), commit("BREAKING CHANGE: b")])
        assert result.counts() == {"features": 1, "fixes": 0, "breakingChanges": 1, "others": 0}


class TestFormatReleaseNotes:
    def test_exact_layout(self):
        categorized = categorize([
            commit("feat: add search\n\nlong body", "a1b2c3d4e5f6"),
            commit("fix: null check", "0011223344556677"),
        ])
        markdown = format_release_notes(categorized, REPO_URL, "v1.0.0", "v1.1.0")

        assert markdown == (
            "## Release Notes (v1.0.0...v1.1.0)\n\n"
            "### 🚀 Features\n\n"
            f"- feat: add search ([a1b2c3d]({REPO_URL}/commit/a1b2c3d4e5f6))\n"
            "\n"
            "### 🐛 Bug Fixes\n\n"
            f"- fix: null check ([0011223]({REPO_URL}/commit/0011223344556677))\n"
            "\n"
            "\n"
            f"**Full Changelog**: {REPO_URL}/compare/v1.0.0...v1.1.0\n"
        )

    def test_empty_sections_are_omitted(self):
        markdown = format_release_notes(categorize([]), REPO_URL, "a", "b")
        assert markdown == (
            "## Release Notes (a...b)\n\n"
            "\n"
            f"**Full Changelog**: {REPO_URL}/compare/a...b\n"
        )

    def test_section_order(self):
        categorized = categorize([
            commit("misc"),
            commit("BREAKING CHANGE: x"),
            commit("fix: y"),
            commit("feat: z"),
        ])
        markdown = format_release_notes(categorized, REPO_URL, "a", "b")
        positions = [
            markdown.index(title)
            for title in ("🚀 Features", "🐛 Bug Fixes", "⚠️ Breaking Changes", "📝 Other Commits")
        ]
        assert positions == sorted(positions)

    def test_deterministic(self):
        categorized = categorize([commit("feat: a"), commit("fix: b")])
        assert format_release_notes(categorized, REPO_URL, "a", "b") == format_release_notes(
            categorized, REPO_URL, "a", "b"
        )


class TestCommitsFromComparison:
    def test_maps_compare_payload(self):
        payload = {
            "commits": [
                {
                    "sha": "abc123",
                    "html_url": f"{REPO_URL}/commit/abc123",
                    "commit": {
                        "message": "feat: x",
                        "author": {"name": "Octo", "date": "2024-05-01T10:00:00Z"},
                    },
                },
                {"sha": "def456", "html_url": "u", "commit": {"message": "fix: y", "author": None}},
            ]
        }
        commits = commits_from_comparison(payload)

        assert commits[0] == Commit(
            sha="abc123",
            message="feat: x",
            author_name="Octo",
            author_date="2024-05-01T10:00:00Z",
            url=f"{REPO_URL}/commit/abc123",
        )
        assert commits[1].author_name == "Unknown author"

    def test_missing_commits(self):
        assert commits_from_comparison({}) == []
