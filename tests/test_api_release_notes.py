"""End-to-end tests for POST /api/release-notes."""

import pytest

URL = "/api/release-notes"
REPO_URL = "https://github.com/octo/hello"


def compare_payload():
    return {
        "commits": [
            {
                "sha": "a1b2c3d4e5f6a7b8",
                "html_url": f"{REPO_URL}/commit/a1b2c3d4e5f6a7b8",
                "commit": {
                    "message": "feat: add search\n\nLong description",
                    "author": {"name": "Octo", "date": "2024-05-01T10:00:00Z"},
                },
            },
            {
                "sha": "0011223344556677",
                "html_url": f"{REPO_URL}/commit/0011223344556677",
                "commit": {
                    "message": "fix: handle empty tags",
                    "author": {"name": "Cat", "date": "2024-05-02T10:00:00Z"},
                },
            },
            {
                "sha": "ffeeddccbbaa9988",
                "html_url": f"{REPO_URL}/commit/ffeeddccbbaa9988",
                "commit": {"message": "chore: bump deps", "author": None},
            },
        ]
    }


def test_generates_release_notes(client, auth_headers, github_client):
    github_client.responses["compare_commits"] = compare_payload()
    response = client.post(
        URL,
        json={"repoUrl": REPO_URL + ".git", "base": "v1.0.0", "head": "v1.1.0"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["commitCount"] == 3
    assert body["categories"] == {"features": 1, "fixes": 1, "breakingChanges": 0, "others": 1}
    assert body["markdown"].startswith("## Release Notes (v1.0.0...v1.1.0)\n\n### 🚀 Features")
    assert f"- feat: add search ([a1b2c3d]({REPO_URL}/commit/a1b2c3d4e5f6a7b8))" in body["markdown"]
    assert body["markdown"].endswith(f"**Full Changelog**: {REPO_URL}/compare/v1.0.0...v1.1.0\n")

    assert github_client.calls == [(
        "compare_commits",
        "gho_provider",
        {"owner": "octo", "repo": "hello", "base": "v1.0.0", "head": "v1.1.0"},
    )]


def test_no_commits(client, auth_headers, github_client):
    github_client.responses["compare_commits"] = {"commits": []}
    response = client.post(
        URL, json={"repoUrl": REPO_URL, "base": "a", "head": "b"}, headers=auth_headers
    )

    assert response.json()["commitCount"] == 0
    assert response.json()["categories"] == {
        "features": 0, "fixes": 0, "breakingChanges": 0, "others": 0
    }


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"base": "a", "head": "b"}, "Repository URL is required"),
        (
            {"repoUrl": "https://gitlab.com/octo/hello", "base": "a", "head": "b"},
            "Invalid GitHub repository URL format. Example: https://github.com/owner/repo",
        ),
        ({"repoUrl": REPO_URL, "head": "b"}, "Base Reference is required and must be a string"),
        ({"repoUrl": REPO_URL, "base": "a b", "head": "b"}, "Base Invalid reference format"),
    ],
)
def test_invalid_input(client, auth_headers, github_client, body, message):
    response = client.post(URL, json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": message}
    assert github_client.calls == []


def test_requires_authentication(client, github_client):
    response = client.post(URL, json={"repoUrl": REPO_URL, "base": "a", "head": "b"})
    assert response.status_code == 401
    assert github_client.calls == []
