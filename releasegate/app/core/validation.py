"""Request input validation.

Every validator is a pure function returning a ValidationResult that holds
either the cleaned value or a human-readable error. Handlers turn errors
into HTTP 400 responses.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping

GITHUB_USERNAME_RE = re.compile(r"[\w.-]+", re.ASCII)
GITHUB_REPO_NAME_RE = re.compile(r"[\w.-]+", re.ASCII)
GITHUB_REF_RE = re.compile(r"[\w./-]+", re.ASCII)
GITHUB_REPO_URL_RE = re.compile(
    r"https://github\.com/(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)", re.ASCII
)
_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

MAX_USERNAME_LENGTH = 39
MAX_REPO_NAME_LENGTH = 100
MAX_REF_LENGTH = 255
MIN_MARKDOWN_LENGTH = 10
MAX_MARKDOWN_LENGTH = 10000
MAX_PER_PAGE = 100

VALID_VISIBILITIES = ("all", "public", "private")
VALID_AFFILIATIONS = ("owner", "collaborator", "organization_member")
VALID_TYPES = ("all", "owner", "public", "private", "member")
VALID_SORTS = ("created", "updated", "pushed", "full_name")
VALID_DIRECTIONS = ("asc", "desc")

_DANGEROUS_MARKUP = [
    re.compile(
        rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>", re.IGNORECASE
    )
    for tag in ("script", "iframe", "object", "embed")
]
_JAVASCRIPT_URI_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validator: a cleaned value or an error, never both.

    Build instances through ``ok`` and ``fail``.
    """

    value: Any = None
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @classmethod
    def ok(cls, value: Any) -> "ValidationResult":
        return cls(value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(error=error)


def _parse_int(value: Any) -> int | None:
    """Parse a leading integer the way query parameters arrive.

    Accepts ints, finite floats (truncated) and strings starting with an
    integer ("10", " 5 ", "20abc"). Returns None for anything else.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        return int(match.group(1)) if match else None
    return None


def _validate_name(
    value: Any,
    *,
    label: str,
    max_length: int,
    pattern: re.Pattern,
    invalid_message: str,
) -> ValidationResult:
    if not value or not isinstance(value, str):
        return ValidationResult.fail(f"{label} is required and must be a string")
    if len(value) > max_length:
        return ValidationResult.fail(f"{label} must be {max_length} characters or less")
    if not pattern.fullmatch(value) or _has_dot_segment(value):
        return ValidationResult.fail(invalid_message)
    return ValidationResult.ok(value.strip())


def _has_dot_segment(value: str) -> bool:
    """True when any ``/``-separated part is ``.`` or ``..``.

    Such parts would be collapsed in the request path and escape the
    repository the caller named.
    """
    return any(part in (".", "..") for part in value.split("/"))


def validate_github_username(username: Any) -> ValidationResult:
    return _validate_name(
        username,
        label="Username",
        max_length=MAX_USERNAME_LENGTH,
        pattern=GITHUB_USERNAME_RE,
        invalid_message="Invalid GitHub username format",
    )


def validate_github_repo_name(repo: Any) -> ValidationResult:
    return _validate_name(
        repo,
        label="Repository name",
        max_length=MAX_REPO_NAME_LENGTH,
        pattern=GITHUB_REPO_NAME_RE,
        invalid_message="Invalid repository name format",
    )


def validate_github_ref(ref: Any) -> ValidationResult:
    """Validate a branch, tag or commit SHA."""
    return _validate_name(
        ref,
        label="Reference",
        max_length=MAX_REF_LENGTH,
        pattern=GITHUB_REF_RE,
        invalid_message="Invalid reference format",
    )


def validate_pagination_params(params: Mapping[str, Any]) -> ValidationResult:
    """Validate optional ``per_page`` and ``page``.

    Absent values are left out of the result rather than defaulted.
    """
    validated: Dict[str, int] = {}

    if "per_page" in params:
        per_page = _parse_int(params["per_page"])
        if per_page is None or per_page < 1 or per_page > MAX_PER_PAGE:
            return ValidationResult.fail("per_page must be between 1 and 100")
        validated["per_page"] = per_page

    if "page" in params:
        page = _parse_int(params["page"])
        if page is None or page < 1:
            return ValidationResult.fail("page must be a positive integer")
        validated["page"] = page

    return ValidationResult.ok(validated)


def _validate_owner_and_repo(params: Mapping[str, Any]) -> ValidationResult:
    owner = validate_github_username(params.get("owner"))
    if not owner.valid:
        return owner
    repo = validate_github_repo_name(params.get("repo"))
    if not repo.valid:
        return repo
    return ValidationResult.ok({"owner": owner.value, "repo": repo.value})


def validate_list_tags(params: Mapping[str, Any]) -> ValidationResult:
    names = _validate_owner_and_repo(params)
    if not names.valid:
        return names
    pagination = validate_pagination_params(params)
    if not pagination.valid:
        return pagination
    return ValidationResult.ok({**names.value, **pagination.value})


def validate_compare_commits(params: Mapping[str, Any]) -> ValidationResult:
    names = _validate_owner_and_repo(params)
    if not names.valid:
        return names
    base = validate_github_ref(params.get("base"))
    if not base.valid:
        return ValidationResult.fail(f"Base {base.error}")
    head = validate_github_ref(params.get("head"))
    if not head.valid:
        return ValidationResult.fail(f"Head {head.error}")
    return ValidationResult.ok({**names.value, "base": base.value, "head": head.value})


def validate_list_for_authenticated_user(params: Mapping[str, Any]) -> ValidationResult:
    validated: Dict[str, Any] = {}

    visibility = params.get("visibility")
    if visibility:
        if visibility not in VALID_VISIBILITIES:
            return ValidationResult.fail("visibility must be one of: all, public, private")
        validated["visibility"] = visibility

    affiliation = params.get("affiliation")
    if affiliation:
        if not isinstance(affiliation, str):
            return ValidationResult.fail("Invalid affiliation value")
        affiliations = [a.strip() for a in affiliation.split(",")]
        if not all(a in VALID_AFFILIATIONS for a in affiliations):
            return ValidationResult.fail("Invalid affiliation value")
        validated["affiliation"] = affiliation

    repo_type = params.get("type")
    if repo_type:
        if repo_type not in VALID_TYPES:
            return ValidationResult.fail("Invalid type value")
        validated["type"] = repo_type

    sort = params.get("sort")
    if sort:
        if sort not in VALID_SORTS:
            return ValidationResult.fail("Invalid sort value")
        validated["sort"] = sort

    direction = params.get("direction")
    if direction:
        if direction not in VALID_DIRECTIONS:
            return ValidationResult.fail("direction must be asc or desc")
        validated["direction"] = direction

    pagination = validate_pagination_params(params)
    if not pagination.valid:
        return pagination

    return ValidationResult.ok({**validated, **pagination.value})


def validate_get_repo(params: Mapping[str, Any]) -> ValidationResult:
    return _validate_owner_and_repo(params)


def sanitize_markdown(markdown: Any) -> str:
    """Strip active content from markdown and cap its length.

    Removes script/iframe/object/embed elements, ``javascript:`` URIs and
    inline event-handler attributes.
    """
    if not markdown or not isinstance(markdown, str):
        return ""
    cleaned = markdown
    for pattern in _DANGEROUS_MARKUP:
        cleaned = pattern.sub("", cleaned)
    cleaned = _JAVASCRIPT_URI_RE.sub("", cleaned)
    cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    return cleaned.strip()[:MAX_MARKDOWN_LENGTH]


def validate_markdown(markdown: Any) -> ValidationResult:
    """Validate and sanitize release notes submitted for enhancement."""
    if not markdown or not isinstance(markdown, str):
        return ValidationResult.fail("Invalid request: markdown field is required")
    if len(markdown) < MIN_MARKDOWN_LENGTH:
        return ValidationResult.fail("Invalid request: markdown content too short")
    if len(markdown) > MAX_MARKDOWN_LENGTH:
        return ValidationResult.fail(
            f"Invalid request: markdown content too long (max {MAX_MARKDOWN_LENGTH} characters)"
        )
    return ValidationResult.ok(sanitize_markdown(markdown))


def parse_github_url(url: Any) -> ValidationResult:
    """Parse ``https://github.com/<owner>/<repo>`` into owner and repo.

    A trailing slash and a ``.git`` suffix are tolerated.
    """
    if not url or not isinstance(url, str):
        return ValidationResult.fail("Repository URL is required")
    cleaned = url.strip().rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]
    match = GITHUB_REPO_URL_RE.fullmatch(cleaned)
    if not match:
        return ValidationResult.fail(
            "Invalid GitHub repository URL format. Example: https://github.com/owner/repo"
        )
    names = _validate_owner_and_repo(match.groupdict())
    if not names.valid:
        return names
    return ValidationResult.ok({**names.value, "url": cleaned})
