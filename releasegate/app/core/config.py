import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON (recommended format), but tolerate non-JSON values to avoid
    # crashing the app on misconfigured deployments.
    if raw.startswith(("[", "{", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # If a host is provided without scheme, support both HTTP and HTTPS
        # origins. Browsers include the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    # Deduplicate while preserving order.
    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Secrets default to empty strings so a misconfigured deployment still
    starts; handlers check them per request and answer with a
    configuration error instead.
    """

    # Debug mode - enables debug-level request logs
    debug: bool = False
    # production | development (development also logs stack traces)
    environment: str = "production"

    # Identity service (Supabase Auth)
    supabase_url: str = ""
    supabase_service_key: str = ""
    supabase_anon_key: str = ""

    # AI completion service
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    github_max_retries: int = 2

    # Per-user quotas (requests per window)
    enhance_rate_limit: int = 10
    github_rate_limit: int = 60
    rate_limit_window_seconds: int = 3600
    rate_limit_max_entries: int = 10000

    # Redis settings (optional shared rate-limit store)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Upper bound for every external call
    upstream_timeout_seconds: float = 15.0

    # HTTP Client connection pool settings
    httpx_connect_timeout: float = 5.0  # Time to establish connection
    httpx_write_timeout: float = 5.0  # Time to send request data
    httpx_pool_timeout: float = 5.0  # Time to acquire connection from pool
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # text | structured | json

    # CORS settings
    # Use NoDecode so misconfigured values (e.g. "43.163.94.63") don't crash JSON
    # parsing at startup.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("enhance_rate_limit", "github_rate_limit", "rate_limit_window_seconds")
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("upstream_timeout_seconds", "httpx_connect_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("github_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("github_max_retries must not be negative")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    @property
    def debug_logging(self) -> bool:
        """Whether debug-level request logs should be written."""
        return self.debug or self.is_development

    @property
    def identity_api_key(self) -> str:
        """Key sent as ``apikey`` on user-scoped identity calls."""
        return self.supabase_anon_key or self.supabase_service_key

    def missing(self, *names: str) -> list[str]:
        """Return the upper-case env names of unset settings among ``names``."""
        return [name.upper() for name in names if not str(getattr(self, name, "") or "").strip()]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
