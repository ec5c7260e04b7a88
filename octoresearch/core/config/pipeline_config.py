"""Pipeline configuration for octoresearch.

This module provides the process-wide configuration object consumed by the
pipeline: concurrency bound, per-query timeout, batch size ceiling, cache
capacity and TTLs, and validator/sanitizer limits.

Configuration can be provided via:
- Environment variables (OCTORESEARCH_PIPELINE__*, OCTORESEARCH_CACHE__*,
  OCTORESEARCH_SECURITY__*)
- Keyword arguments
- Default values
"""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from octoresearch.core.types import BackendKind

# Seconds. Remote search results go stale faster than repository metadata;
# local files may change at any moment.
DEFAULT_BACKEND_TTLS: dict[str, int] = {
    BackendKind.GITHUB_SEARCH_CODE.value: 3600,
    BackendKind.GITHUB_SEARCH_REPOSITORIES.value: 7200,
    BackendKind.GITHUB_FETCH_CONTENT.value: 3600,
    BackendKind.GITHUB_VIEW_REPO_STRUCTURE.value: 7200,
    BackendKind.GITHUB_SEARCH_PULL_REQUESTS.value: 1800,
    BackendKind.LOCAL_SEARCH_CODE.value: 60,
    BackendKind.LOCAL_VIEW_STRUCTURE.value: 60,
    BackendKind.LOCAL_FETCH_CONTENT.value: 60,
    BackendKind.LOCAL_FIND_FILES.value: 60,
}


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return int(raw)


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


class CacheConfig(BaseModel):
    """Bounded in-memory response cache settings."""

    enabled: bool = Field(default=True, description="Serve and store results via the cache")

    max_entries: int = Field(
        default=1000, ge=1, description="Hard cap on the number of cached entries"
    )

    default_ttl: int = Field(
        default=86400, ge=1, description="TTL in seconds for backends without an entry in ttls"
    )

    ttls: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_BACKEND_TTLS),
        description="Per-backend TTL in seconds, keyed by backend kind",
    )

    @field_validator("ttls")
    def validate_ttls(cls, v: dict[str, int]) -> dict[str, int]:
        """Reject non-positive TTLs."""
        for prefix, ttl in v.items():
            if ttl <= 0:
                raise ValueError(f"TTL for {prefix} must be positive, got {ttl}")
        return v

    def ttl_for(self, prefix: str) -> int:
        return self.ttls.get(prefix, self.default_ttl)

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load cache config from environment variables."""
        config: dict[str, Any] = {}
        if enabled := os.getenv("OCTORESEARCH_CACHE__ENABLED"):
            config["enabled"] = enabled.strip().lower() in ("1", "true", "yes", "on")
        if (max_entries := _env_int("OCTORESEARCH_CACHE__MAX_ENTRIES")) is not None:
            config["max_entries"] = max_entries
        if (default_ttl := _env_int("OCTORESEARCH_CACHE__DEFAULT_TTL")) is not None:
            config["default_ttl"] = default_ttl
        return config


class SecurityConfig(BaseModel):
    """Validator and sanitizer limits."""

    max_string_length: int = Field(
        default=10000, ge=1, description="Maximum length of any string parameter"
    )

    max_array_length: int = Field(
        default=100, ge=1, description="Maximum number of items in any array parameter"
    )

    max_depth: int = Field(
        default=10, ge=1, description="Maximum nesting depth of query parameters"
    )

    max_goal_length: int = Field(
        default=500, ge=1, description="Maximum length of researchGoal and reasoning"
    )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load security config from environment variables."""
        config: dict[str, Any] = {}
        if (value := _env_int("OCTORESEARCH_SECURITY__MAX_STRING_LENGTH")) is not None:
            config["max_string_length"] = value
        if (value := _env_int("OCTORESEARCH_SECURITY__MAX_ARRAY_LENGTH")) is not None:
            config["max_array_length"] = value
        return config


class PipelineConfig(BaseModel):
    """Process-wide configuration for the request processing pipeline."""

    max_batch_size: int = Field(
        default=10, ge=1, le=100, description="Maximum number of queries per batch"
    )

    max_concurrency: int = Field(
        default=3, ge=1, description="Maximum backend calls in flight at once"
    )

    query_timeout: float = Field(
        default=60.0, gt=0, description="Per-query backend timeout in seconds"
    )

    max_hints: int = Field(
        default=5, ge=1, description="Maximum hints attached to one result"
    )

    max_content_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        description="Content above this size skips normalization",
    )

    workspace_root: Path | None = Field(
        default=None, description="Root directory served by the local backends"
    )

    cache: CacheConfig = Field(default_factory=CacheConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @field_validator("workspace_root")
    def validate_workspace_root(cls, v: Path | None) -> Path | None:
        """Convert string paths to Path objects."""
        if v is not None and not isinstance(v, Path):
            return Path(v)
        return v

    def get_workspace_root(self) -> Path:
        return (self.workspace_root or Path.cwd()).resolve()

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load pipeline config from environment variables."""
        config: dict[str, Any] = {}
        if (value := _env_int("OCTORESEARCH_PIPELINE__MAX_BATCH_SIZE")) is not None:
            config["max_batch_size"] = value
        if (value := _env_int("OCTORESEARCH_PIPELINE__MAX_CONCURRENCY")) is not None:
            config["max_concurrency"] = value
        if (value := _env_float("OCTORESEARCH_PIPELINE__QUERY_TIMEOUT")) is not None:
            config["query_timeout"] = value
        elif (value_ms := _env_int("OCTORESEARCH_PIPELINE__QUERY_TIMEOUT_MS")) is not None:
            config["query_timeout"] = value_ms / 1000
        if (value := _env_int("OCTORESEARCH_PIPELINE__MAX_HINTS")) is not None:
            config["max_hints"] = value
        if root := os.getenv("OCTORESEARCH_WORKSPACE_ROOT"):
            config["workspace_root"] = Path(root)
        return config

    @classmethod
    def from_env(cls, **overrides: Any) -> "PipelineConfig":
        """Build a validated config from the environment plus explicit overrides."""
        data = cls.load_from_env()
        data["cache"] = CacheConfig(**CacheConfig.load_from_env())
        data["security"] = SecurityConfig(**SecurityConfig.load_from_env())
        data.update(overrides)
        return cls(**data)

    def __repr__(self) -> str:
        return (
            f"PipelineConfig(max_batch_size={self.max_batch_size}, "
            f"max_concurrency={self.max_concurrency}, query_timeout={self.query_timeout})"
        )
