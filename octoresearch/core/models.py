"""Query variants and execution outcomes.

Queries form a closed tagged union on the ``backend`` field: one frozen
pydantic model per backend kind, each declaring only the fields that backend
requires. Every variant also carries the universal traceability fields
(``researchGoal``, ``reasoning``, optional ``mainResearchGoal`` and
``intent``), which are excluded from the parameters used for cache identity.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel

from octoresearch.core.types import BackendKind, ErrorKind, OutcomeStatus, ResearchGoal


class BaseQuery(BaseModel):
    """Fields shared by every query variant."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    TRACE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"research_goal", "reasoning", "main_research_goal", "intent"}
    )

    research_goal: str = ""
    reasoning: str = ""
    main_research_goal: str | None = None
    intent: ResearchGoal | None = None

    @property
    def kind(self) -> BackendKind:
        return BackendKind(self.backend)  # type: ignore[attr-defined]

    @property
    def allows_normalization(self) -> bool:
        """False when the query opted out of content minification."""
        return bool(getattr(self, "minified", True))

    def params(self) -> dict[str, Any]:
        """Backend-specific parameters in wire form, without traceability fields."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude=set(self.TRACE_FIELDS),
        )


def _safe_relative_path(value: str) -> str:
    if "\0" in value:
        raise ValueError("Path contains a NUL byte")
    normalized = posixpath.normpath(value.replace("\\", "/"))
    if normalized == ".." or normalized.startswith("../") or "/../" in f"/{normalized}/":
        raise ValueError("Path contains invalid traversal patterns")
    return value


class GithubSearchCodeQuery(BaseQuery):
    backend: Literal["github_search_code"] = "github_search_code"
    keywords_to_search: list[str] = Field(min_length=1, max_length=5)
    owner: str | None = None
    repo: str | None = None
    extension: str | None = None
    filename: str | None = None
    path: str | None = None
    match: Literal["file", "path"] | None = None
    limit: int | None = Field(default=None, ge=1, le=100)


class GithubSearchRepositoriesQuery(BaseQuery):
    backend: Literal["github_search_repositories"] = "github_search_repositories"
    keywords_to_search: list[str] | None = None
    topics_to_search: list[str] | None = None
    owner: str | None = None
    language: str | None = None
    stars: str | None = None
    sort: Literal["stars", "forks", "updated", "best-match"] | None = None
    limit: int | None = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def require_terms(self) -> "GithubSearchRepositoriesQuery":
        if not self.keywords_to_search and not self.topics_to_search:
            raise ValueError("Either keywordsToSearch or topicsToSearch is required")
        return self


class GithubFetchContentQuery(BaseQuery):
    backend: Literal["github_fetch_content"] = "github_fetch_content"
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    path: str = Field(min_length=1)
    branch: str | None = None
    start_line: int | None = Field(default=None, ge=1)
    end_line: int | None = Field(default=None, ge=1)
    match_string: str | None = None
    match_string_context_lines: int | None = Field(default=None, ge=0, le=50)
    full_content: bool = False
    minified: bool = True

    @model_validator(mode="after")
    def check_line_range(self) -> "GithubFetchContentQuery":
        if self.start_line and self.end_line and self.end_line < self.start_line:
            raise ValueError("endLine must be greater than or equal to startLine")
        return self


class GithubViewRepoStructureQuery(BaseQuery):
    backend: Literal["github_view_repo_structure"] = "github_view_repo_structure"
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    branch: str | None = None
    path: str = ""
    depth: int = Field(default=1, ge=1, le=2)


class GithubSearchPullRequestsQuery(BaseQuery):
    backend: Literal["github_search_pull_requests"] = "github_search_pull_requests"
    query: str | None = None
    owner: str | None = None
    repo: str | None = None
    pr_number: int | None = Field(default=None, ge=1)
    state: Literal["open", "closed"] | None = None
    merged: bool | None = None
    with_content: bool = False
    with_comments: bool = False
    limit: int | None = Field(default=None, ge=1, le=100)

    @model_validator(mode="after")
    def require_scope(self) -> "GithubSearchPullRequestsQuery":
        if self.pr_number is not None and not (self.owner and self.repo):
            raise ValueError("prNumber requires owner and repo")
        if not (self.query or (self.owner and self.repo) or self.pr_number):
            raise ValueError("Provide query, owner and repo, or prNumber")
        return self


class LocalQuery(BaseQuery):
    """Local backends are implemented here, so unknown parameters are errors."""

    model_config = ConfigDict(extra="forbid")

    @field_validator("path", check_fields=False)
    def validate_path(cls, v: str) -> str:
        return _safe_relative_path(v)


class LocalSearchCodeQuery(LocalQuery):
    backend: Literal["local_search_code"] = "local_search_code"
    pattern: str = Field(min_length=1)
    path: str = "."
    fixed_string: bool = False
    case_sensitive: bool = True
    include: str | None = None
    max_results: int = Field(default=50, ge=1, le=500)


class LocalViewStructureQuery(LocalQuery):
    backend: Literal["local_view_structure"] = "local_view_structure"
    path: str = "."
    depth: int = Field(default=1, ge=1, le=5)
    show_hidden: bool = False
    max_entries: int = Field(default=200, ge=1, le=2000)


class LocalFetchContentQuery(LocalQuery):
    backend: Literal["local_fetch_content"] = "local_fetch_content"
    path: str = Field(min_length=1)
    start_line: int | None = Field(default=None, ge=1)
    end_line: int | None = Field(default=None, ge=1)
    match_string: str | None = None
    context_lines: int = Field(default=5, ge=0, le=50)
    char_offset: int = Field(default=0, ge=0)
    char_length: int | None = Field(default=None, ge=1, le=50_000)
    minified: bool = True

    @model_validator(mode="after")
    def check_line_range(self) -> "LocalFetchContentQuery":
        if self.start_line and self.end_line and self.end_line < self.start_line:
            raise ValueError("endLine must be greater than or equal to startLine")
        if self.char_offset and self.char_length is None:
            raise ValueError("charOffset requires charLength")
        return self


_AGE_UNITS = {"m": 60, "h": 3600, "d": 86400}


class LocalFindFilesQuery(LocalQuery):
    """Metadata search by name glob, entry type, depth and modification age."""

    backend: Literal["local_find_files"] = "local_find_files"
    path: str = "."
    name: str | None = None
    iname: str | None = None
    type: Literal["f", "d"] | None = None
    max_depth: int | None = Field(default=None, ge=1, le=20)
    modified_within: str | None = Field(default=None, pattern=r"^\d+[mhd]$")
    details: bool = False
    show_file_last_modified: bool = False
    limit: int = Field(default=1000, ge=1, le=10_000)
    files_per_page: int = Field(default=20, ge=1, le=100)
    file_page_number: int = Field(default=1, ge=1)

    @property
    def modified_within_seconds(self) -> int | None:
        """``modifiedWithin`` such as ``"7d"`` or ``"2h"`` in seconds."""
        if self.modified_within is None:
            return None
        return int(self.modified_within[:-1]) * _AGE_UNITS[self.modified_within[-1]]


Query = Annotated[
    Union[
        GithubSearchCodeQuery,
        GithubSearchRepositoriesQuery,
        GithubFetchContentQuery,
        GithubViewRepoStructureQuery,
        GithubSearchPullRequestsQuery,
        LocalSearchCodeQuery,
        LocalViewStructureQuery,
        LocalFetchContentQuery,
        LocalFindFilesQuery,
    ],
    Field(discriminator="backend"),
]

QUERY_ADAPTER: TypeAdapter[Query] = TypeAdapter(Query)

QUERY_MODELS: dict[BackendKind, type[BaseQuery]] = {
    BackendKind.GITHUB_SEARCH_CODE: GithubSearchCodeQuery,
    BackendKind.GITHUB_SEARCH_REPOSITORIES: GithubSearchRepositoriesQuery,
    BackendKind.GITHUB_FETCH_CONTENT: GithubFetchContentQuery,
    BackendKind.GITHUB_VIEW_REPO_STRUCTURE: GithubViewRepoStructureQuery,
    BackendKind.GITHUB_SEARCH_PULL_REQUESTS: GithubSearchPullRequestsQuery,
    BackendKind.LOCAL_SEARCH_CODE: LocalSearchCodeQuery,
    BackendKind.LOCAL_VIEW_STRUCTURE: LocalViewStructureQuery,
    BackendKind.LOCAL_FETCH_CONTENT: LocalFetchContentQuery,
    BackendKind.LOCAL_FIND_FILES: LocalFindFilesQuery,
}


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of executing one query: exactly one of hasResults, empty or error."""

    status: OutcomeStatus
    data: dict[str, Any] | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    retry_after: float | None = None
    status_code: int | None = None
    from_cache: bool = False
    redacted: int = 0

    @classmethod
    def has_results(
        cls, data: dict[str, Any], *, from_cache: bool = False, redacted: int = 0
    ) -> "ExecutionOutcome":
        return cls(
            status=OutcomeStatus.HAS_RESULTS,
            data=data,
            from_cache=from_cache,
            redacted=redacted,
        )

    @classmethod
    def empty(cls, data: dict[str, Any] | None = None) -> "ExecutionOutcome":
        return cls(status=OutcomeStatus.EMPTY, data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int | None = None,
    ) -> "ExecutionOutcome":
        return cls(
            status=OutcomeStatus.ERROR,
            error=message,
            error_kind=kind,
            retry_after=retry_after,
            status_code=status_code,
        )

    @property
    def is_error(self) -> bool:
        return self.status is OutcomeStatus.ERROR
