"""Shared enumerations for the request processing pipeline."""

from __future__ import annotations

from enum import Enum


class BackendKind(str, Enum):
    """Data sources a query can target. The value doubles as the MCP tool name."""

    GITHUB_SEARCH_CODE = "github_search_code"
    GITHUB_SEARCH_REPOSITORIES = "github_search_repositories"
    GITHUB_FETCH_CONTENT = "github_fetch_content"
    GITHUB_VIEW_REPO_STRUCTURE = "github_view_repo_structure"
    GITHUB_SEARCH_PULL_REQUESTS = "github_search_pull_requests"
    LOCAL_SEARCH_CODE = "local_search_code"
    LOCAL_VIEW_STRUCTURE = "local_view_structure"
    LOCAL_FETCH_CONTENT = "local_fetch_content"
    LOCAL_FIND_FILES = "local_find_files"

    @property
    def is_local(self) -> bool:
        return self.value.startswith("local_")


class OutcomeStatus(str, Enum):
    """Tagged state of one executed query."""

    HAS_RESULTS = "hasResults"
    EMPTY = "empty"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Error classes that receive distinct handling and hints."""

    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    GENERIC = "generic"


class ResearchGoal(str, Enum):
    """Declared intent of a query, used to refine guidance hints."""

    DISCOVERY = "discovery"
    ANALYSIS = "analysis"
    DEBUGGING = "debugging"
    CODE_GENERATION = "code_generation"
    CODE_ANALYSIS = "code_analysis"
    CODE_REVIEW = "code_review"
    CODE_OPTIMIZATION = "code_optimization"
    CODE_REFACTORING = "code_refactoring"
    CONTEXT_GENERATION = "context_generation"
    DOCS_GENERATION = "docs_generation"
    EXPLORATION = "exploration"

    def canonical(self) -> ResearchGoal:
        """Collapse alias intents onto the goal whose guidance they share."""
        return _GOAL_ALIASES.get(self, self)


_GOAL_ALIASES = {
    ResearchGoal.ANALYSIS: ResearchGoal.CODE_ANALYSIS,
    ResearchGoal.EXPLORATION: ResearchGoal.DISCOVERY,
    ResearchGoal.CODE_REFACTORING: ResearchGoal.CODE_ANALYSIS,
}
