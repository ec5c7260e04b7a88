"""Backend executor interface.

A backend executor performs the actual call for one data source. The
pipeline treats it as an opaque async function: given one validated query
it returns a raw result mapping or raises (ideally a BackendError subclass).

Emptiness is decided per backend kind so that "valid call, zero matches"
is told apart from data without re-inspecting raw responses later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from octoresearch.core.models import BaseQuery
from octoresearch.core.types import BackendKind


def _no_items(*fields: str) -> Callable[[dict[str, Any]], bool]:
    def check(data: dict[str, Any]) -> bool:
        return all(not data.get(name) for name in fields)

    return check


EMPTY_RESULT_RULES: dict[BackendKind, Callable[[dict[str, Any]], bool]] = {
    BackendKind.GITHUB_SEARCH_CODE: _no_items("files"),
    BackendKind.GITHUB_SEARCH_REPOSITORIES: _no_items("repositories"),
    BackendKind.GITHUB_SEARCH_PULL_REQUESTS: _no_items("pull_requests"),
    BackendKind.GITHUB_VIEW_REPO_STRUCTURE: _no_items("files", "folders"),
    BackendKind.LOCAL_SEARCH_CODE: _no_items("files"),
    BackendKind.LOCAL_VIEW_STRUCTURE: _no_items("files", "folders"),
    BackendKind.LOCAL_FIND_FILES: _no_items("files"),
}


class BaseBackend(ABC):
    """Abstract executor for one backend kind."""

    kind: BackendKind
    # Per-backend override of the pipeline-wide query timeout, in seconds.
    timeout: float | None = None
    # Per-backend override of the cache TTL, in seconds.
    cache_ttl: float | None = None

    @abstractmethod
    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        """Run one query against the data source."""

    def is_empty(self, data: dict[str, Any]) -> bool:
        """True when a successful call produced no matches.

        Content fetches are never empty: a missing file is an error.
        """
        if not data:
            return True
        rule = EMPTY_RESULT_RULES.get(self.kind)
        return rule(data) if rule is not None else False

    def describe(self) -> str:
        return f"{type(self).__name__}({self.kind.value})"


class CallableBackend(BaseBackend):
    """Adapts a plain async function into a backend executor."""

    def __init__(
        self,
        kind: BackendKind,
        func: Callable[[BaseQuery], Awaitable[dict[str, Any]]],
        *,
        timeout: float | None = None,
        cache_ttl: float | None = None,
        is_empty: Callable[[dict[str, Any]], bool] | None = None,
    ):
        self.kind = kind
        self._func = func
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._is_empty = is_empty

    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        return await self._func(query)

    def is_empty(self, data: dict[str, Any]) -> bool:
        if self._is_empty is not None:
            return self._is_empty(data)
        return super().is_empty(data)
