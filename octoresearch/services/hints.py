"""Hint Generator: guidance strings for each executed query.

Pure lookup and composition over ``hint_tables``. Order of precedence:

- errors: kind-specific recovery hint, then backend error recovery, then
  generic error hints (an error always gets at least one hint)
- hasResults / empty: research-intent guidance, then backend hints

Blank hints are dropped, duplicates removed and the list capped.
"""

from __future__ import annotations

from collections.abc import Iterable

from octoresearch.core.models import BaseQuery, ExecutionOutcome
from octoresearch.core.types import BackendKind, ErrorKind, OutcomeStatus
from octoresearch.services.hint_tables import (
    DEFAULT_RETRY_SECONDS,
    ERROR_RECOVERY,
    GENERIC_ERROR_HINTS,
    RESEARCH_GUIDANCE,
    STATUS_HINTS,
    STATUS_RECOVERY,
    TOOL_HINTS,
)

DEFAULT_MAX_HINTS = 5


def _finalize(hints: Iterable[str], max_hints: int) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for hint in hints:
        if not hint or not hint.strip() or hint in seen:
            continue
        seen.add(hint)
        result.append(hint)
        if len(result) >= max_hints:
            break
    return result


def recovery_hint(outcome: ExecutionOutcome) -> str:
    """The first hint for an error outcome, specific to its error kind."""
    kind = outcome.error_kind or ErrorKind.GENERIC
    if kind is ErrorKind.RATE_LIMITED:
        seconds = int(outcome.retry_after) if outcome.retry_after else DEFAULT_RETRY_SECONDS
        return ERROR_RECOVERY[kind].format(seconds=seconds)
    if kind is ErrorKind.GENERIC and outcome.status_code in STATUS_RECOVERY:
        return STATUS_RECOVERY[outcome.status_code]
    return ERROR_RECOVERY[kind]


def _error_hints(kind: BackendKind, outcome: ExecutionOutcome) -> list[str]:
    hints = [recovery_hint(outcome)]
    hints.extend(TOOL_HINTS.get(kind, {}).get(OutcomeStatus.ERROR, ()))
    hints.extend(GENERIC_ERROR_HINTS)
    return hints


def _guidance_hints(query: BaseQuery, status: OutcomeStatus) -> list[str]:
    hints: list[str] = []
    if query.intent is not None:
        hints.extend(RESEARCH_GUIDANCE.get(query.intent.canonical(), {}).get(status, ()))
    hints.extend(TOOL_HINTS.get(query.kind, {}).get(status, ()))
    return hints


def generate_hints(
    query: BaseQuery,
    outcome: ExecutionOutcome,
    max_hints: int = DEFAULT_MAX_HINTS,
) -> list[str]:
    """Hints for one query/outcome pair. Same inputs always give the same list."""
    if outcome.is_error:
        return _finalize(_error_hints(query.kind, outcome), max(max_hints, 1))
    return _finalize(_guidance_hints(query, outcome.status), max_hints)


def status_hints(status: OutcomeStatus, max_hints: int = DEFAULT_MAX_HINTS) -> list[str]:
    """Batch-level hints for one status present in the batch."""
    return _finalize(STATUS_HINTS.get(status, ()), max_hints)
