"""Response Assembler: builds the caller-facing batch response.

Deterministic and non-mutating. Inputs are copied into fresh structures,
``None`` values and empty containers are stripped recursively, and a final
outbound sanitizer pass runs over the whole response.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from octoresearch.core.models import BaseQuery, ExecutionOutcome
from octoresearch.core.types import OutcomeStatus
from octoresearch.security.sanitizer import ContentSanitizer, get_sanitizer
from octoresearch.services.hints import DEFAULT_MAX_HINTS, status_hints

BatchResponse = dict[str, Any]

_STATUS_HINT_KEYS = {
    OutcomeStatus.HAS_RESULTS: "hasResultsStatusHints",
    OutcomeStatus.EMPTY: "emptyStatusHints",
    OutcomeStatus.ERROR: "errorStatusHints",
}

_SUMMARY_WORDS = {
    OutcomeStatus.HAS_RESULTS: "data",
    OutcomeStatus.EMPTY: "empty",
    OutcomeStatus.ERROR: "error",
}


def strip_empty(value: Any) -> Any:
    """Copy of ``value`` without None values, empty lists or empty dicts."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            cleaned = strip_empty(item)
            if cleaned is None or (isinstance(cleaned, (list, dict)) and not cleaned):
                continue
            out[key] = cleaned
        return out
    if isinstance(value, (list, tuple)):
        items = [strip_empty(item) for item in value]
        return [
            item
            for item in items
            if item is not None and not (isinstance(item, (list, dict)) and not item)
        ]
    return value


def summarize(outcomes: Sequence[ExecutionOutcome]) -> str:
    """Short batch summary, e.g. ``"3 results: 2 data, 1 error."``."""
    total = len(outcomes)
    if total == 0:
        return "No queries processed."
    if total == 1:
        return "1 result."
    counts = [
        f"{sum(1 for o in outcomes if o.status is status)} {word}"
        for status, word in _SUMMARY_WORDS.items()
        if any(o.status is status for o in outcomes)
    ]
    return f"{total} results: {', '.join(counts)}."


def _result_entry(
    index: int, query: BaseQuery, outcome: ExecutionOutcome, hints: Sequence[str]
) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": index + 1,
        "status": outcome.status.value,
        "mainResearchGoal": query.main_research_goal,
        "researchGoal": query.research_goal,
        "reasoning": query.reasoning,
    }
    if outcome.is_error:
        entry["error"] = outcome.error
        entry["errorKind"] = outcome.error_kind.value if outcome.error_kind else None
        entry["retryAfter"] = outcome.retry_after
    else:
        entry["data"] = outcome.data
    entry["hints"] = list(hints)
    return entry


def assemble(
    queries: Sequence[BaseQuery],
    outcomes: Sequence[ExecutionOutcome],
    hints: Sequence[Sequence[str]],
    *,
    sanitizer: ContentSanitizer | None = None,
    max_status_hints: int = DEFAULT_MAX_HINTS,
) -> BatchResponse:
    """Combine queries, outcomes and per-query hints into a BatchResponse."""
    if not (len(queries) == len(outcomes) == len(hints)):
        raise ValueError(
            f"Mismatched batch: {len(queries)} queries, {len(outcomes)} outcomes, "
            f"{len(hints)} hint lists"
        )

    response: dict[str, Any] = {
        "results": [
            _result_entry(i, q, o, h)
            for i, (q, o, h) in enumerate(zip(queries, outcomes, hints))
        ],
    }
    present = {o.status for o in outcomes}
    for status, key in _STATUS_HINT_KEYS.items():
        if status in present:
            response[key] = status_hints(status, max_status_hints)
    response["instructions"] = summarize(outcomes)
    response["isError"] = bool(outcomes) and all(o.is_error for o in outcomes)

    cleaned = strip_empty(response)
    sanitized, _ = (sanitizer or get_sanitizer()).sanitize_payload(cleaned)
    return sanitized
