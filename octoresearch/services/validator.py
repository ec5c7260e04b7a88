"""Query validation.

Pure functions: a raw query mapping either becomes a frozen query model or
the caller gets a QueryValidationError listing every violated constraint
across the whole batch, so one round trip is enough to fix it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from octoresearch.core.config.pipeline_config import SecurityConfig
from octoresearch.core.exceptions import QueryValidationError, Violation
from octoresearch.core.models import QUERY_ADAPTER, BaseQuery
from octoresearch.core.types import BackendKind
from octoresearch.security.sanitizer import DANGEROUS_KEYS

_KNOWN_BACKENDS = {kind.value for kind in BackendKind}


def _join(location: str, part: Any) -> str:
    if isinstance(part, int):
        return f"{location}[{part}]"
    return f"{location}.{part}" if location else str(part)


def _check_tree(
    node: Any,
    location: str,
    depth: int,
    limits: SecurityConfig,
    out: list[tuple[str, str]],
) -> None:
    if depth > limits.max_depth:
        out.append((location, f"Nesting deeper than {limits.max_depth} levels"))
        return
    if isinstance(node, str):
        if len(node) > limits.max_string_length:
            out.append(
                (location, f"String longer than {limits.max_string_length} characters ({len(node)})")
            )
    elif isinstance(node, Mapping):
        for key, value in node.items():
            if key in DANGEROUS_KEYS:
                out.append((_join(location, key), "Dangerous key name is not allowed"))
                continue
            if not isinstance(key, str):
                out.append((_join(location, str(key)), "Keys must be strings"))
                continue
            _check_tree(value, _join(location, key), depth + 1, limits, out)
    elif isinstance(node, (list, tuple)):
        if len(node) > limits.max_array_length:
            out.append(
                (location, f"Array longer than {limits.max_array_length} items ({len(node)})")
            )
            return
        for i, item in enumerate(node):
            _check_tree(item, _join(location, i), depth + 1, limits, out)


def _pydantic_location(loc: tuple[Any, ...]) -> str:
    # Discriminated unions prefix the location with the tag value.
    parts = list(loc)
    if parts and isinstance(parts[0], str) and parts[0] in _KNOWN_BACKENDS:
        parts = parts[1:]
    location = ""
    for part in parts:
        location = _join(location, part)
    return location


def collect_violations(
    raw: Any, limits: SecurityConfig | None = None
) -> tuple[BaseQuery | None, list[tuple[str, str]]]:
    """Validate one raw query. Returns the model (when valid) and all violations."""
    limits = limits or SecurityConfig()
    problems: list[tuple[str, str]] = []

    if not isinstance(raw, Mapping):
        return None, [("", f"Query must be an object, got {type(raw).__name__}")]

    backend = raw.get("backend")
    if backend is None:
        problems.append(("backend", "Missing backend"))
    elif backend not in _KNOWN_BACKENDS:
        problems.append(("backend", f"Unknown backend '{backend}'"))

    _check_tree(raw, "", 0, limits, problems)

    for field_name in ("researchGoal", "reasoning", "mainResearchGoal"):
        value = raw.get(field_name)
        if isinstance(value, str) and len(value) > limits.max_goal_length:
            problems.append(
                (field_name, f"Must be at most {limits.max_goal_length} characters")
            )

    if backend not in _KNOWN_BACKENDS:
        return None, problems

    try:
        query = QUERY_ADAPTER.validate_python(dict(raw))
    except PydanticValidationError as e:
        for err in e.errors():
            problems.append((_pydantic_location(tuple(err.get("loc", ()))), err.get("msg", "Invalid value")))
        return None, problems

    return (query if not problems else None), problems


def validate(raw: Any, limits: SecurityConfig | None = None) -> BaseQuery:
    """Validate a single raw query, raising with every violation on failure."""
    query, problems = collect_violations(raw, limits)
    if problems or query is None:
        raise QueryValidationError(
            [Violation(query_index=0, location=loc, message=msg) for loc, msg in problems]
        )
    return query


def validate_batch(
    raw_queries: Any,
    max_batch_size: int,
    limits: SecurityConfig | None = None,
    supported: set[BackendKind] | None = None,
) -> list[BaseQuery]:
    """Validate a whole batch, collecting violations from every query."""
    if isinstance(raw_queries, (str, bytes)) or not isinstance(raw_queries, Sequence):
        raise QueryValidationError(
            [Violation(None, "queries", "Queries must be an array")]
        )
    if not raw_queries:
        raise QueryValidationError(
            [Violation(None, "queries", "Queries array is required and cannot be empty")]
        )
    if len(raw_queries) > max_batch_size:
        raise QueryValidationError(
            [
                Violation(
                    None,
                    "queries",
                    f"Batch of {len(raw_queries)} queries exceeds the maximum of {max_batch_size}",
                )
            ]
        )

    violations: list[Violation] = []
    queries: list[BaseQuery] = []
    for index, raw in enumerate(raw_queries):
        query, problems = collect_violations(raw, limits)
        violations.extend(Violation(index, loc, msg) for loc, msg in problems)
        if query is None:
            continue
        if supported is not None and query.kind not in supported:
            violations.append(
                Violation(index, "backend", f"No executor registered for '{query.kind.value}'")
            )
            continue
        queries.append(query)

    if violations:
        raise QueryValidationError(violations)
    return queries
