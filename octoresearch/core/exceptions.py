"""Exception hierarchy for the request processing pipeline.

Only QueryValidationError ever escapes execute_batch. Backend errors are
raised by executors and converted into per-query error outcomes by the
bulk execution engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from octoresearch.core.types import ErrorKind


class PipelineError(Exception):
    """Base class for all octoresearch errors."""


@dataclass(frozen=True)
class Violation:
    """A single failed constraint on one query of a batch."""

    query_index: int | None
    location: str
    message: str

    def __str__(self) -> str:
        where = self.location or "<root>"
        if self.query_index is None:
            return f"batch: {self.message}"
        return f"queries[{self.query_index}].{where}: {self.message}"


class QueryValidationError(PipelineError):
    """Batch rejected before execution. Carries every violated constraint."""

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        count = len(self.violations)
        summary = "; ".join(str(v) for v in self.violations[:5])
        if count > 5:
            summary += f"; ... ({count - 5} more)"
        super().__init__(f"{count} validation error(s): {summary}")

    def to_dict(self) -> dict:
        return {
            "error": "Invalid queries",
            "violations": [
                {
                    "queryIndex": v.query_index,
                    "location": v.location,
                    "message": v.message,
                }
                for v in self.violations
            ],
        }


class BackendError(PipelineError):
    """Failure reported by a backend executor.

    The message is expected to be short and user-presentable. Anything
    longer or rawer belongs in the log, not here.
    """

    kind: ErrorKind = ErrorKind.GENERIC

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class BackendAuthError(BackendError):
    """Credentials missing or rejected. Never retried automatically."""

    kind = ErrorKind.AUTH


class RateLimitedError(BackendError):
    """Backend signalled throttling."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class BackendTimeoutError(BackendError):
    """Per-query deadline exceeded."""

    kind = ErrorKind.TIMEOUT
