"""Classification of backend failures into the pipeline's error taxonomy.

Backend executors that talk HTTP call ``classify_http_error`` with the
response status, headers and message and raise the returned exception.
``classify_exception`` turns anything that reaches the bulk execution
engine into a short, user-presentable message; raw exception text is only
ever logged.
"""

from __future__ import annotations

import asyncio
import math
import re
import time
from collections.abc import Mapping
from typing import Any

from octoresearch.core.exceptions import (
    BackendAuthError,
    BackendError,
    BackendTimeoutError,
    RateLimitedError,
)

SECONDARY_RATE_LIMIT_FALLBACK_SECONDS = 60
RESET_BUFFER_SECONDS = 1

_SECONDARY_RATE_LIMIT = re.compile(r"secondary rate limit", re.IGNORECASE)

STATUS_MESSAGES: dict[int, str] = {
    400: "Bad request. Check query parameters",
    401: "Authentication required. Check your token configuration",
    404: "Resource not found. Verify spelling and accessibility",
    409: "Conflict. The resource is in an unexpected state",
    422: "Invalid request. Check search syntax and parameter values",
    429: "Rate limit exceeded. Wait before retrying",
    500: "Backend server error. Retry after a brief delay",
    502: "Backend temporarily unavailable. Retry after a brief delay",
    503: "Backend temporarily unavailable. Retry after a brief delay",
    504: "Backend gateway timeout. Retry with a narrower query",
}

PERMISSION_MESSAGE = "Access denied. Check permissions or try public repositories"
NETWORK_MESSAGE = "Network error. Check connection and retry"
UNKNOWN_MESSAGE = "Backend request failed"


def _header(headers: Mapping[str, Any] | None, name: str) -> str | None:
    if not headers:
        return None
    for key, value in headers.items():
        if str(key).lower() == name:
            return None if value is None else str(value)
    return None


def _retry_after_from_reset(reset: str | None, now: float | None = None) -> float | None:
    if not reset:
        return None
    try:
        reset_at = float(reset)
    except ValueError:
        return None
    now = time.time() if now is None else now
    return float(max(math.ceil(reset_at - now) + RESET_BUFFER_SECONDS, 0))


def classify_http_error(
    status: int,
    headers: Mapping[str, Any] | None = None,
    message: str = "",
    *,
    now: float | None = None,
) -> BackendError:
    """Map an HTTP failure onto the error taxonomy.

    403 is the ambiguous case: a secondary rate limit (message or
    ``retry-after``), a primary rate limit (``x-ratelimit-remaining: 0``)
    or a plain permission error, checked in that order.
    """
    if status == 401:
        return BackendAuthError(STATUS_MESSAGES[401], status_code=401)

    if status == 403:
        retry_after_header = _header(headers, "retry-after")
        if _SECONDARY_RATE_LIMIT.search(message or "") or retry_after_header:
            try:
                retry_after = float(retry_after_header) if retry_after_header else None
            except ValueError:
                retry_after = None
            retry_after = retry_after or float(SECONDARY_RATE_LIMIT_FALLBACK_SECONDS)
            return RateLimitedError(
                f"Secondary rate limit exceeded. Retry after {int(retry_after)} seconds",
                retry_after=retry_after,
                status_code=403,
            )
        if _header(headers, "x-ratelimit-remaining") == "0":
            retry_after = _retry_after_from_reset(_header(headers, "x-ratelimit-reset"), now)
            text = "Rate limit exceeded"
            if retry_after is not None:
                text += f". Resets in {int(retry_after)} seconds"
            return RateLimitedError(text, retry_after=retry_after, status_code=403)
        return BackendError(PERMISSION_MESSAGE, status_code=403)

    if status == 429:
        retry_after_header = _header(headers, "retry-after")
        try:
            retry_after = float(retry_after_header) if retry_after_header else None
        except ValueError:
            retry_after = None
        if retry_after is None:
            retry_after = _retry_after_from_reset(_header(headers, "x-ratelimit-reset"), now)
        return RateLimitedError(STATUS_MESSAGES[429], retry_after=retry_after, status_code=429)

    if status in STATUS_MESSAGES:
        return BackendError(STATUS_MESSAGES[status], status_code=status)
    if status >= 500:
        return BackendError(STATUS_MESSAGES[500], status_code=status)
    return BackendError(f"{UNKNOWN_MESSAGE} (HTTP {status})", status_code=status)


def classify_exception(exc: BaseException, timeout: float | None = None) -> BackendError:
    """Normalize any failure raised by an executor into a BackendError."""
    if isinstance(exc, BackendError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        seconds = f" after {timeout:g}s" if timeout is not None else ""
        return BackendTimeoutError(
            f"Query timed out{seconds}. Narrow the query scope and retry"
        )
    if isinstance(exc, PermissionError):
        return BackendError(PERMISSION_MESSAGE)
    if isinstance(exc, FileNotFoundError):
        return BackendError(STATUS_MESSAGES[404], status_code=404)
    if isinstance(exc, (ConnectionError, OSError)):
        return BackendError(NETWORK_MESSAGE)
    return BackendError(f"{UNKNOWN_MESSAGE} ({type(exc).__name__})")
