"""Bulk Execution Engine: runs a validated batch against backend executors.

# ROLE: cache lookup -> bounded concurrent dispatch -> per-query timeout ->
#       emptiness check -> normalize -> sanitize -> cache write
# INVARIANT: exactly one ExecutionOutcome per input query, placed by index.
# INVARIANT: a failure in one query never affects any other query.
# INVARIANT: only hasResults payloads are ever written to the cache.

Identical queries inside one batch (same cache key) share a single backend
call. Cache reads and writes are synchronous, so the backend call is the
only suspension point per query.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from octoresearch.backends.base import BaseBackend
from octoresearch.backends.errors import UNKNOWN_MESSAGE, classify_exception
from octoresearch.core.config.pipeline_config import PipelineConfig
from octoresearch.core.models import BaseQuery, ExecutionOutcome
from octoresearch.core.types import BackendKind, ErrorKind
from octoresearch.security.sanitizer import ContentSanitizer, get_sanitizer
from octoresearch.services.cache import ResponseCache, cache_key
from octoresearch.services.content_normalizer import ContentNormalizer


class BulkExecutor:
    """Executes batches of queries with bounded concurrency."""

    def __init__(
        self,
        backends: Mapping[BackendKind, BaseBackend],
        config: PipelineConfig | None = None,
        cache: ResponseCache | None = None,
        sanitizer: ContentSanitizer | None = None,
        normalizer: ContentNormalizer | None = None,
    ):
        self.backends = dict(backends)
        self.config = config or PipelineConfig()
        self.cache = cache if cache is not None else ResponseCache(self.config.cache)
        self.sanitizer = sanitizer or get_sanitizer()
        self.normalizer = normalizer or ContentNormalizer(self.config.max_content_bytes)

    @property
    def cache_enabled(self) -> bool:
        return self.config.cache.enabled

    async def run(self, queries: Sequence[BaseQuery]) -> list[ExecutionOutcome]:
        """Execute every query and return outcomes in input order."""
        outcomes: list[ExecutionOutcome | None] = [None] * len(queries)
        groups: dict[str, list[int]] = {}

        for index, query in enumerate(queries):
            key = cache_key(query.kind.value, query.params())
            if self.cache_enabled and key not in groups:
                cached = self.cache.get(key)
                if cached is not None:
                    outcomes[index] = ExecutionOutcome.has_results(cached, from_cache=True)
                    continue
            groups.setdefault(key, []).append(index)

        hits = sum(1 for o in outcomes if o is not None)
        logger.debug(
            f"Executing batch of {len(queries)} queries: {hits} cached, "
            f"{len(groups)} dispatched"
        )

        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        keys = list(groups)
        results = await asyncio.gather(
            *(self._execute_one(queries[groups[key][0]], key, semaphore) for key in keys),
            return_exceptions=True,
        )

        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                first = queries[groups[key][0]]
                logger.error(f"Unexpected failure processing {first.kind.value}: {type(result).__name__}")
                result = ExecutionOutcome.failure(ErrorKind.GENERIC, UNKNOWN_MESSAGE)
            for index in groups[key]:
                outcomes[index] = result

        return [o for o in outcomes if o is not None]

    async def _execute_one(
        self, query: BaseQuery, key: str, semaphore: asyncio.Semaphore
    ) -> ExecutionOutcome:
        backend = self.backends[query.kind]
        timeout = backend.timeout or self.config.query_timeout
        async with semaphore:
            try:
                data = await asyncio.wait_for(backend.execute(query), timeout=timeout)
            except Exception as e:
                return self._failure(backend, e, timeout)
        return self._process(query, backend, key, data)

    def _failure(self, backend: BaseBackend, exc: Exception, timeout: float) -> ExecutionOutcome:
        error = classify_exception(exc, timeout)
        detail = self.sanitizer.sanitize_outbound(str(exc) or type(exc).__name__).text
        logger.warning(f"{backend.describe()} failed ({error.kind.value}): {detail}")
        message = self.sanitizer.sanitize_outbound(error.message).text
        return ExecutionOutcome.failure(
            error.kind,
            message,
            retry_after=getattr(error, "retry_after", None),
            status_code=error.status_code,
        )

    def _process(
        self, query: BaseQuery, backend: BaseBackend, key: str, data: Any
    ) -> ExecutionOutcome:
        if data is not None and not isinstance(data, dict):
            logger.warning(
                f"{backend.describe()} returned {type(data).__name__}, expected a mapping"
            )
            return ExecutionOutcome.failure(ErrorKind.GENERIC, UNKNOWN_MESSAGE)
        if data is None or backend.is_empty(data):
            return ExecutionOutcome.empty()

        if query.allows_normalization:
            data, reduced = self.normalizer.normalize_payload(data)
            if reduced:
                logger.debug(f"Normalized {reduced} content field(s) for {query.kind.value}")

        data, report = self.sanitizer.sanitize_payload(data)
        if report.redacted_count:
            logger.warning(
                f"Redacted {report.redacted_count} secret(s) "
                f"[{', '.join(report.categories)}] from {query.kind.value} result"
            )

        if self.cache_enabled and not report.failed:
            self.cache.set(key, data, ttl=backend.cache_ttl)
        return ExecutionOutcome.has_results(data, redacted=report.redacted_count)
