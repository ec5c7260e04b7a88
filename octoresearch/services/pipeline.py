"""Request Processing Pipeline entry point.

Architecture Note: ResearchPipeline owns one cache instance and one
registry of backend executors for its lifetime. Every batch flows through
inbound sanitization, validation, bulk execution, hint generation and
response assembly, in that order. Only QueryValidationError escapes
execute_batch; backend failures become per-query error results.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from octoresearch.backends.base import BaseBackend
from octoresearch.core.config.pipeline_config import PipelineConfig
from octoresearch.core.types import BackendKind
from octoresearch.security.sanitizer import ContentSanitizer, get_sanitizer
from octoresearch.services.bulk_executor import BulkExecutor
from octoresearch.services.cache import ResponseCache
from octoresearch.services.content_normalizer import ContentNormalizer
from octoresearch.services.hints import generate_hints
from octoresearch.services.response_assembler import BatchResponse, assemble
from octoresearch.services.validator import validate_batch


class ResearchPipeline:
    """Validates, executes and assembles batches of research queries."""

    def __init__(
        self,
        backends: Iterable[BaseBackend] | Mapping[BackendKind, BaseBackend],
        config: PipelineConfig | None = None,
        cache: ResponseCache | None = None,
        sanitizer: ContentSanitizer | None = None,
        normalizer: ContentNormalizer | None = None,
    ):
        self.config = config or PipelineConfig()
        if isinstance(backends, Mapping):
            registry = {BackendKind(kind): backend for kind, backend in backends.items()}
        else:
            registry = {backend.kind: backend for backend in backends}
        self.backends: dict[BackendKind, BaseBackend] = registry
        self.cache = cache if cache is not None else ResponseCache(self.config.cache)
        self.sanitizer = sanitizer or get_sanitizer()
        self.executor = BulkExecutor(
            self.backends,
            self.config,
            cache=self.cache,
            sanitizer=self.sanitizer,
            normalizer=normalizer,
        )
        logger.debug(
            f"ResearchPipeline ready with {len(self.backends)} backends: "
            f"{', '.join(sorted(k.value for k in self.backends))}"
        )

    @property
    def supported_kinds(self) -> set[BackendKind]:
        return set(self.backends)

    async def execute_batch(self, queries: Any) -> BatchResponse:
        """Run one batch end to end.

        Raises:
            QueryValidationError: The batch was rejected before any dispatch.
        """
        cleaned, report = self.sanitizer.sanitize_inbound(queries)
        if report.dropped_keys:
            logger.warning(f"Dropped dangerous keys from queries: {sorted(set(report.dropped_keys))}")
        if report.redacted_count:
            logger.warning(
                f"Redacted {report.redacted_count} secret(s) from query parameters "
                f"[{', '.join(report.categories)}]"
            )

        validated = validate_batch(
            cleaned,
            self.config.max_batch_size,
            self.config.security,
            supported=self.supported_kinds,
        )

        outcomes = await self.executor.run(validated)
        hints = [
            generate_hints(query, outcome, self.config.max_hints)
            for query, outcome in zip(validated, outcomes)
        ]
        return assemble(
            validated,
            outcomes,
            hints,
            sanitizer=self.sanitizer,
            max_status_hints=self.config.max_hints,
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "backends": sorted(k.value for k in self.backends),
            "cache": self.cache.stats().to_dict(),
        }

    def health_check(self) -> dict[str, Any]:
        health = self.cache.validate_health()
        return {
            "status": "healthy" if health.is_healthy else "degraded",
            "cache": health.to_dict(),
        }
