"""Base class for MCP servers providing common initialization and lifecycle management.

This module provides a base class that handles:
- Backend registration and pipeline construction
- Debug logging that never touches stdout
- Lifecycle management (startup/shutdown)

Architecture Note: the pipeline (and with it the response cache) lives for
the whole server process, so repeated tool calls share cached results.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable

from loguru import logger

from octoresearch.backends.base import BaseBackend
from octoresearch.core.config.pipeline_config import PipelineConfig
from octoresearch.services.pipeline import ResearchPipeline


def debug_enabled() -> bool:
    return os.getenv("OCTORESEARCH_DEBUG", "").lower() in ("true", "1", "yes", "on")


class MCPServerBase(ABC):
    """Base class for MCP server implementations.

    Subclasses must implement:
    - _register_tools(): Register protocol-specific tool handlers
    - run(): Main server execution loop
    """

    def __init__(
        self,
        config: PipelineConfig,
        backends: Iterable[BaseBackend] | None = None,
        debug_mode: bool = False,
    ):
        self.config = config
        self.debug_mode = debug_mode or debug_enabled()
        self._backends = list(backends) if backends is not None else None

        self.pipeline: ResearchPipeline | None = None

        self._initialized = False
        self._init_lock = asyncio.Lock()

    def debug_log(self, message: str) -> None:
        """Log debug message if debug mode is enabled (file sink only in stdio mode)."""
        if self.debug_mode:
            logger.debug(f"[MCP] {message}")

    def _default_backends(self) -> list[BaseBackend]:
        from octoresearch.backends.local import build_local_backends

        root = self.config.get_workspace_root()
        self.debug_log(f"Serving local backends from {root}")
        return list(build_local_backends(root, search_timeout=self.config.query_timeout))

    async def initialize(self) -> None:
        """Build backends and the pipeline.

        This method is idempotent - safe to call multiple times.
        """
        async with self._init_lock:
            if self._initialized:
                return

            self.debug_log(f"Starting initialization with {self.config!r}")
            backends = self._backends if self._backends is not None else self._default_backends()
            self.pipeline = ResearchPipeline(backends, self.config)
            self._initialized = True
            self.debug_log(
                f"Pipeline ready: {', '.join(sorted(k.value for k in self.pipeline.supported_kinds))}"
            )

    async def cleanup(self) -> None:
        """Release resources and log final cache statistics."""
        if self.pipeline is not None:
            stats = self.pipeline.cache.stats()
            self.debug_log(
                f"Shutting down: {stats.hits} hits, {stats.misses} misses, "
                f"{stats.size} cached entries"
            )
            self.pipeline.cache.clear()
        self._initialized = False

    def ensure_pipeline(self) -> ResearchPipeline:
        """Return the pipeline, raising if the server is not initialized."""
        if self.pipeline is None:
            raise RuntimeError("Pipeline not initialized")
        return self.pipeline

    @abstractmethod
    def _register_tools(self) -> None:
        """Register tools with the protocol-specific server."""

    @abstractmethod
    async def run(self) -> None:
        """Run the server."""
