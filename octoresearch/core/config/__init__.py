"""Configuration models for octoresearch."""

from octoresearch.core.config.pipeline_config import (
    CacheConfig,
    PipelineConfig,
    SecurityConfig,
)

__all__ = ["CacheConfig", "PipelineConfig", "SecurityConfig"]
