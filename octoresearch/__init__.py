"""octoresearch: request processing pipeline for batched research queries."""

from octoresearch.version import __version__

__all__ = ["__version__", "ResearchPipeline", "PipelineConfig"]


def __getattr__(name: str):
    if name == "ResearchPipeline":
        from .services.pipeline import ResearchPipeline  # lazy

        return ResearchPipeline
    if name == "PipelineConfig":
        from .core.config import PipelineConfig  # lazy

        return PipelineConfig
    raise AttributeError(name)
