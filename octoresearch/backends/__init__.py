"""Backend executors - one per data source kind.

Use lazy import so that importing the pipeline does not pull in filesystem
backends unless they are registered.
"""

from octoresearch.backends.base import BaseBackend, CallableBackend

__all__ = [
    "BaseBackend",
    "CallableBackend",
    "build_local_backends",
]


def __getattr__(name: str):
    if name == "build_local_backends":
        from .local import build_local_backends  # lazy

        return build_local_backends
    raise AttributeError(name)
