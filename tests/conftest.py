"""Shared fixtures for octoresearch tests."""

import pytest

from octoresearch.core.config.pipeline_config import CacheConfig, PipelineConfig
from octoresearch.core.types import BackendKind
from octoresearch.services.cache import ResponseCache
from tests.fixtures.fake_backends import FakeBackend, FakeClock


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> PipelineConfig:
    """Pipeline config with small limits so tests stay fast."""
    return PipelineConfig(max_batch_size=10, max_concurrency=3, query_timeout=2.0)


@pytest.fixture
def cache(fake_clock: FakeClock) -> ResponseCache:
    return ResponseCache(CacheConfig(max_entries=100), clock=fake_clock)


@pytest.fixture
def code_backend() -> FakeBackend:
    """github_search_code backend returning one matching file."""
    return FakeBackend(
        BackendKind.GITHUB_SEARCH_CODE,
        {"files": [{"path": "src/hooks.ts", "repository": "acme/widgets"}]},
    )


@pytest.fixture
def fetch_backend() -> FakeBackend:
    """github_fetch_content backend returning a small TypeScript file."""
    return FakeBackend(
        BackendKind.GITHUB_FETCH_CONTENT,
        {
            "path": "src/app.ts",
            "content": "// entry point\nexport const app = 1;\n\n\n\nexport default app;\n",
        },
    )
