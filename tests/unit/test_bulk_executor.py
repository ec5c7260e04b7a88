"""Unit tests for the bulk execution engine."""

import asyncio
import random
import time

import pytest

from octoresearch.backends.base import CallableBackend
from octoresearch.core.config.pipeline_config import CacheConfig, PipelineConfig
from octoresearch.core.exceptions import BackendAuthError, RateLimitedError
from octoresearch.core.types import BackendKind, ErrorKind, OutcomeStatus
from octoresearch.services.bulk_executor import BulkExecutor
from octoresearch.services.cache import cache_key
from octoresearch.services.validator import validate
from tests.fixtures.fake_backends import FakeBackend, code_query, fetch_query

GITHUB_TOKEN = "ghp_" + "q1W2e3R4t5" * 4


def _executor(config, cache, *backends):
    return BulkExecutor({b.kind: b for b in backends}, config, cache=cache)


class TestIsolation:
    @pytest.mark.asyncio
    async def test_one_outcome_per_query_in_order(self, config, cache, code_backend, fetch_backend):
        executor = _executor(config, cache, code_backend, fetch_backend)
        queries = [validate(code_query("a")), validate(fetch_query()), validate(code_query("b"))]

        outcomes = await executor.run(queries)

        assert len(outcomes) == 3
        assert [o.status for o in outcomes] == [OutcomeStatus.HAS_RESULTS] * 3
        assert outcomes[1].data["path"] == "src/app.ts"

    @pytest.mark.asyncio
    async def test_failure_does_not_leak(self, config, cache, fetch_backend):
        """An executor raising for one query leaves its siblings untouched."""
        failing = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, error=BackendAuthError("Bad credentials"))
        executor = _executor(config, cache, failing, fetch_backend)

        outcomes = await executor.run([validate(code_query("x")), validate(fetch_query())])

        assert outcomes[0].error_kind is ErrorKind.AUTH
        assert outcomes[1].status is OutcomeStatus.HAS_RESULTS

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_generic_error(self, config, cache):
        crashing = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, error=KeyError("internal detail"))
        executor = _executor(config, cache, crashing)

        [outcome] = await executor.run([validate(code_query("x"))])

        assert outcome.error_kind is ErrorKind.GENERIC
        assert "internal detail" not in outcome.error

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, config, cache):
        throttled = FakeBackend(
            BackendKind.GITHUB_SEARCH_CODE, error=RateLimitedError("Rate limit exceeded", retry_after=12)
        )
        executor = _executor(config, cache, throttled)

        [outcome] = await executor.run([validate(code_query("x"))])

        assert outcome.error_kind is ErrorKind.RATE_LIMITED
        assert outcome.retry_after == 12

    @pytest.mark.asyncio
    async def test_non_mapping_result_is_error(self, config, cache):
        odd = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, lambda q: ["not", "a", "dict"])
        executor = _executor(config, cache, odd)

        [outcome] = await executor.run([validate(code_query("x"))])

        assert outcome.is_error

    @pytest.mark.asyncio
    async def test_empty_result_classified(self, config, cache):
        nothing = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, {"files": [], "total": 0})
        executor = _executor(config, cache, nothing)

        [outcome] = await executor.run([validate(code_query("x"))])

        assert outcome.status is OutcomeStatus.EMPTY
        assert outcome.data is None


class TestTimingAndConcurrency:
    @pytest.mark.asyncio
    async def test_order_preserved_with_random_delays(self, config, cache):
        rng = random.Random(7)

        async def search(query):
            await asyncio.sleep(rng.uniform(0, 0.03))
            return {"files": [{"path": f"{query.keywords_to_search[0]}.ts"}]}

        backend = CallableBackend(BackendKind.GITHUB_SEARCH_CODE, search)
        executor = _executor(config, cache, backend)
        names = [f"k{i}" for i in range(8)]

        outcomes = await executor.run([validate(code_query(n)) for n in names])

        assert [o.data["files"][0]["path"] for o in outcomes] == [f"{n}.ts" for n in names]

    @pytest.mark.asyncio
    async def test_timeout_isolated(self, config, cache, code_backend):
        """A 1 ms deadline on a 100 ms call fails alone and does not hold the batch."""
        slow = FakeBackend(BackendKind.GITHUB_FETCH_CONTENT, delay=0.1, timeout=0.001)
        executor = _executor(config, cache, code_backend, slow)
        queries = [validate(code_query("a")), validate(fetch_query()), validate(code_query("b"))]

        started = time.perf_counter()
        outcomes = await executor.run(queries)
        elapsed = time.perf_counter() - started

        assert [o.status for o in outcomes] == [
            OutcomeStatus.HAS_RESULTS,
            OutcomeStatus.ERROR,
            OutcomeStatus.HAS_RESULTS,
        ]
        assert outcomes[1].error_kind is ErrorKind.TIMEOUT
        assert elapsed < 0.05, f"batch waited {elapsed * 1000:.0f} ms for a timed-out call"

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, cache):
        config = PipelineConfig(max_concurrency=2)
        backend = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, delay=0.02)
        executor = _executor(config, cache, backend)

        await executor.run([validate(code_query(f"k{i}")) for i in range(6)])

        assert len(backend.calls) == 6
        assert backend.max_in_flight <= 2

    @pytest.mark.asyncio
    async def test_identical_queries_coalesced(self, config, cache, code_backend):
        """Queries differing only in traceability fields share one call."""
        executor = _executor(config, cache, code_backend)
        queries = [
            validate(code_query("x", researchGoal="first")),
            validate(code_query("x", researchGoal="second")),
        ]

        outcomes = await executor.run(queries)

        assert len(code_backend.calls) == 1
        assert outcomes[0] == outcomes[1]


class TestCaching:
    @pytest.mark.asyncio
    async def test_second_run_served_from_cache(self, config, cache, code_backend):
        executor = _executor(config, cache, code_backend)
        query = validate(code_query("x"))

        await executor.run([query])
        [outcome] = await executor.run([query])

        assert len(code_backend.calls) == 1
        assert outcome.from_cache is True

    @pytest.mark.asyncio
    async def test_failures_and_empties_never_cached(self, config, cache):
        failing = FakeBackend(BackendKind.GITHUB_SEARCH_CODE, error=RuntimeError("boom"))
        empty = FakeBackend(BackendKind.GITHUB_FETCH_CONTENT, {})
        executor = _executor(config, cache, failing, empty)
        queries = [validate(code_query("x")), validate(fetch_query())]

        await executor.run(queries)
        await executor.run(queries)

        assert len(failing.calls) == 2
        assert len(empty.calls) == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_cache_disabled(self, cache, code_backend):
        config = PipelineConfig(cache=CacheConfig(enabled=False))
        executor = _executor(config, cache, code_backend)
        query = validate(code_query("x"))

        await executor.run([query])
        await executor.run([query])

        assert len(code_backend.calls) == 2

    @pytest.mark.asyncio
    async def test_cached_payload_is_sanitized(self, config, cache):
        leaky = FakeBackend(
            BackendKind.GITHUB_FETCH_CONTENT,
            {"path": "config.ts", "content": f"export const token = '{GITHUB_TOKEN}';"},
        )
        executor = _executor(config, cache, leaky)
        query = validate(fetch_query("config.ts"))

        [outcome] = await executor.run([query])

        assert GITHUB_TOKEN not in outcome.data["content"]
        assert outcome.redacted >= 1
        stored = cache.get(cache_key(query.kind.value, query.params()))
        assert GITHUB_TOKEN not in stored["content"]

    @pytest.mark.asyncio
    async def test_minified_false_skips_normalization(self, config, cache, fetch_backend):
        executor = _executor(config, cache, fetch_backend)

        [raw, minified] = await executor.run(
            [validate(fetch_query(minified=False)), validate(fetch_query())]
        )

        assert raw.data["content"].startswith("// entry point")
        assert minified.data["content"] == "export const app = 1;\nexport default app;"
