"""Unit tests for pipeline configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from octoresearch.core.config.pipeline_config import CacheConfig, PipelineConfig


class TestDefaults:
    def test_defaults(self):
        config = PipelineConfig()

        assert config.max_batch_size == 10
        assert config.max_concurrency == 3
        assert config.query_timeout == 60.0
        assert config.cache.max_entries == 1000
        assert config.security.max_string_length == 10000

    def test_cache_ttl_fallback(self):
        cache = CacheConfig(ttls={"github_search_code": 30}, default_ttl=99)

        assert cache.ttl_for("github_search_code") == 30
        assert cache.ttl_for("something_else") == 99

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            PipelineConfig(max_concurrency=0)
        with pytest.raises(ValidationError):
            CacheConfig(ttls={"github_search_code": 0})

    def test_workspace_root_resolves(self, tmp_path):
        config = PipelineConfig(workspace_root=str(tmp_path))

        assert isinstance(config.workspace_root, Path)
        assert config.get_workspace_root() == tmp_path.resolve()


class TestFromEnv:
    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OCTORESEARCH_PIPELINE__MAX_CONCURRENCY", "7")
        monkeypatch.setenv("OCTORESEARCH_PIPELINE__QUERY_TIMEOUT", "2.5")
        monkeypatch.setenv("OCTORESEARCH_CACHE__ENABLED", "false")
        monkeypatch.setenv("OCTORESEARCH_CACHE__MAX_ENTRIES", "50")
        monkeypatch.setenv("OCTORESEARCH_SECURITY__MAX_ARRAY_LENGTH", "20")
        monkeypatch.setenv("OCTORESEARCH_WORKSPACE_ROOT", str(tmp_path))

        config = PipelineConfig.from_env()

        assert config.max_concurrency == 7
        assert config.query_timeout == 2.5
        assert config.cache.enabled is False
        assert config.cache.max_entries == 50
        assert config.security.max_array_length == 20
        assert config.workspace_root == tmp_path

    def test_timeout_in_milliseconds(self, monkeypatch):
        monkeypatch.delenv("OCTORESEARCH_PIPELINE__QUERY_TIMEOUT", raising=False)
        monkeypatch.setenv("OCTORESEARCH_PIPELINE__QUERY_TIMEOUT_MS", "1500")

        assert PipelineConfig.from_env().query_timeout == 1.5

    def test_explicit_overrides_win(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OCTORESEARCH_PIPELINE__MAX_BATCH_SIZE", "5")

        config = PipelineConfig.from_env(max_batch_size=8, workspace_root=tmp_path)

        assert config.max_batch_size == 8

    def test_malformed_number_raises(self, monkeypatch):
        monkeypatch.setenv("OCTORESEARCH_PIPELINE__MAX_CONCURRENCY", "many")

        with pytest.raises(ValueError):
            PipelineConfig.from_env()
