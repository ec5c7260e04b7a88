"""Unit tests for the local filesystem backends."""

import os
import time
from pathlib import Path

import pytest

from octoresearch.backends import local
from octoresearch.backends.local import (
    LocalFetchContentBackend,
    LocalFindFilesBackend,
    LocalSearchCodeBackend,
    LocalViewStructureBackend,
    build_local_backends,
)
from octoresearch.core.config.pipeline_config import PipelineConfig
from octoresearch.core.exceptions import BackendError, BackendTimeoutError, QueryValidationError
from octoresearch.core.types import BackendKind, ErrorKind, OutcomeStatus
from octoresearch.services.bulk_executor import BulkExecutor
from octoresearch.services.validator import validate


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Small project tree with ignored, hidden and binary entries."""
    root = tmp_path / "ws"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.py").write_text("def main():\n    return 'hello'\n\n# wire up later\n")
    (root / "src" / "util.py").write_text("def helper():\n    pass\n")
    (root / "logs").mkdir()
    (root / "logs" / "debug.log").write_text("def leaked_from_logs\n")
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "pkg" / "index.js").write_text("function def() {}\n")
    (root / ".hidden").mkdir()
    (root / ".hidden" / "notes.txt").write_text("nothing here\n")
    (root / "image.bin").write_bytes(b"def\x00\x01\x02")
    (root / ".gitignore").write_text("logs/\n*.log\n")
    return root


def _local(kind: str, **params):
    return validate({"backend": kind, **params})


class TestLocalSearchCode:
    @pytest.mark.asyncio
    async def test_search_respects_ignores_and_binaries(self, workspace):
        backend = LocalSearchCodeBackend(workspace)

        result = await backend.execute(_local("local_search_code", pattern=r"def \w+\("))

        assert [f["path"] for f in result["files"]] == ["src/app.py", "src/util.py"]
        assert result["totalMatches"] == 2
        assert result["files"][0]["matches"] == [{"line": 1, "text": "def main():"}]
        assert result["truncated"] is False

    @pytest.mark.asyncio
    async def test_fixed_string_and_include(self, workspace):
        backend = LocalSearchCodeBackend(workspace)

        result = await backend.execute(
            _local("local_search_code", pattern="helper(", fixedString=True, include="util*")
        )

        assert [f["path"] for f in result["files"]] == ["src/util.py"]

    @pytest.mark.asyncio
    async def test_max_results_truncates(self, workspace):
        backend = LocalSearchCodeBackend(workspace)

        result = await backend.execute(_local("local_search_code", pattern="def", maxResults=1))

        assert result["totalMatches"] == 1
        assert result["truncated"] is True

    @pytest.mark.asyncio
    async def test_invalid_regex(self, workspace):
        backend = LocalSearchCodeBackend(workspace)

        with pytest.raises(BackendError) as exc:
            await backend.execute(_local("local_search_code", pattern="("))

        assert exc.value.status_code == 400


class TestLocalViewStructure:
    @pytest.mark.asyncio
    async def test_top_level_view(self, workspace):
        backend = LocalViewStructureBackend(workspace)

        result = await backend.execute(_local("local_view_structure"))

        assert result["folders"] == ["src"]
        assert result["files"] == ["image.bin"]

    @pytest.mark.asyncio
    async def test_depth_and_hidden(self, workspace):
        backend = LocalViewStructureBackend(workspace)

        result = await backend.execute(_local("local_view_structure", depth=2, showHidden=True))

        assert ".hidden" in result["folders"]
        assert ".hidden/notes.txt" in result["files"]
        assert "src/app.py" in result["files"]
        assert "logs" not in result["folders"]

    @pytest.mark.asyncio
    async def test_file_path_rejected(self, workspace):
        backend = LocalViewStructureBackend(workspace)

        with pytest.raises(BackendError) as exc:
            await backend.execute(_local("local_view_structure", path="src/app.py"))

        assert exc.value.status_code == 400


class TestLocalFetchContent:
    @pytest.mark.asyncio
    async def test_full_file(self, workspace):
        backend = LocalFetchContentBackend(workspace)

        result = await backend.execute(_local("local_fetch_content", path="src/util.py"))

        assert result == {"path": "src/util.py", "content": "def helper():\n    pass", "totalLines": 2}

    @pytest.mark.asyncio
    async def test_line_range(self, workspace):
        backend = LocalFetchContentBackend(workspace)

        result = await backend.execute(
            _local("local_fetch_content", path="src/app.py", startLine=2, endLine=2)
        )

        assert result["content"] == "    return 'hello'"
        assert (result["startLine"], result["endLine"], result["isPartial"]) == (2, 2, True)

    @pytest.mark.asyncio
    async def test_match_string_window(self, workspace):
        backend = LocalFetchContentBackend(workspace)

        result = await backend.execute(
            _local("local_fetch_content", path="src/app.py", matchString="return", contextLines=1)
        )

        assert result["content"] == "def main():\n    return 'hello'\n"
        assert result["matchLocations"] == [2]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params, status",
        [
            ({"path": "src/missing.py"}, 404),
            ({"path": "src"}, 400),
            ({"path": "image.bin"}, 415),
            ({"path": "src/app.py", "matchString": "absent"}, 404),
        ],
    )
    async def test_failures_carry_status(self, workspace, params, status):
        backend = LocalFetchContentBackend(workspace)

        with pytest.raises(BackendError) as exc:
            await backend.execute(_local("local_fetch_content", **params))

        assert exc.value.status_code == status

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    async def test_symlink_escape_refused(self, workspace, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("secret\n")
        (workspace / "link.txt").symlink_to(outside)
        backend = LocalFetchContentBackend(workspace)

        with pytest.raises(BackendError) as exc:
            await backend.execute(_local("local_fetch_content", path="link.txt"))

        assert exc.value.status_code == 403

    @pytest.mark.asyncio
    async def test_char_pagination(self, workspace):
        """charLength pages through content and says where the next page starts."""
        backend = LocalFetchContentBackend(workspace)

        first = await backend.execute(
            _local("local_fetch_content", path="src/util.py", charLength=10)
        )
        second = await backend.execute(
            _local("local_fetch_content", path="src/util.py", charOffset=10, charLength=10)
        )

        assert first["content"] == "def helper"
        assert first["pagination"] == {
            "currentPage": 1,
            "totalPages": 3,
            "charOffset": 0,
            "charLength": 10,
            "totalChars": 22,
            "hasMore": True,
            "nextCharOffset": 10,
        }
        assert second["content"] == "():\n    pa"
        assert second["pagination"]["currentPage"] == 2

    @pytest.mark.asyncio
    async def test_large_file_needs_a_reading_strategy(self, workspace, monkeypatch):
        """Oversized files are refused whole but readable page by page."""
        monkeypatch.setattr(local, "MAX_FILE_BYTES", 8)
        backend = LocalFetchContentBackend(workspace)

        with pytest.raises(BackendError) as exc:
            await backend.execute(_local("local_fetch_content", path="src/util.py"))
        paged = await backend.execute(
            _local("local_fetch_content", path="src/util.py", charLength=5)
        )

        assert exc.value.status_code == 413
        assert "charLength" in exc.value.message
        assert paged["content"] == "def h"
        assert paged["pagination"]["hasMore"] is True

    def test_offset_without_length_rejected(self):
        with pytest.raises(QueryValidationError):
            _local("local_fetch_content", path="src/util.py", charOffset=10)


class TestLocalFindFiles:
    @pytest.mark.asyncio
    async def test_name_glob_respects_ignores(self, workspace):
        backend = LocalFindFilesBackend(workspace)

        result = await backend.execute(_local("local_find_files", name="*.py"))

        assert [f["path"] for f in result["files"]] == ["src/app.py", "src/util.py"]
        assert result["files"][0] == {"path": "src/app.py", "type": "file"}
        assert result["totalFiles"] == 2

    @pytest.mark.asyncio
    async def test_type_depth_and_iname(self, workspace):
        backend = LocalFindFilesBackend(workspace)

        dirs = await backend.execute(_local("local_find_files", type="d", maxDepth=1))
        upper = await backend.execute(_local("local_find_files", iname="APP.PY"))

        assert [f["path"] for f in dirs["files"]] == [".hidden", "src"]
        assert all(f["type"] == "directory" for f in dirs["files"])
        assert [f["path"] for f in upper["files"]] == ["src/app.py"]

    @pytest.mark.asyncio
    async def test_modified_within_and_recent_first(self, workspace):
        old = workspace / "src" / "util.py"
        stamp = time.time() - 3 * 86400
        os.utime(old, (stamp, stamp))
        backend = LocalFindFilesBackend(workspace)

        recent = await backend.execute(
            _local("local_find_files", name="*.py", modifiedWithin="1d")
        )
        ordered = await backend.execute(
            _local("local_find_files", name="*.py", showFileLastModified=True, details=True)
        )

        assert [f["path"] for f in recent["files"]] == ["src/app.py"]
        assert [f["path"] for f in ordered["files"]] == ["src/app.py", "src/util.py"]
        assert "modified" in ordered["files"][0]
        assert ordered["files"][1]["size"] == old.stat().st_size

    @pytest.mark.asyncio
    async def test_pages(self, workspace):
        backend = LocalFindFilesBackend(workspace)

        result = await backend.execute(
            _local("local_find_files", type="f", filesPerPage=2, filePageNumber=2)
        )

        assert result["pagination"]["currentPage"] == 2
        assert result["pagination"]["filesPerPage"] == 2
        assert len(result["files"]) <= 2
        assert result["totalFiles"] >= 3

    def test_bad_age_rejected(self):
        with pytest.raises(QueryValidationError):
            _local("local_find_files", modifiedWithin="yesterday")


class TestSearchDeadline:
    """A user pattern can never hold a batch past its timeout."""

    @pytest.mark.asyncio
    async def test_backtracking_pattern_does_not_stall_siblings(self, workspace, cache):
        (workspace / "src" / "evil.txt").write_text("a" * 28 + "b\n")
        search = LocalSearchCodeBackend(workspace, search_timeout=0.3)
        fetch = LocalFetchContentBackend(workspace)
        executor = BulkExecutor(
            {b.kind: b for b in (search, fetch)},
            PipelineConfig(query_timeout=0.3),
            cache=cache,
        )

        started = time.perf_counter()
        outcomes = await executor.run(
            [
                _local("local_search_code", pattern="(a+)+$", include="evil.txt"),
                _local("local_fetch_content", path="src/util.py"),
            ]
        )
        elapsed = time.perf_counter() - started

        assert elapsed < 3.0, f"batch took {elapsed:.2f}s"
        assert outcomes[1].status is OutcomeStatus.HAS_RESULTS
        if outcomes[0].status is OutcomeStatus.ERROR:
            assert outcomes[0].error_kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_engine_timeout_becomes_backend_timeout(self, workspace, monkeypatch):
        class StalledPattern:
            def search(self, line, **kwargs):
                raise TimeoutError("regex timed out")

        monkeypatch.setattr(LocalSearchCodeBackend, "_compile", lambda self, query: StalledPattern())
        backend = LocalSearchCodeBackend(workspace)

        with pytest.raises(BackendTimeoutError) as exc:
            await backend.execute(_local("local_search_code", pattern="x"))

        assert exc.value.kind is ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_exhausted_budget_times_out(self, workspace):
        backend = LocalSearchCodeBackend(workspace, search_timeout=0)

        with pytest.raises(BackendTimeoutError):
            await backend.execute(_local("local_search_code", pattern="def"))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "backend_cls, params",
    [
        (LocalSearchCodeBackend, {"backend": "local_fetch_content", "path": "src/app.py"}),
        (LocalViewStructureBackend, {"backend": "local_search_code", "pattern": "x"}),
        (LocalFetchContentBackend, {"backend": "local_find_files"}),
        (LocalFindFilesBackend, {"backend": "local_view_structure"}),
    ],
)
async def test_wrong_query_type_rejected(workspace, backend_cls, params):
    """Each backend refuses queries meant for another, even under python -O."""
    backend = backend_cls(workspace)

    with pytest.raises(BackendError) as exc:
        await backend.execute(validate(params))

    assert exc.value.status_code == 400


def test_build_local_backends_share_ignore_engine(workspace):
    backends = build_local_backends(workspace, search_timeout=5.0)

    assert [b.kind for b in backends] == [
        BackendKind.LOCAL_SEARCH_CODE,
        BackendKind.LOCAL_VIEW_STRUCTURE,
        BackendKind.LOCAL_FETCH_CONTENT,
        BackendKind.LOCAL_FIND_FILES,
    ]
    assert len({id(b.ignore) for b in backends}) == 1
    assert backends[0].search_timeout == 5.0
