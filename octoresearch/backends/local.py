"""Local filesystem backends: code search, structure view, file discovery and
content fetch.

All four serve files under a single workspace root. Query validation
already rejects traversal patterns; resolution here additionally refuses
anything that resolves outside the root (symlinks included). Blocking file
IO runs in a worker thread so the event loop keeps serving other queries.

User patterns run on the ``regex`` engine, which releases the GIL while
matching and honours a deadline, so a backtracking pattern can neither
starve the event loop nor keep a worker thread busy past its budget.
"""

from __future__ import annotations

import asyncio
import fnmatch
import math
import os
import stat
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import regex
from loguru import logger

from octoresearch.backends.base import BaseBackend
from octoresearch.core.exceptions import BackendError, BackendTimeoutError
from octoresearch.core.models import (
    BaseQuery,
    LocalFetchContentQuery,
    LocalFindFilesQuery,
    LocalSearchCodeQuery,
    LocalViewStructureQuery,
)
from octoresearch.core.types import BackendKind
from octoresearch.utils.ignore_engine import IgnoreEngine, build_ignore_engine
from octoresearch.utils.pagination import apply_pagination

MAX_FILE_BYTES = 2 * 1024 * 1024
MAX_LINE_CHARS = 300
DEFAULT_SEARCH_TIMEOUT = 60.0
_BINARY_SNIFF_BYTES = 8192


def _is_binary(path: Path) -> bool:
    with open(path, "rb") as f:
        return b"\0" in f.read(_BINARY_SNIFF_BYTES)


class LocalBackend(BaseBackend):
    """Shared root confinement and ignore handling."""

    def __init__(self, root: Path, ignore: IgnoreEngine | None = None):
        self.root = root.resolve()
        self.ignore = ignore or build_ignore_engine(self.root)

    def _unsupported(self, query: BaseQuery) -> BackendError:
        return BackendError(
            f"{self.kind.value} cannot execute {type(query).__name__}", status_code=400
        )

    def _resolve(self, rel: str) -> Path:
        target = (self.root / rel).resolve()
        if target != self.root and not target.is_relative_to(self.root):
            raise BackendError("Path is outside the workspace root", status_code=403)
        if not target.exists():
            raise BackendError(f"Path not found: {rel}", status_code=404)
        return target

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix() or "."

    def _walk(self, base: Path, max_depth: int | None = None, show_hidden: bool = True):
        """Yield (dirpath, kept dirnames, filenames, depth) under base, pruning ignored entries."""
        base_depth = len(base.relative_to(self.root).parts)
        for dirpath, dirnames, filenames in os.walk(base, topdown=True):
            dpath = Path(dirpath)
            depth = len(dpath.relative_to(self.root).parts) - base_depth
            keep = []
            for name in sorted(dirnames):
                if not show_hidden and name.startswith("."):
                    continue
                if self.ignore.matches(dpath / name, is_dir=True):
                    continue
                keep.append(name)
            dirnames[:] = keep if max_depth is None or depth + 1 < max_depth else []
            files = [
                name
                for name in sorted(filenames)
                if (show_hidden or not name.startswith("."))
                and not self.ignore.matches(dpath / name)
            ]
            yield dpath, keep, files, depth


class LocalSearchCodeBackend(LocalBackend):
    kind = BackendKind.LOCAL_SEARCH_CODE

    def __init__(
        self,
        root: Path,
        ignore: IgnoreEngine | None = None,
        search_timeout: float = DEFAULT_SEARCH_TIMEOUT,
    ):
        super().__init__(root, ignore)
        # Budget for one whole scan; the matcher gets whatever is left per line.
        self.search_timeout = search_timeout

    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        if not isinstance(query, LocalSearchCodeQuery):
            raise self._unsupported(query)
        return await asyncio.to_thread(self._search, query)

    def _compile(self, query: LocalSearchCodeQuery) -> regex.Pattern:
        source = regex.escape(query.pattern) if query.fixed_string else query.pattern
        flags = 0 if query.case_sensitive else regex.IGNORECASE
        try:
            return regex.compile(source, flags)
        except regex.error as e:
            raise BackendError(f"Invalid regular expression: {e}", status_code=400) from e

    def _timed_out(self) -> BackendTimeoutError:
        return BackendTimeoutError(
            f"Pattern search exceeded {self.search_timeout:g}s. "
            "Simplify the pattern or use fixedString"
        )

    def _search(self, query: LocalSearchCodeQuery) -> dict[str, Any]:
        rx = self._compile(query)
        deadline = time.monotonic() + self.search_timeout
        base = self._resolve(query.path)
        candidates: list[Path]
        if base.is_file():
            candidates = [base]
        else:
            candidates = [
                dpath / name
                for dpath, _, files, _ in self._walk(base)
                for name in files
            ]

        files: list[dict[str, Any]] = []
        total = 0
        truncated = False
        scanned = 0
        for path in candidates:
            if query.include and not fnmatch.fnmatch(path.name, query.include):
                continue
            try:
                if path.stat().st_size > MAX_FILE_BYTES or _is_binary(path):
                    continue
                text = path.read_text(encoding="utf-8", errors="ignore")
            except OSError as e:
                logger.debug(f"Skipping unreadable file {path}: {e}")
                continue
            scanned += 1
            matches = []
            for number, line in enumerate(text.splitlines(), start=1):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise self._timed_out()
                try:
                    found = rx.search(line, concurrent=True, timeout=remaining)
                except TimeoutError as e:
                    raise self._timed_out() from e
                if found:
                    matches.append({"line": number, "text": line.strip()[:MAX_LINE_CHARS]})
                    total += 1
                    if total >= query.max_results:
                        truncated = True
                        break
            if matches:
                files.append({"path": self._rel(path), "matches": matches})
            if truncated:
                break

        logger.debug(f"Local search '{query.pattern}' scanned={scanned} matches={total}")
        return {
            "path": query.path,
            "files": files,
            "totalMatches": total,
            "truncated": truncated,
        }


class LocalViewStructureBackend(LocalBackend):
    kind = BackendKind.LOCAL_VIEW_STRUCTURE

    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        if not isinstance(query, LocalViewStructureQuery):
            raise self._unsupported(query)
        return await asyncio.to_thread(self._view, query)

    def _view(self, query: LocalViewStructureQuery) -> dict[str, Any]:
        base = self._resolve(query.path)
        if not base.is_dir():
            raise BackendError(f"Not a directory: {query.path}", status_code=400)

        files: list[str] = []
        folders: list[str] = []
        truncated = False
        for dpath, dirnames, filenames, _ in self._walk(
            base, max_depth=query.depth, show_hidden=query.show_hidden
        ):
            for name in dirnames:
                folders.append(self._rel(dpath / name))
            for name in filenames:
                files.append(self._rel(dpath / name))
            if len(files) + len(folders) >= query.max_entries:
                truncated = True
                break

        entries_left = query.max_entries
        folders = folders[:entries_left]
        files = files[: max(entries_left - len(folders), 0)]
        return {
            "path": query.path,
            "folders": folders,
            "files": files,
            "truncated": truncated,
        }


class LocalFetchContentBackend(LocalBackend):
    kind = BackendKind.LOCAL_FETCH_CONTENT

    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        if not isinstance(query, LocalFetchContentQuery):
            raise self._unsupported(query)
        return await asyncio.to_thread(self._fetch, query)

    def _fetch(self, query: LocalFetchContentQuery) -> dict[str, Any]:
        path = self._resolve(query.path)
        if path.is_dir():
            raise BackendError(f"Path is a directory: {query.path}", status_code=400)
        partial = bool(query.match_string or query.start_line or query.end_line)
        size = path.stat().st_size
        if size > MAX_FILE_BYTES and not partial and query.char_length is None:
            raise BackendError(
                f"File too large ({size // 1024} KB). "
                "Use startLine/endLine, matchString or charLength",
                status_code=413,
            )
        if _is_binary(path):
            raise BackendError(f"Binary file cannot be displayed: {query.path}", status_code=415)

        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
        total = len(lines)
        start, end = 1, total
        match_lines: list[int] = []

        if query.match_string:
            match_lines = [i + 1 for i, line in enumerate(lines) if query.match_string in line]
            if not match_lines:
                raise BackendError(
                    f"matchString not found in {query.path}", status_code=404
                )
            start = max(match_lines[0] - query.context_lines, 1)
            end = min(match_lines[0] + query.context_lines, total)
        elif query.start_line or query.end_line:
            start = min(query.start_line or 1, max(total, 1))
            end = min(query.end_line or total, total)

        page = apply_pagination(
            "\n".join(lines[start - 1 : end]), query.char_offset, query.char_length
        )
        result: dict[str, Any] = {
            "path": self._rel(path),
            "content": page.content,
            "totalLines": total,
        }
        if partial:
            result["startLine"] = start
            result["endLine"] = end
            result["isPartial"] = True
        if match_lines:
            result["matchLocations"] = match_lines
        if query.char_length is not None:
            result["pagination"] = page.to_dict()
        return result


class LocalFindFilesBackend(LocalBackend):
    """Lists entries by name, type, depth and age, newest first on request."""

    kind = BackendKind.LOCAL_FIND_FILES

    async def execute(self, query: BaseQuery) -> dict[str, Any]:
        if not isinstance(query, LocalFindFilesQuery):
            raise self._unsupported(query)
        return await asyncio.to_thread(self._find, query)

    @staticmethod
    def _name_matches(name: str, query: LocalFindFilesQuery) -> bool:
        if query.name and not fnmatch.fnmatchcase(name, query.name):
            return False
        if query.iname and not fnmatch.fnmatchcase(name.lower(), query.iname.lower()):
            return False
        return True

    def _candidates(self, base: Path, query: LocalFindFilesQuery):
        for dpath, dirnames, filenames, _ in self._walk(
            base, max_depth=query.max_depth, show_hidden=True
        ):
            if query.type != "f":
                yield from (dpath / name for name in dirnames)
            if query.type != "d":
                yield from (dpath / name for name in filenames)

    def _find(self, query: LocalFindFilesQuery) -> dict[str, Any]:
        base = self._resolve(query.path)
        if not base.is_dir():
            raise BackendError(f"Not a directory: {query.path}", status_code=400)
        age = query.modified_within_seconds
        cutoff = time.time() - age if age is not None else None

        found: list[tuple[Path, os.stat_result]] = []
        limited = False
        for path in self._candidates(base, query):
            if not self._name_matches(path.name, query):
                continue
            try:
                st = path.lstat()
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {path}: {e}")
                continue
            if cutoff is not None and st.st_mtime < cutoff:
                continue
            found.append((path, st))
            if len(found) >= query.limit:
                limited = True
                break

        if query.show_file_last_modified:
            found.sort(key=lambda item: item[1].st_mtime, reverse=True)
        else:
            found.sort(key=lambda item: self._rel(item[0]))

        total = len(found)
        per_page = query.files_per_page
        total_pages = max(math.ceil(total / per_page), 1)
        first = (query.file_page_number - 1) * per_page
        page = [self._describe(path, st, query) for path, st in found[first : first + per_page]]
        logger.debug(f"Local find under '{query.path}' matched={total} limited={limited}")
        return {
            "path": query.path,
            "files": page,
            "totalFiles": total,
            "truncated": limited,
            "pagination": {
                "currentPage": query.file_page_number,
                "totalPages": total_pages,
                "filesPerPage": per_page,
                "totalFiles": total,
                "hasMore": query.file_page_number < total_pages,
            },
        }

    def _describe(
        self, path: Path, st: os.stat_result, query: LocalFindFilesQuery
    ) -> dict[str, Any]:
        if stat.S_ISLNK(st.st_mode):
            entry_type = "symlink"
        elif stat.S_ISDIR(st.st_mode):
            entry_type = "directory"
        else:
            entry_type = "file"
        entry: dict[str, Any] = {"path": self._rel(path), "type": entry_type}
        if query.details:
            entry["size"] = st.st_size
            entry["permissions"] = oct(st.st_mode)[-3:]
        if query.show_file_last_modified:
            entry["modified"] = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat()
        return entry


def build_local_backends(
    root: Path, search_timeout: float = DEFAULT_SEARCH_TIMEOUT
) -> list[LocalBackend]:
    """The four local backends, sharing one ignore engine."""
    root = root.resolve()
    ignore = build_ignore_engine(root)
    return [
        LocalSearchCodeBackend(root, ignore, search_timeout=search_timeout),
        LocalViewStructureBackend(root, ignore),
        LocalFetchContentBackend(root, ignore),
        LocalFindFilesBackend(root, ignore),
    ]
