"""Exclusion rules for the local filesystem backends.

Combines built-in excludes (VCS metadata, dependency and build caches) with
the workspace's root ``.gitignore``, matched with git's own rules (last
matching pattern wins, negations re-include) via ``pathspec.GitIgnoreSpec``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from pathspec import GitIgnoreSpec, PathSpec

DEFAULT_EXCLUDES = (
    ".git/",
    ".hg/",
    ".svn/",
    "node_modules/",
    "__pycache__/",
    ".venv/",
    "venv/",
    ".mypy_cache/",
    ".pytest_cache/",
    ".tox/",
    "dist/",
    "build/",
    "*.pyc",
)


class IgnoreEngine:
    """Answers "is this path excluded?" for paths under one root."""

    def __init__(self, root: Path, spec: PathSpec):
        self.root = root.resolve()
        self._spec = spec

    def matches(self, path: Path, is_dir: bool = False) -> bool:
        try:
            rel = path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            # Outside the root: never served, so treat as excluded.
            return True
        if rel == ".":
            return False
        if self._spec.match_file(rel):
            return True
        return is_dir and self._spec.match_file(rel + "/")


def _read_gitignore(path: Path) -> list[str]:
    if not path.is_file():
        return []
    lines = []
    for raw in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            lines.append(line)
    return lines


def build_ignore_engine(
    root: Path,
    extra_excludes: Iterable[str] | None = None,
    use_gitignore: bool = True,
) -> IgnoreEngine:
    """Build an IgnoreEngine from defaults, the root .gitignore and extra patterns."""
    root = root.resolve()
    patterns = list(DEFAULT_EXCLUDES)
    if use_gitignore:
        patterns.extend(_read_gitignore(root / ".gitignore"))
    patterns.extend(extra_excludes or [])
    return IgnoreEngine(root, GitIgnoreSpec.from_lines(patterns))
