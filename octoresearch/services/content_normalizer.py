"""Type-aware, best-effort size reduction for returned content.

A type hint (file path, extension, well-known filename, MIME type or
language name) selects one of a small set of named strategies:

- code: comment and blank-line removal for brace languages
- indented: full-line comments and trailing whitespace only, so layout survives
- html: full HTML minification via minify-html; script and pre bodies survive
- markup: collapse inter-tag and inline whitespace, drop markup comments,
  leaving script, style, pre and textarea bodies alone
- json: compact re-serialization (JSONC comments stripped if needed)
- markdown: drop HTML comments, normalize headings/lists/blank lines
- plain: trailing whitespace and blank-line runs only

Normalization is an optimization, never a required step. Content above the
size ceiling is returned untouched, and any strategy failure falls back to
the original content. ``reduced`` is true exactly when bytes changed.
"""

from __future__ import annotations

import json
import posixpath
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import minify_html
from loguru import logger

DEFAULT_MAX_CONTENT_BYTES = 1024 * 1024

_M = re.MULTILINE

COMMENT_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "c-style": [
        re.compile(r"^[ \t]*/\*[\s\S]*?\*/[ \t]*\n?", _M),
        re.compile(r"^[ \t]*//.*\n?", _M),
    ],
    "hash": [
        re.compile(r"^[ \t]*#(?!!).*\n?", _M),
    ],
    "html": [
        re.compile(r"<!--[\s\S]*?-->"),
    ],
    "sql": [
        re.compile(r"^[ \t]*--.*\n?", _M),
        re.compile(r"^[ \t]*/\*[\s\S]*?\*/[ \t]*\n?", _M),
    ],
    "lua": [
        re.compile(r"--\[\[[\s\S]*?\]\]"),
        re.compile(r"^[ \t]*--.*\n?", _M),
    ],
    "template": [
        re.compile(r"\{\{!--[\s\S]*?--\}\}"),
        re.compile(r"\{\{![\s\S]*?\}\}"),
        re.compile(r"<%#[\s\S]*?%>"),
        re.compile(r"\{#[\s\S]*?#\}"),
    ],
    "haskell": [
        re.compile(r"\{-[\s\S]*?-\}"),
        re.compile(r"^[ \t]*--.*\n?", _M),
    ],
}

_TRAILING_WS = re.compile(r"[ \t]+$", _M)
_BLANK_RUNS = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_BLANK_LINES = re.compile(r"^\n", _M)
_INLINE_WS_RUNS = re.compile(r"(?<=\S)[ \t]{3,}(?=\S)")
_ANY_WS = re.compile(r"\s+")
_BETWEEN_TAGS = re.compile(r">\s+<")
_AROUND_SYNTAX = re.compile(r"\s*([{}:;,])\s*")
_MD_HEADING = re.compile(r"^(#{1,6})[ \t]+", _M)
_MD_LIST = re.compile(r"^([ \t]*)([-*+]|\d+\.)[ \t]+", _M)
_MD_FENCE = re.compile(r"^[ \t]*(```|~~~)")
# Bodies where whitespace is significant, or where a line comment ends at the newline.
_VERBATIM_BLOCKS = re.compile(
    r"<(script|style|pre|textarea)\b[^>]*>[\s\S]*?</\1\s*>", re.IGNORECASE
)
_PLACEHOLDER = re.compile(r"<\0(\d+)\0>")


@dataclass(frozen=True)
class FileTypeRule:
    """Strategy selection for one file type."""

    strategy: str
    comments: tuple[str, ...] = ()
    tighten_syntax: bool = False


def _rule(strategy: str, *comments: str, tighten_syntax: bool = False) -> FileTypeRule:
    return FileTypeRule(strategy, tuple(comments), tighten_syntax)


FILE_TYPES: dict[str, FileTypeRule] = {
    # Brace and keyword languages
    **{ext: _rule("code", "c-style") for ext in (
        "js", "jsx", "mjs", "cjs", "ts", "tsx", "mts", "cts", "go", "java", "c", "h",
        "cc", "cpp", "hpp", "cs", "rs", "swift", "kt", "kts", "scala", "dart",
        "proto", "groovy", "gradle", "zig",
    )},
    # Indentation-sensitive: blank lines and indentation can carry meaning
    **{ext: _rule("indented", "hash") for ext in (
        "py", "pyi", "yaml", "yml", "coffee", "nim", "haml", "slim", "star", "bzl",
    )},
    **{ext: _rule("indented", "c-style") for ext in ("pug", "jade", "sass", "styl")},
    # Hash-commented
    **{ext: _rule("code", "hash") for ext in (
        "sh", "bash", "zsh", "rb", "pl", "perl", "r", "toml", "ini", "cfg", "conf",
        "config", "env", "properties", "graphql", "gql", "pp", "cmake",
    )},
    "php": _rule("code", "c-style", "hash"),
    "tf": _rule("code", "hash", "c-style"),
    "tfvars": _rule("code", "hash", "c-style"),
    "sql": _rule("code", "sql"),
    "lua": _rule("code", "lua"),
    "hs": _rule("indented", "haskell"),
    "elm": _rule("indented", "haskell"),
    # Markup and stylesheets
    "html": _rule("html"),
    "htm": _rule("html"),
    **{ext: _rule("markup", "html") for ext in ("xml", "svg", "vue", "svelte")},
    **{ext: _rule("markup", "c-style", tighten_syntax=True) for ext in ("css", "less", "scss")},
    **{ext: _rule("markup", "template") for ext in (
        "hbs", "handlebars", "ejs", "mustache", "twig", "jinja", "jinja2", "erb",
    )},
    # Data
    "json": _rule("json"),
    "jsonc": _rule("json"),
    "json5": _rule("json"),
    # Prose
    "md": _rule("markdown"),
    "markdown": _rule("markdown"),
    "mdx": _rule("markdown"),
    **{ext: _rule("plain") for ext in ("txt", "log", "rst", "csv", "tsv", "adoc")},
}

# Files without a useful extension
SPECIAL_FILENAMES: dict[str, FileTypeRule] = {
    **{name: _rule("code", "hash") for name in (
        "makefile", "gnumakefile", "dockerfile", "containerfile", "gemfile",
        "rakefile", "procfile", "vagrantfile", "podfile", "brewfile",
        ".gitignore", ".dockerignore", ".npmignore", ".editorconfig", ".env",
    )},
    "jenkinsfile": _rule("code", "c-style"),
    "readme": _rule("markdown"),
    "license": _rule("plain"),
}

MIME_TYPES: dict[str, FileTypeRule] = {
    "application/json": FILE_TYPES["json"],
    "text/markdown": FILE_TYPES["md"],
    "text/html": FILE_TYPES["html"],
    "application/xml": FILE_TYPES["xml"],
    "text/xml": FILE_TYPES["xml"],
    "text/css": FILE_TYPES["css"],
    "text/plain": FILE_TYPES["txt"],
    "application/x-yaml": FILE_TYPES["yaml"],
    "text/yaml": FILE_TYPES["yaml"],
    "text/javascript": FILE_TYPES["js"],
    "application/javascript": FILE_TYPES["js"],
    "text/x-python": FILE_TYPES["py"],
}

LANGUAGE_ALIASES: dict[str, str] = {
    "python": "py",
    "javascript": "js",
    "typescript": "ts",
    "golang": "go",
    "rust": "rs",
    "ruby": "rb",
    "kotlin": "kt",
    "csharp": "cs",
    "c++": "cpp",
    "shell": "sh",
    "yaml": "yaml",
    "markdown": "md",
    "text": "txt",
    "plaintext": "txt",
}

DEFAULT_RULE = _rule("plain")


def resolve_rule(type_hint: str | None) -> FileTypeRule:
    """Pick the strategy rule for a path, extension, filename, MIME type or language."""
    if not type_hint:
        return DEFAULT_RULE
    hint = type_hint.strip().lower()
    mime = hint.split(";", 1)[0].strip()
    if mime in MIME_TYPES:
        return MIME_TYPES[mime]
    if hint in LANGUAGE_ALIASES:
        return FILE_TYPES.get(LANGUAGE_ALIASES[hint], DEFAULT_RULE)
    base = posixpath.basename(hint.replace("\\", "/"))
    if base in SPECIAL_FILENAMES:
        return SPECIAL_FILENAMES[base]
    bare = base.lstrip(".")
    if "." not in bare:
        return FILE_TYPES.get(bare, DEFAULT_RULE)
    ext = bare.rsplit(".", 1)[-1]
    if ext in FILE_TYPES:
        return FILE_TYPES[ext]
    # Dockerfile.dev, Makefile.inc
    return SPECIAL_FILENAMES.get(bare.split(".", 1)[0], DEFAULT_RULE)


def remove_comments(content: str, groups: tuple[str, ...]) -> str:
    result = content
    for group in groups:
        for pattern in COMMENT_PATTERNS.get(group, []):
            result = pattern.sub("", result)
    return result


def _tidy_lines(content: str) -> str:
    result = content.replace("\r\n", "\n")
    result = _TRAILING_WS.sub("", result)
    result = _BLANK_RUNS.sub("\n\n", result)
    return result.strip("\n")


def _strategy_code(content: str, rule: FileTypeRule) -> str:
    result = _tidy_lines(remove_comments(content, rule.comments))
    return _BLANK_LINES.sub("", result)


def _strategy_indented(content: str, rule: FileTypeRule) -> str:
    return _tidy_lines(remove_comments(content, rule.comments))


def _strategy_markup(content: str, rule: FileTypeRule) -> str:
    blocks: list[str] = []

    def stash(match: re.Match[str]) -> str:
        blocks.append(match.group(0))
        return f"<\0{len(blocks) - 1}\0>"

    # Verbatim blocks become whitespace-free placeholder tags while the rest collapses.
    result = _VERBATIM_BLOCKS.sub(stash, remove_comments(content, rule.comments))
    result = _ANY_WS.sub(" ", result)
    if rule.tighten_syntax:
        result = _AROUND_SYNTAX.sub(r"\1", result)
    result = _BETWEEN_TAGS.sub("><", result)
    result = _PLACEHOLDER.sub(lambda m: blocks[int(m.group(1))], result)
    return result.strip()


def _strategy_html(content: str, rule: FileTypeRule) -> str:
    # Inline scripts pass through as written; closing tags stay for readability.
    return minify_html.minify(content, minify_css=True, keep_closing_tags=True).strip()


def _strategy_json(content: str, rule: FileTypeRule) -> str:
    try:
        parsed = json.loads(content)
    except ValueError:
        try:
            parsed = json.loads(remove_comments(content, ("c-style",)))
        except ValueError:
            return content.strip()
    return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)


def _strategy_markdown(content: str, rule: FileTypeRule) -> str:
    result = remove_comments(content.replace("\r\n", "\n"), ("html",))
    lines = result.split("\n")
    in_fence = False
    out: list[str] = []
    for line in lines:
        if _MD_FENCE.match(line):
            in_fence = not in_fence
            out.append(line.rstrip())
            continue
        if in_fence:
            out.append(line.rstrip())
            continue
        line = _MD_HEADING.sub(r"\1 ", line)
        line = _MD_LIST.sub(r"\1\2 ", line)
        out.append(line.rstrip())
    return _tidy_lines("\n".join(out))


def _strategy_plain(content: str, rule: FileTypeRule) -> str:
    return _INLINE_WS_RUNS.sub(" ", _tidy_lines(content))


STRATEGIES: dict[str, Callable[[str, FileTypeRule], str]] = {
    "code": _strategy_code,
    "indented": _strategy_indented,
    "html": _strategy_html,
    "markup": _strategy_markup,
    "json": _strategy_json,
    "markdown": _strategy_markdown,
    "plain": _strategy_plain,
}


@dataclass(frozen=True)
class NormalizedContent:
    """Outcome of one normalization attempt."""

    content: str
    reduced: bool
    strategy: str
    reason: str | None = None

    @property
    def failed(self) -> bool:
        return self.reason is not None and not self.reduced


class ContentNormalizer:
    """Dispatches content to a strategy and never lets a strategy fail the caller."""

    def __init__(self, max_content_bytes: int = DEFAULT_MAX_CONTENT_BYTES):
        self.max_content_bytes = max_content_bytes

    def normalize(self, content: str, type_hint: str | None = None) -> NormalizedContent:
        rule = resolve_rule(type_hint)
        if not isinstance(content, str) or not content:
            return NormalizedContent(content=content, reduced=False, strategy=rule.strategy)
        if len(content) > self.max_content_bytes or len(content.encode("utf-8")) > self.max_content_bytes:
            return NormalizedContent(
                content=content, reduced=False, strategy=rule.strategy, reason="File too large"
            )
        try:
            result = STRATEGIES[rule.strategy](content, rule)
        except Exception as e:
            logger.debug(f"Normalization strategy {rule.strategy} failed for {type_hint!r}: {e}")
            return NormalizedContent(
                content=content,
                reduced=False,
                strategy=rule.strategy,
                reason=f"{rule.strategy} strategy failed: {type(e).__name__}",
            )
        if not isinstance(result, str):
            return NormalizedContent(
                content=content,
                reduced=False,
                strategy=rule.strategy,
                reason=f"{rule.strategy} strategy returned {type(result).__name__}",
            )
        return NormalizedContent(content=result, reduced=result != content, strategy=rule.strategy)

    def normalize_payload(
        self, payload: Any, default_hint: str | None = None
    ) -> tuple[Any, int]:
        """Normalize every ``content`` string in a payload tree.

        The type hint for each content field comes from a sibling ``path``,
        ``file_path`` or ``language`` key, falling back to ``default_hint``.
        Returns the new tree and the number of fields that were reduced.
        """
        reduced = 0

        def walk(node: Any, hint: str | None) -> Any:
            nonlocal reduced
            if isinstance(node, dict):
                local_hint = (
                    node.get("path") or node.get("file_path") or node.get("language") or hint
                )
                if not isinstance(local_hint, str):
                    local_hint = hint
                out: dict[str, Any] = {}
                for key, value in node.items():
                    if key == "content" and isinstance(value, str):
                        result = self.normalize(value, local_hint)
                        reduced += int(result.reduced)
                        out[key] = result.content
                    else:
                        out[key] = walk(value, local_hint)
                return out
            if isinstance(node, list):
                return [walk(item, hint) for item in node]
            return node

        return walk(payload, default_hint), reduced


def normalize(content: str, type_hint: str | None = None) -> NormalizedContent:
    return ContentNormalizer().normalize(content, type_hint)
