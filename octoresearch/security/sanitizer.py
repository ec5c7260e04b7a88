"""Secret detection and redaction for inbound parameters and outbound content.

Outbound text is scanned with every precompiled pattern. All candidate spans
are collected, overlaps are resolved in favour of the longest span (the
earlier, more specific pattern on ties) and each surviving span is replaced
with ``[REDACTED:<category>]``. A span that loses an overlap can hide a
shorter secret, so passes repeat over the rewritten text until one finds
nothing. Existing redaction tokens are never matched again, so a pass only
ever sees the text between tokens and a sanitized string is a fixed point.

The sanitizer never raises. An internal failure leaves the content as it
was, marks the report as failed and logs a warning.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Iterable

from loguru import logger

from octoresearch.security.patterns import (
    ALL_PATTERNS,
    REDACTION_TOKEN_RE,
    SecretPattern,
    redaction_token,
)

# Keys that must never reach dynamic structures downstream.
DANGEROUS_KEYS = frozenset({"__proto__", "constructor", "prototype"})


@dataclass
class SanitizationReport:
    """What a sanitization pass removed. Internal only, never returned to callers."""

    redacted_count: int = 0
    categories: list[str] = field(default_factory=list)
    dropped_keys: list[str] = field(default_factory=list)
    failed: bool = False

    @property
    def changed(self) -> bool:
        return self.redacted_count > 0 or bool(self.dropped_keys)

    def record(self, category: str) -> None:
        self.redacted_count += 1
        if category not in self.categories:
            self.categories.append(category)

    def merge(self, other: SanitizationReport) -> None:
        self.redacted_count += other.redacted_count
        for category in other.categories:
            if category not in self.categories:
                self.categories.append(category)
        self.dropped_keys.extend(other.dropped_keys)
        self.failed = self.failed or other.failed


@dataclass(frozen=True)
class SanitizedText:
    """Result of sanitizing a single string."""

    text: str
    report: SanitizationReport

    @property
    def redactions(self) -> int:
        return self.report.redacted_count


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    order: int
    pattern: SecretPattern

    @property
    def length(self) -> int:
        return self.end - self.start


class ContentSanitizer:
    """Pattern-matching redaction engine over a fixed, precompiled pattern set."""

    def __init__(self, patterns: Iterable[SecretPattern] = ALL_PATTERNS):
        self._patterns: tuple[SecretPattern, ...] = tuple(patterns)

    @property
    def pattern_count(self) -> int:
        return len(self._patterns)

    def _collect_spans(self, text: str) -> list[_Span]:
        protected = [(m.start(), m.end()) for m in REDACTION_TOKEN_RE.finditer(text)]
        spans: list[_Span] = []
        for order, pattern in enumerate(self._patterns):
            for match in pattern.regex.finditer(text):
                start, end = match.span()
                if start == end:
                    continue
                if any(start < p_end and p_start < end for p_start, p_end in protected):
                    continue
                spans.append(_Span(start, end, order, pattern))
        return spans

    @staticmethod
    def _resolve_overlaps(spans: list[_Span]) -> list[_Span]:
        """Greedy selection: longest first, earlier pattern on ties, then leftmost."""
        ordered = sorted(spans, key=lambda s: (-s.length, s.order, s.start))
        starts: list[int] = []
        chosen: list[_Span] = []
        for span in ordered:
            pos = bisect.bisect_left(starts, span.start)
            if pos > 0 and chosen[pos - 1].end > span.start:
                continue
            if pos < len(chosen) and chosen[pos].start < span.end:
                continue
            starts.insert(pos, span.start)
            chosen.insert(pos, span)
        return chosen

    @staticmethod
    def _replace(text: str, chosen: list[_Span], report: SanitizationReport) -> str:
        parts: list[str] = []
        cursor = 0
        for span in chosen:
            parts.append(text[cursor : span.start])
            parts.append(redaction_token(span.pattern.category))
            report.record(span.pattern.category)
            cursor = span.end
        parts.append(text[cursor:])
        return "".join(parts)

    def sanitize_outbound(self, text: str) -> SanitizedText:
        """Redact every secret-shaped substring of ``text``."""
        report = SanitizationReport()
        if not text:
            return SanitizedText(text=text, report=report)
        try:
            redacted = text
            # Terminates: every pass turns unprotected characters into tokens.
            while chosen := self._resolve_overlaps(self._collect_spans(redacted)):
                redacted = self._replace(redacted, chosen, report)
            return SanitizedText(text=redacted, report=report)
        except Exception as e:
            logger.warning(f"Sanitizer failed, content left unredacted: {type(e).__name__}")
            return SanitizedText(text=text, report=SanitizationReport(failed=True))

    def sanitize_inbound(self, tree: Any) -> tuple[Any, SanitizationReport]:
        """Drop dangerous keys and redact string leaves of a parameter tree."""
        report = SanitizationReport()
        try:
            return self._walk(tree, report, drop_dangerous=True), report
        except Exception as e:
            logger.warning(f"Inbound sanitization failed, parameters left as-is: {type(e).__name__}")
            return tree, SanitizationReport(failed=True)

    def sanitize_payload(self, tree: Any) -> tuple[Any, SanitizationReport]:
        """Redact every string leaf of an outbound payload, keeping its shape."""
        report = SanitizationReport()
        try:
            return self._walk(tree, report, drop_dangerous=False), report
        except Exception as e:
            logger.warning(f"Payload sanitization failed, payload left as-is: {type(e).__name__}")
            return tree, SanitizationReport(failed=True)

    def _walk(self, node: Any, report: SanitizationReport, *, drop_dangerous: bool) -> Any:
        if isinstance(node, str):
            result = self.sanitize_outbound(node)
            report.merge(result.report)
            return result.text
        if isinstance(node, dict):
            cleaned: dict[Any, Any] = {}
            for key, value in node.items():
                if drop_dangerous and key in DANGEROUS_KEYS:
                    report.dropped_keys.append(str(key))
                    continue
                cleaned[key] = self._walk(value, report, drop_dangerous=drop_dangerous)
            return cleaned
        if isinstance(node, (list, tuple)):
            return [self._walk(item, report, drop_dangerous=drop_dangerous) for item in node]
        return node


_default_sanitizer: ContentSanitizer | None = None


def get_sanitizer() -> ContentSanitizer:
    """Shared sanitizer over the full pattern catalogue."""
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = ContentSanitizer()
    return _default_sanitizer


def sanitize_outbound(text: str) -> SanitizedText:
    return get_sanitizer().sanitize_outbound(text)


def sanitize_inbound(tree: Any) -> tuple[Any, SanitizationReport]:
    return get_sanitizer().sanitize_inbound(tree)
