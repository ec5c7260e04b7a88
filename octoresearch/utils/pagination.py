"""Character-offset pagination for large text results."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PageSlice:
    """One page of a larger text plus the metadata needed to fetch the next."""

    content: str
    char_offset: int
    char_length: int
    total_chars: int
    has_more: bool
    current_page: int
    total_pages: int
    next_char_offset: int | None = None

    def to_dict(self) -> dict[str, Any]:
        info: dict[str, Any] = {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "charOffset": self.char_offset,
            "charLength": self.char_length,
            "totalChars": self.total_chars,
            "hasMore": self.has_more,
        }
        if self.next_char_offset is not None:
            info["nextCharOffset"] = self.next_char_offset
        return info


def apply_pagination(content: str, char_offset: int = 0, char_length: int | None = None) -> PageSlice:
    """Slice ``content`` to at most ``char_length`` characters from ``char_offset``.

    Without a length the whole text is one page. An offset past the end
    yields an empty final page rather than an error.
    """
    total = len(content)
    if not char_length:
        return PageSlice(
            content=content,
            char_offset=0,
            char_length=total,
            total_chars=total,
            has_more=False,
            current_page=1,
            total_pages=1,
        )

    start = min(char_offset, total)
    end = min(start + char_length, total)
    has_more = end < total
    return PageSlice(
        content=content[start:end],
        char_offset=start,
        char_length=end - start,
        total_chars=total,
        has_more=has_more,
        current_page=char_offset // char_length + 1,
        total_pages=max(math.ceil(total / char_length), 1),
        next_char_offset=end if has_more else None,
    )
