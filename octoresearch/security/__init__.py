"""Secret redaction for inbound parameters and outbound content."""

from octoresearch.security.sanitizer import (
    DANGEROUS_KEYS,
    ContentSanitizer,
    SanitizationReport,
    SanitizedText,
    get_sanitizer,
    sanitize_inbound,
    sanitize_outbound,
)

__all__ = [
    "DANGEROUS_KEYS",
    "ContentSanitizer",
    "SanitizationReport",
    "SanitizedText",
    "get_sanitizer",
    "sanitize_inbound",
    "sanitize_outbound",
]
