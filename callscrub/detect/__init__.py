"""Sensitive-span detection over word-level transcripts."""

from callscrub.detect.intervals import merge_spans, total_duration
from callscrub.detect.patterns import PATTERNS, match_kind, redact_text
from callscrub.detect.spans import SpanDetector, WindowMatch

__all__ = [
    "PATTERNS",
    "SpanDetector",
    "WindowMatch",
    "match_kind",
    "merge_spans",
    "redact_text",
    "total_duration",
]
