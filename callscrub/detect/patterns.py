"""Text matchers for sensitive values in spoken transcripts.

Every kind is a single regex tried with ``search`` against one word's text
or against a window of consecutive words joined by a single space, so the
separators allow either a dash or the space the window join introduces.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from callscrub.common.pipeline_types import PatternKind

PATTERNS: dict[PatternKind, re.Pattern[str]] = {
    # 123-45-6789 / 123 45 6789 / 123456789
    PatternKind.SSN: re.compile(r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b"),
    # Four groups of four digits
    PatternKind.CREDIT_CARD: re.compile(
        r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"
    ),
    # 555-123-4567 / 555 123 4567
    PatternKind.PHONE_NUMBER: re.compile(r"\b\d{3}[-\s]?\d{3}[-\s]?\d{4}\b"),
    PatternKind.BANK_ACCOUNT: re.compile(r"\b\d{8,17}\b"),
    PatternKind.ROUTING_NUMBER: re.compile(r"\b\d{9}\b"),
}

ALL_KINDS: tuple[PatternKind, ...] = tuple(PatternKind)

_DIGIT = re.compile(r"\d")


def match_kind(
    text: str, kinds: Iterable[PatternKind] = ALL_KINDS
) -> PatternKind | None:
    """Return the first kind (in declaration order) whose pattern occurs in text."""
    wanted = set(kinds)
    for kind in ALL_KINDS:
        if kind in wanted and PATTERNS[kind].search(text):
            return kind
    return None


def redact_text(text: str, kinds: Iterable[PatternKind] = ALL_KINDS) -> str:
    """Replace every sensitive value in text with a ``[REDACTED <KIND>]`` marker."""
    wanted = set(kinds)
    redacted = text
    for kind in ALL_KINDS:
        if kind in wanted:
            label = f"[REDACTED {kind.name.replace('_', ' ')}]"
            redacted = PATTERNS[kind].sub(label, redacted)
    return redacted


def mask_digits(text: str) -> str:
    """Hide digits so matched values can be logged."""
    return _DIGIT.sub("*", text)
