"""Timestamp-aware detection of sensitive spans in a word stream.

Spoken numbers are split across words ("one two three" becomes "123",
"45", "6789"), so each position is tested as a single word first and then
as sliding windows of 2..N consecutive words. Matches are widened with a
few words of context on each side because values are often spoken around
a pause, and a tight cut risks leaving a fragment audible.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog

from callscrub.common.pipeline_types import PatternKind, RawSpan, Word
from callscrub.config import Settings, get_settings
from callscrub.detect.patterns import ALL_KINDS, mask_digits, match_kind


@dataclass(frozen=True)
class WindowMatch:
    """A pattern hit starting at one word index."""

    kind: PatternKind
    size: int  # words in the matching window, 1 for a single word


@dataclass
class _OpenSpan:
    start: float
    end: float
    kind: PatternKind


class SpanDetector:
    """Scans a word stream for sensitive patterns and emits padded time spans.

    Example:
        detector = SpanDetector()
        spans = detector.detect(transcript.words)
    """

    MIN_WINDOW = 2

    def __init__(
        self,
        kinds: Iterable[PatternKind] = ALL_KINDS,
        *,
        leading_context: int | None = None,
        trailing_context: int | None = None,
        max_window: int | None = None,
        settings: Settings | None = None,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.kinds = tuple(k for k in ALL_KINDS if k in set(kinds))
        self.leading_context = (
            settings.leading_context_words if leading_context is None else leading_context
        )
        self.trailing_context = (
            settings.trailing_context_words
            if trailing_context is None
            else trailing_context
        )
        self.max_window = settings.max_window_words if max_window is None else max_window
        if self.leading_context < 0 or self.trailing_context < 0:
            raise ValueError("context word counts must be non-negative")
        if self.max_window < self.MIN_WINDOW:
            raise ValueError(f"max_window must be at least {self.MIN_WINDOW}")
        self.logger = logger or structlog.get_logger()

    def detect(self, words: Sequence[Word]) -> list[RawSpan]:
        """Return padded spans for every run of matching positions, in order.

        Args:
            words: Chronological word stream

        Returns:
            RawSpans ordered by the position that opened them
        """
        spans: list[RawSpan] = []
        if not words or not self.kinds:
            return spans

        last = len(words) - 1
        current: _OpenSpan | None = None

        for i, word in enumerate(words):
            hit = self.match_at(words, i)

            if hit is not None:
                window_end = words[i + hit.size - 1].end
                if current is None:
                    current = _OpenSpan(
                        start=words[max(0, i - self.leading_context)].start,
                        end=max(word.end, window_end),
                        kind=hit.kind,
                    )
                else:
                    current.end = max(current.end, word.end, window_end)
                    current.kind = hit.kind
                self.logger.debug(
                    "sensitive_window_matched",
                    kind=hit.kind.value,
                    word_index=i,
                    window_words=hit.size,
                    text=mask_digits(
                        " ".join(w.text for w in words[i : i + hit.size])
                    ),
                )
            elif current is not None:
                current.end = max(
                    current.end, words[min(i + self.trailing_context, last)].end
                )
                spans.append(self._emit(current))
                current = None

        if current is not None:
            spans.append(self._emit(current))

        return spans

    def match_at(self, words: Sequence[Word], i: int) -> WindowMatch | None:
        """Test the word at ``i`` alone, then windows of growing size from ``i``.

        Stops at the first window size that matches any kind so one spoken
        value is not reported once per window size.
        """
        kind = match_kind(words[i].text, self.kinds)
        if kind is not None:
            return WindowMatch(kind=kind, size=1)

        for size in range(self.MIN_WINDOW, self.max_window + 1):
            if i + size > len(words):
                break
            text = " ".join(w.text for w in words[i : i + size])
            kind = match_kind(text, self.kinds)
            if kind is not None:
                return WindowMatch(kind=kind, size=size)
        return None

    def _emit(self, span: _OpenSpan) -> RawSpan:
        self.logger.info(
            "sensitive_span_detected",
            kind=span.kind.value,
            start=round(span.start, 3),
            end=round(span.end, 3),
        )
        return RawSpan(start=span.start, end=span.end, kind=span.kind)
