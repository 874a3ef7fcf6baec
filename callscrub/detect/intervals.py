"""Coalesce raw spans into the minimal ordered set of redaction intervals."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from callscrub.common.pipeline_types import RedactionInterval

DEFAULT_MERGE_GAP = 1.0


class TimeRange(Protocol):
    start: float
    end: float


def merge_spans(
    spans: Iterable[TimeRange], gap: float = DEFAULT_MERGE_GAP
) -> list[RedactionInterval]:
    """Merge overlapping or near-adjacent spans.

    Spans are sorted by start (stable, so ties keep input order). A span whose
    start is within ``gap`` seconds of the running interval's end extends it;
    otherwise the running interval is closed. Pattern kinds are dropped.

    Args:
        spans: RawSpans or intervals, in any order
        gap: Largest silence in seconds bridged between two spans

    Returns:
        Sorted, disjoint intervals at least ``gap`` apart
    """
    if gap < 0:
        raise ValueError("merge gap must be non-negative")

    ordered = sorted(spans, key=lambda s: s.start)
    if not ordered:
        return []

    merged: list[RedactionInterval] = []
    current_start, current_end = ordered[0].start, ordered[0].end

    for span in ordered[1:]:
        if span.start <= current_end + gap:
            current_end = max(current_end, span.end)
        else:
            merged.append(RedactionInterval(start=current_start, end=current_end))
            current_start, current_end = span.start, span.end

    merged.append(RedactionInterval(start=current_start, end=current_end))
    return merged


def total_duration(intervals: Iterable[RedactionInterval]) -> float:
    """Seconds of audio covered by disjoint intervals."""
    return sum(i.end - i.start for i in intervals)
