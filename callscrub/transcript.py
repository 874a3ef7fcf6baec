"""Normalization of speech-to-text output into a chronological word stream.

Accepted payload shapes:

- Deepgram pre-recorded responses (``results.channels[0].alternatives[0]``)
- ``{"text": ..., "words": [...]}`` documents
- Whisper-style ``{"text": ..., "segments": [{"words": [...]}]}``
- A bare list of word objects
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from callscrub.common.pipeline_types import Transcript, Word


@runtime_checkable
class Transcriber(Protocol):
    """Speech-to-text collaborator producing word-level timings."""

    def transcribe(self, audio_path: Path) -> Transcript: ...


def parse_transcript(payload: Any) -> Transcript:
    """Build a Transcript from any supported payload shape.

    Words without a confidence get 1.0, an end before the start is clamped
    to the start, and words are stably sorted by start time.

    Raises:
        ValueError: If the payload shape is not recognised or a word has no
            text or timing
    """
    if isinstance(payload, Transcript):
        return payload

    if isinstance(payload, list):
        text, raw_words = None, payload
    elif isinstance(payload, dict):
        text, raw_words = _extract(payload)
    else:
        raise ValueError(f"Unsupported transcript payload: {type(payload).__name__}")

    words = sorted(
        (_to_word(raw, n) for n, raw in enumerate(raw_words)), key=lambda w: w.start
    )
    if text is None:
        text = " ".join(w.text for w in words)
    return Transcript(text=text, words=words)


def _extract(payload: dict[str, Any]) -> tuple[str | None, list[Any]]:
    if "results" in payload:
        try:
            alternative = payload["results"]["channels"][0]["alternatives"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"Malformed Deepgram response: {e}") from e
        return alternative.get("transcript"), alternative.get("words") or []

    if "words" in payload:
        return payload.get("text"), payload["words"] or []

    if "segments" in payload:
        words: list[Any] = []
        for segment in payload["segments"] or []:
            words.extend(segment.get("words") or [])
        return payload.get("text"), words

    raise ValueError(
        "Transcript payload has none of 'results', 'words' or 'segments'"
    )


def _to_word(raw: Any, index: int) -> Word:
    if isinstance(raw, Word):
        return raw
    if not isinstance(raw, dict):
        raise ValueError(f"Word {index} is not an object")

    text = raw.get("punctuated_word") or raw.get("word") or raw.get("text")
    if text is None:
        raise ValueError(f"Word {index} has no text")

    try:
        start = max(0.0, float(raw["start"]))
        end = max(start, float(raw["end"]))
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Word {index} has invalid timing: {e}") from e

    confidence = raw.get("confidence")
    if confidence is None:
        confidence = raw.get("probability", 1.0)

    return Word(
        text=str(text).strip(),
        start=start,
        end=end,
        confidence=min(max(float(confidence), 0.0), 1.0),
    )


def load_transcript(path: Path) -> Transcript:
    """Read a transcript JSON file in any supported shape."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    return parse_transcript(payload)
