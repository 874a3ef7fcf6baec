"""Strongly typed data contracts between redaction stages.

Design principles:
1. Single timeline - every time value is seconds from the start of the source audio
2. Immutable stage outputs - words, spans and intervals are frozen once produced
3. Content-agnostic redaction - intervals carry no pattern kind downstream
4. Tagged results - callers branch on ``ProcessingResult.kind``
"""

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Enums
# =============================================================================


class PatternKind(str, Enum):
    """Sensitive content categories recognised in transcripts.

    Declaration order is the tie-break order when one window matches
    several kinds.
    """

    SSN = "ssn"
    CREDIT_CARD = "credit_card"
    PHONE_NUMBER = "phone_number"
    BANK_ACCOUNT = "bank_account"
    ROUTING_NUMBER = "routing_number"


class RedactionMethod(str, Enum):
    """How redacted audio is replaced."""

    BEEP = "beep"  # 1kHz tone at beep_volume
    MUTE = "mute"  # digital silence


class AudioFormat(str, Enum):
    """Container formats understood by the pipeline."""

    WAV = "wav"
    MP3 = "mp3"
    UNKNOWN = "unknown"


class ResultKind(str, Enum):
    """Which path the pipeline took for a job."""

    DIRECT = "direct"  # source decoded without conversion
    CONVERTED = "converted"  # source went through the conversion cascade
    COMPRESSED = "compressed"  # redacted audio re-encoded to match source size
    FALLBACK = "fallback"  # redaction failed; silence delivered instead


# =============================================================================
# Transcript
# =============================================================================


class Word(BaseModel):
    """Word-level timing information."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str = Field(..., description="The word text")
    start: float = Field(..., ge=0, description="Start time in seconds")
    end: float = Field(..., ge=0, description="End time in seconds")
    confidence: float = Field(
        default=1.0, ge=0, le=1, description="0.0-1.0 recognition confidence"
    )

    @model_validator(mode="after")
    def _check_order(self) -> "Word":
        if self.end < self.start:
            raise ValueError(f"word end {self.end} is before start {self.start}")
        return self


class Transcript(BaseModel):
    """Chronological word stream plus the overall transcript string."""

    model_config = ConfigDict(extra="forbid")

    text: str = Field(default="", description="Full transcript text")
    words: list[Word] = Field(default_factory=list, description="Ordered words")

    @property
    def duration(self) -> float:
        """End time of the last word, 0.0 for an empty transcript."""
        return self.words[-1].end if self.words else 0.0


# =============================================================================
# Spans and intervals
# =============================================================================


class RawSpan(BaseModel):
    """Unmerged time range produced by one detected match (context included)."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: float = Field(..., ge=0, description="Start time in seconds")
    end: float = Field(..., ge=0, description="End time in seconds")
    kind: PatternKind = Field(..., description="Pattern that most recently matched")

    @model_validator(mode="after")
    def _check_order(self) -> "RawSpan":
        if self.end < self.start:
            raise ValueError(f"span end {self.end} is before start {self.start}")
        return self


class RedactionInterval(BaseModel):
    """Merged, disjoint time range scheduled for redaction."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    start: float = Field(..., ge=0, description="Start time in seconds")
    end: float = Field(..., ge=0, description="End time in seconds")

    @model_validator(mode="after")
    def _check_order(self) -> "RedactionInterval":
        if self.end < self.start:
            raise ValueError(f"interval end {self.end} is before start {self.start}")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


# =============================================================================
# Options
# =============================================================================


class ProcessingOptions(BaseModel):
    """Per-job redaction options."""

    model_config = ConfigDict(extra="ignore")

    redaction_method: RedactionMethod = Field(
        default=RedactionMethod.BEEP, description="Replace with tone or silence"
    )
    beep_volume: float = Field(
        default=0.2, ge=0, le=1, description="Tone amplitude, 0.0-1.0 full scale"
    )
    audio_volume: float = Field(
        default=1.0, ge=0, description="Gain applied to the whole recording"
    )
    size_tolerance: float = Field(
        default=0.10,
        gt=0,
        lt=1,
        description="Accepted relative size difference when re-encoding",
    )


# =============================================================================
# Results
# =============================================================================


class DirectResult(BaseModel):
    """Source decoded directly and delivered in its own format."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["direct"] = "direct"
    path: Path
    format: AudioFormat


class ConvertedResult(BaseModel):
    """Source went through the conversion cascade before redaction."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["converted"] = "converted"
    path: Path
    format: AudioFormat


class CompressedResult(BaseModel):
    """Redacted audio re-encoded to approximate the source file size."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["compressed"] = "compressed"
    path: Path
    format: AudioFormat
    bitrate_kbps: int | None = Field(default=None, description="Final encoder bitrate")
    size_converged: bool = Field(
        default=True, description="False when the size target was not reached"
    )


class FallbackResult(BaseModel):
    """Redaction failed; the delivery file contains silence only."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["fallback"] = "fallback"
    path: Path
    beep_track_path: Path | None = Field(
        default=None, description="Standalone beep track, None if it could not be written"
    )
    player_path: Path | None = Field(
        default=None, description="Playback pairing page, None if it could not be written"
    )
    failed_stage: str | None = Field(default=None, description="Stage that failed")
    reason: str | None = Field(default=None, description="Failure message")


ProcessingResult = Annotated[
    DirectResult | ConvertedResult | CompressedResult | FallbackResult,
    Field(discriminator="kind"),
]


class RedactOutput(BaseModel):
    """Output of one redaction job, as returned by the engine."""

    model_config = ConfigDict(extra="forbid")

    job_id: str
    result: ProcessingResult
    intervals: list[RedactionInterval] = Field(default_factory=list)
    spans_detected: int = Field(default=0, ge=0)
    span_count_by_kind: dict[str, int] = Field(default_factory=dict)
    redacted_text: str = Field(default="", description="Transcript with values masked")
    redacted_seconds: float = Field(default=0.0, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
