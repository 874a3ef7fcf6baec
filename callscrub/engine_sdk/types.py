"""Data types for the engine SDK."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from callscrub.common.pipeline_types import ProcessingOptions, Transcript
from callscrub.transcript import parse_transcript


@dataclass
class TaskInput:
    """Input data provided to an engine's process method.

    Attributes:
        job_id: Job identifier, unique among concurrently running jobs
        audio_path: Path to the source recording
        output_path: Delivery path; its suffix selects WAV or MP3
        transcript: Raw speech-to-text payload for the recording
        config: Redaction options from job parameters
    """

    job_id: str
    audio_path: Path
    output_path: Path
    transcript: Any = None
    config: dict[str, Any] = field(default_factory=dict)

    def get_transcript(self) -> Transcript:
        """Get the transcript normalized into a word stream.

        Raises:
            ValueError: If no transcript was provided or its shape is unknown
        """
        if self.transcript is None:
            raise ValueError(f"Job {self.job_id} has no transcript")
        return parse_transcript(self.transcript)

    def get_options(self) -> ProcessingOptions:
        """Get validated redaction options.

        Raises:
            pydantic.ValidationError: If an option is out of range
        """
        return ProcessingOptions.model_validate(self.config)


@dataclass
class TaskOutput:
    """Output data returned from an engine's process method.

    Attributes:
        data: Structured result - either a Pydantic model or dict.
              Pydantic models are automatically converted to dict for serialization.
        artifacts: Files produced, keyed by name with Path values
    """

    data: BaseModel | dict[str, Any]
    artifacts: dict[str, Path] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert data to dictionary for serialization."""
        if isinstance(self.data, BaseModel):
            return self.data.model_dump(mode="json", exclude_none=False)
        return self.data
