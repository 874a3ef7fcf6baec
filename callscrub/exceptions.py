"""Redaction error taxonomy.

Only :class:`InputNotFoundError` and :class:`FallbackFailedError` reach the
caller of the pipeline. Decode, conversion and encode failures are caught by
the orchestrator and turned into a fallback result.
"""

from __future__ import annotations

from typing import Any


class RedactionError(Exception):
    """Base class for all redaction pipeline errors."""

    code = "redaction_error"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON error output."""
        result: dict[str, Any] = {
            "error": self.code,
            "message": str(self),
        }
        if self.stage:
            result["stage"] = self.stage
        return result


class InputNotFoundError(RedactionError):
    """Raised when the source recording does not exist."""

    code = "input_not_found"

    def __init__(self, path: object) -> None:
        super().__init__(f"Input file does not exist: {path}", stage="convert")
        self.path = path


class DecodeInvalidError(RedactionError):
    """Raised when audio is corrupt, unreadable or fails verification."""

    code = "decode_invalid"


class ConversionFailedError(RedactionError):
    """Raised when every conversion profile failed for the whole retry budget."""

    code = "conversion_failed"

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        last_error: str | None = None,
    ) -> None:
        super().__init__(message, stage="convert")
        self.attempts = attempts
        self.last_error = last_error

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = self.attempts
        if self.last_error:
            result["last_error"] = self.last_error
        return result


class EncodeFailedError(RedactionError):
    """Raised when processed audio could not be written to the delivery format."""

    code = "encode_failed"


class FallbackFailedError(RedactionError):
    """Raised when even silence could not be produced. Fatal for the job."""

    code = "fallback_failed"

    def __init__(self, message: str) -> None:
        super().__init__(message, stage="fallback")


class ProcessTimeoutError(RedactionError, TimeoutError):
    """Raised when an external process exceeds its time budget.

    The child process has already been killed when this is raised; no
    partial output from it may be used.
    """

    code = "timeout"

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(f"{command} timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout


class ToolUnavailableError(RedactionError):
    """Raised when ffmpeg or ffprobe cannot be executed."""

    code = "tool_unavailable"

    def __init__(self, tool: str) -> None:
        super().__init__(
            f"{tool} is not available. Install with: apt-get install ffmpeg"
        )
        self.tool = tool
