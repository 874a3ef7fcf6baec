"""Thin synchronous wrapper around the ffmpeg and ffprobe executables.

Every invocation has an explicit timeout. On expiry the child is killed and
:class:`ProcessTimeoutError` is raised; output from a timed-out run is never
used. stderr is kept for diagnostics only, control flow looks at the exit
code alone.
"""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

from callscrub.common.pipeline_types import AudioFormat
from callscrub.config import Settings, get_settings
from callscrub.exceptions import (
    DecodeInvalidError,
    ProcessTimeoutError,
    ToolUnavailableError,
)

# Characters of stderr kept on a failed result
STDERR_TAIL = 2000


@dataclass(frozen=True)
class ToolResult:
    """Outcome of a finished (not timed out) ffmpeg run."""

    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_tail(self) -> str:
        return self.stderr[-STDERR_TAIL:]


@dataclass(frozen=True)
class AudioProbe:
    """Stream metadata reported by ffprobe."""

    duration: float | None
    sample_rate: int | None
    channels: int | None
    codec_name: str
    format_name: str


class FFmpeg:
    """Runs ffmpeg/ffprobe with the configured paths and time limits."""

    def __init__(
        self,
        settings: Settings | None = None,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.ffmpeg_path = settings.ffmpeg_path
        self.ffprobe_path = settings.ffprobe_path
        self.timeout = settings.ffmpeg_timeout_seconds
        self.probe_timeout = settings.ffprobe_timeout_seconds
        self.logger = logger or structlog.get_logger()

    def run(self, args: list[str], timeout: float | None = None) -> ToolResult:
        """Run ffmpeg with ``args`` (overwrite enabled, banner hidden).

        Args:
            args: Arguments after the executable, input and output included
            timeout: Seconds before the process is killed (default from settings)

        Returns:
            ToolResult with the exit code and captured stderr

        Raises:
            ProcessTimeoutError: The process exceeded its time budget
            ToolUnavailableError: ffmpeg could not be executed
        """
        limit = self.timeout if timeout is None else timeout
        cmd = [self.ffmpeg_path, "-y", "-hide_banner", *args]
        self.logger.debug("running_ffmpeg", cmd=" ".join(cmd), timeout=limit)

        try:
            completed = subprocess.run(
                cmd, capture_output=True, text=True, timeout=limit
            )
        except subprocess.TimeoutExpired:
            self.logger.warning("ffmpeg_timed_out", timeout=limit)
            raise ProcessTimeoutError("ffmpeg", limit) from None
        except FileNotFoundError as e:
            raise ToolUnavailableError(self.ffmpeg_path) from e

        result = ToolResult(returncode=completed.returncode, stderr=completed.stderr)
        if not result.ok:
            self.logger.warning(
                "ffmpeg_failed",
                returncode=result.returncode,
                stderr=result.stderr_tail,
            )
        return result

    def probe(self, path: Path) -> AudioProbe:
        """Probe the first audio stream of a file.

        Raises:
            DecodeInvalidError: ffprobe failed or found no audio stream
            ProcessTimeoutError: ffprobe exceeded its time budget
            ToolUnavailableError: ffprobe could not be executed
        """
        cmd = [
            self.ffprobe_path,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_streams",
            "-show_format",
            "-select_streams",
            "a:0",  # First audio stream
            str(path),
        ]

        try:
            completed = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.probe_timeout
            )
        except subprocess.TimeoutExpired:
            raise ProcessTimeoutError("ffprobe", self.probe_timeout) from None
        except FileNotFoundError as e:
            raise ToolUnavailableError(self.ffprobe_path) from e

        if completed.returncode != 0:
            raise DecodeInvalidError(f"ffprobe failed for {path}: {completed.stderr}")

        try:
            probe_data = json.loads(completed.stdout)
        except json.JSONDecodeError as e:
            raise DecodeInvalidError(f"Failed to parse ffprobe output: {e}") from e

        streams = probe_data.get("streams", [])
        format_info = probe_data.get("format", {})
        if not streams:
            raise DecodeInvalidError(
                f"No audio stream found in {path}. "
                "File may be corrupted or contain no audio."
            )

        stream = streams[0]
        duration_str = stream.get("duration") or format_info.get("duration")
        sample_rate_str = stream.get("sample_rate")

        return AudioProbe(
            duration=float(duration_str) if duration_str else None,
            sample_rate=int(sample_rate_str) if sample_rate_str else None,
            channels=stream.get("channels"),
            codec_name=stream.get("codec_name", "unknown"),
            format_name=format_info.get("format_name", "unknown"),
        )

    def available(self) -> dict[str, bool]:
        """Report whether ffmpeg and ffprobe can be executed."""
        status = {}
        for name, exe in (("ffmpeg", self.ffmpeg_path), ("ffprobe", self.ffprobe_path)):
            try:
                completed = subprocess.run(
                    [exe, "-version"], capture_output=True, timeout=self.probe_timeout
                )
                status[name] = completed.returncode == 0
            except (FileNotFoundError, subprocess.TimeoutExpired):
                status[name] = False
        return status


# MPEG audio layer bits in the second frame-header byte (00 is reserved)
_MPEG_LAYER_MASK = 0x06


def detect_format(path: Path) -> AudioFormat:
    """Identify the container from its leading bytes, extension as a hint.

    Returns:
        WAV for RIFF/WAVE, MP3 for an ID3 tag or MPEG audio frame sync,
        otherwise the extension's format, or UNKNOWN
    """
    path = Path(path)
    with open(path, "rb") as f:
        header = f.read(12)

    if len(header) >= 12 and header[:4] == b"RIFF" and header[8:12] == b"WAVE":
        return AudioFormat.WAV
    if header[:3] == b"ID3":
        return AudioFormat.MP3
    if (
        len(header) >= 2
        and header[0] == 0xFF
        and header[1] & 0xE0 == 0xE0
        and header[1] & _MPEG_LAYER_MASK != 0
    ):
        return AudioFormat.MP3

    suffix = path.suffix.lower().lstrip(".")
    if suffix == AudioFormat.MP3.value:
        return AudioFormat.MP3
    # A ".wav" name without a RIFF header is not trusted as WAV
    return AudioFormat.UNKNOWN
