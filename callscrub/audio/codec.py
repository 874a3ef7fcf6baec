"""Conversion of source recordings into canonical PCM.

PCM WAV input is decoded directly. Anything else, and WAV input that fails
verification, goes through a two-profile ffmpeg cascade::

    TryPrimary --ok--> Verify --ok--> Canonical
        |                 |
       fail              fail
        v                 v
    TrySecondary --ok--> Verify --ok--> Canonical
        |                 |
       fail              fail
        v                 v
    retries left ? (sleep backoff, next pass) : ConversionFailed
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import structlog

from callscrub.audio.buffer import AudioBuffer, verify_wav
from callscrub.audio.ffmpeg import FFmpeg, detect_format
from callscrub.common.pipeline_types import AudioFormat
from callscrub.config import Settings, get_settings
from callscrub.exceptions import (
    ConversionFailedError,
    DecodeInvalidError,
    InputNotFoundError,
    ProcessTimeoutError,
    ToolUnavailableError,
)


@dataclass(frozen=True)
class ConversionProfile:
    """One set of ffmpeg output parameters for producing canonical PCM."""

    name: str
    sample_rate: int
    channels: int = 2
    codec: str = "pcm_s16le"  # 16-bit signed PCM
    resampler: str | None = None

    def args(self, input_path: Path, output_path: Path) -> list[str]:
        args = [
            "-i",
            str(input_path),
            "-acodec",
            self.codec,
            "-ar",
            str(self.sample_rate),
            "-ac",
            str(self.channels),
        ]
        if self.resampler:
            args += ["-af", f"aresample=resampler={self.resampler}"]
        args += ["-f", "wav", str(output_path)]
        return args


PRIMARY_PROFILE = ConversionProfile(name="primary", sample_rate=44100)
SECONDARY_PROFILE = ConversionProfile(
    name="secondary", sample_rate=48000, resampler="soxr"
)


@dataclass
class CanonicalAudio:
    """Decoded source audio plus how it was obtained."""

    buffer: AudioBuffer
    source_format: AudioFormat
    converted: bool
    profile: str | None = None
    attempts: int = 0


class CodecAdapter:
    """Turns a source recording into a verified :class:`AudioBuffer`."""

    def __init__(
        self,
        ffmpeg: FFmpeg | None = None,
        settings: Settings | None = None,
        profiles: tuple[ConversionProfile, ...] = (PRIMARY_PROFILE, SECONDARY_PROFILE),
        sleep: Callable[[float], None] = time.sleep,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpeg(settings)
        self.profiles = profiles
        self.retry_budget = settings.conversion_retries
        self.backoff = settings.conversion_backoff_seconds
        self._sleep = sleep
        self.logger = logger or structlog.get_logger()

    def to_canonical_pcm(
        self,
        path: Path,
        work_dir: Path,
        retry_budget: int | None = None,
    ) -> CanonicalAudio:
        """Decode ``path`` into canonical PCM, converting if needed.

        Args:
            path: Source recording
            work_dir: Job-private directory for intermediate WAV files
            retry_budget: Extra passes over all profiles (default from settings)

        Returns:
            CanonicalAudio holding the verified buffer

        Raises:
            InputNotFoundError: The source does not exist
            ConversionFailedError: Every profile failed on every pass
        """
        path = Path(path)
        if not path.is_file():
            raise InputNotFoundError(path)

        source_format = detect_format(path)
        self.logger.info(
            "source_format_detected", path=str(path), format=source_format.value
        )

        if source_format == AudioFormat.WAV:
            try:
                buf = verify_wav(path)
                return CanonicalAudio(
                    buffer=buf, source_format=source_format, converted=False
                )
            except DecodeInvalidError as e:
                # e.g. float or ADPCM WAV; ffmpeg can still read it
                self.logger.warning("direct_wav_decode_failed", error=str(e))

        budget = self.retry_budget if retry_budget is None else retry_budget
        if budget < 0:
            raise ValueError("retry_budget must be non-negative")
        return self._convert(path, work_dir, source_format, budget)

    def _convert(
        self,
        path: Path,
        work_dir: Path,
        source_format: AudioFormat,
        retry_budget: int,
    ) -> CanonicalAudio:
        passes = retry_budget + 1
        last_error: str | None = None
        attempts = 0

        for attempt in range(passes):
            for profile in self.profiles:
                attempts += 1
                output_path = work_dir / f"canonical_{profile.name}_{attempt}.wav"
                log = self.logger.bind(
                    profile=profile.name, attempt=attempt + 1, max_attempts=passes
                )
                try:
                    buf = self._attempt(path, output_path, profile)
                except (
                    ConversionFailedError,
                    DecodeInvalidError,
                    ProcessTimeoutError,
                    ToolUnavailableError,
                ) as e:
                    last_error = str(e)
                    log.warning("conversion_attempt_failed", error=last_error)
                    continue
                finally:
                    output_path.unlink(missing_ok=True)

                log.info(
                    "conversion_succeeded",
                    sample_rate=buf.sample_rate,
                    channels=buf.channels,
                    duration=round(buf.duration, 3),
                )
                return CanonicalAudio(
                    buffer=buf,
                    source_format=source_format,
                    converted=True,
                    profile=profile.name,
                    attempts=attempts,
                )

            if attempt < passes - 1:
                self.logger.info(
                    "conversion_retry_scheduled",
                    delay_seconds=self.backoff,
                    retries_left=passes - attempt - 1,
                )
                self._sleep(self.backoff)

        self.logger.error(
            "conversion_exhausted", attempts=attempts, last_error=last_error
        )
        raise ConversionFailedError(
            f"Failed to convert {path.name} after {attempts} attempts",
            attempts=attempts,
            last_error=last_error,
        )

    def _attempt(
        self, path: Path, output_path: Path, profile: ConversionProfile
    ) -> AudioBuffer:
        result = self.ffmpeg.run(profile.args(path, output_path))
        if not result.ok:
            raise ConversionFailedError(
                f"ffmpeg {profile.name} profile exited with code {result.returncode}: "
                f"{result.stderr_tail}",
                attempts=1,
                last_error=result.stderr_tail,
            )
        return verify_wav(output_path)
