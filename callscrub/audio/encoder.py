"""Re-encoding of processed PCM to MP3 at roughly the source file's size.

Matching the uploaded footprint is a convenience for callers, not a
correctness property: when the bitrate search does not converge the last
encode is kept.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path

import structlog

from callscrub.audio.buffer import AudioBuffer, write_wav
from callscrub.audio.ffmpeg import FFmpeg
from callscrub.config import Settings, get_settings
from callscrub.exceptions import EncodeFailedError


@dataclass(frozen=True)
class EncodeReport:
    """What the size search ended with."""

    path: Path
    bitrate_kbps: int
    size_bytes: int
    target_bytes: int
    attempts: int
    converged: bool


class SizeMatchingEncoder:
    """Encodes an AudioBuffer to MP3, steering bitrate towards a byte target."""

    CODEC = "libmp3lame"

    def __init__(
        self,
        ffmpeg: FFmpeg | None = None,
        settings: Settings | None = None,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpeg(settings)
        self.initial_bitrate = settings.initial_bitrate_kbps
        self.min_bitrate = settings.min_bitrate_kbps
        self.max_bitrate = settings.max_bitrate_kbps
        self.max_attempts = settings.compression_attempts
        self.logger = logger or structlog.get_logger()

    def next_bitrate(self, bitrate: int, size: int, target: int) -> int:
        """Scale bitrate by target/size, clamped to the allowed range."""
        ratio = target / size
        return min(max(math.floor(bitrate * ratio), self.min_bitrate), self.max_bitrate)

    def compress_to_target(
        self,
        buf: AudioBuffer,
        target_bytes: int,
        output_path: Path,
        work_dir: Path,
        tolerance: float = 0.10,
    ) -> EncodeReport:
        """Encode ``buf`` to ``output_path`` within ``tolerance`` of target size.

        Args:
            buf: Processed PCM
            target_bytes: Desired output size (the source file's size)
            output_path: Where the MP3 is written
            work_dir: Job-private directory for the intermediate WAV
            tolerance: Accepted relative size error

        Returns:
            EncodeReport of the last encode

        Raises:
            EncodeFailedError: ffmpeg could not produce a non-empty file
        """
        pcm_path = work_dir / "encode_input.wav"
        try:
            write_wav(buf, pcm_path)
        except OSError as e:
            raise EncodeFailedError(
                f"Failed to write intermediate WAV: {e}", stage="reencode"
            ) from e

        bitrate = self.initial_bitrate
        size = 0
        try:
            for attempt in range(1, self.max_attempts + 1):
                size = self._encode(pcm_path, output_path, bitrate)
                error = abs(size - target_bytes) / target_bytes if target_bytes > 0 else 0.0
                log = self.logger.bind(
                    attempt=attempt, bitrate_kbps=bitrate, size_bytes=size
                )

                if error < tolerance:
                    log.info("size_target_reached", target_bytes=target_bytes)
                    return EncodeReport(
                        path=output_path,
                        bitrate_kbps=bitrate,
                        size_bytes=size,
                        target_bytes=target_bytes,
                        attempts=attempt,
                        converged=True,
                    )

                if attempt < self.max_attempts:
                    new_bitrate = self.next_bitrate(bitrate, size, target_bytes)
                    log.info(
                        "size_target_missed",
                        target_bytes=target_bytes,
                        relative_error=round(error, 3),
                        next_bitrate_kbps=new_bitrate,
                    )
                    if new_bitrate == bitrate:
                        # Clamped; another encode would produce the same file
                        break
                    bitrate = new_bitrate
        finally:
            pcm_path.unlink(missing_ok=True)

        self.logger.warning(
            "size_target_best_effort",
            bitrate_kbps=bitrate,
            size_bytes=size,
            target_bytes=target_bytes,
        )
        return EncodeReport(
            path=output_path,
            bitrate_kbps=bitrate,
            size_bytes=size,
            target_bytes=target_bytes,
            attempts=attempt,
            converged=False,
        )

    def _encode(self, pcm_path: Path, output_path: Path, bitrate: int) -> int:
        args = [
            "-i",
            str(pcm_path),
            "-codec:a",
            self.CODEC,
            "-b:a",
            f"{bitrate}k",
            "-f",
            "mp3",
            str(output_path),
        ]
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise EncodeFailedError(
                f"ffmpeg encode exited with code {result.returncode}: "
                f"{result.stderr_tail}",
                stage="reencode",
            )
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise EncodeFailedError(
                f"ffmpeg did not produce output file: {output_path}", stage="reencode"
            )
        return output_path.stat().st_size
