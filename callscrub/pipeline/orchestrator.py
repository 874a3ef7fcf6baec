"""Per-job sequencing of the redaction stages.

State machine::

    Start -> Convert -> Redact -> Reencode -> Done(success)
               |          |          |
               +----------+----------+--> Fallback -> Done(fallback)
                                              |
                                              +--> Done(failed)

All intermediate files live in a job-unique temporary directory that is
removed on every exit path. The delivery file only ever appears through a
rename. When samples were overwritten, or silence was delivered, it is
checked against the source before returning.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
import time
import uuid
from collections.abc import Sequence
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from callscrub.audio.buffer import write_wav
from callscrub.audio.codec import CodecAdapter
from callscrub.audio.encoder import SizeMatchingEncoder
from callscrub.audio.fallback import SecureFallback
from callscrub.audio.redactor import frames_in_range, redact
from callscrub.common.pipeline_types import (
    AudioFormat,
    CompressedResult,
    ConvertedResult,
    DirectResult,
    FallbackResult,
    ProcessingOptions,
    ProcessingResult,
    RedactionInterval,
)
from callscrub.config import Settings, get_settings
from callscrub.detect.intervals import total_duration
from callscrub.exceptions import (
    EncodeFailedError,
    FallbackFailedError,
    InputNotFoundError,
)

DELIVERY_FORMATS = {f".{AudioFormat.WAV.value}", f".{AudioFormat.MP3.value}"}

# Read size for content hashing
_HASH_CHUNK = 1024 * 1024


class RedactionOutcome(BaseModel):
    """A pipeline result together with what was scheduled and how long it took."""

    model_config = ConfigDict(extra="forbid")

    job_id: str
    result: ProcessingResult
    intervals: list[RedactionInterval] = Field(default_factory=list)
    redacted_seconds: float = Field(default=0.0, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)


def delivery_format(output_path: Path) -> AudioFormat:
    """Delivery format implied by the output file name.

    Raises:
        ValueError: For anything other than .wav or .mp3
    """
    suffix = Path(output_path).suffix.lower()
    if suffix not in DELIVERY_FORMATS:
        raise ValueError(
            f"Unsupported delivery format '{suffix}'. "
            f"Use one of: {', '.join(sorted(DELIVERY_FORMATS))}"
        )
    return AudioFormat(suffix.lstrip("."))


def same_content(a: Path, b: Path) -> bool:
    """True when both files exist and are byte-identical."""
    if not (a.is_file() and b.is_file()):
        return False
    if a.stat().st_size != b.stat().st_size:
        return False
    return _sha256(a) == _sha256(b)


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


class RedactionPipeline:
    """Runs Convert, Redact and Reencode for one recording at a time.

    The pipeline holds no per-job state, so one instance can serve
    concurrent jobs as long as their job ids differ.
    """

    def __init__(
        self,
        codec: CodecAdapter | None = None,
        encoder: SizeMatchingEncoder | None = None,
        fallback: SecureFallback | None = None,
        settings: Settings | None = None,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.logger = logger or structlog.get_logger()
        self.codec = codec or CodecAdapter(settings=self.settings, logger=self.logger)
        self.encoder = encoder or SizeMatchingEncoder(
            settings=self.settings, logger=self.logger
        )
        self.fallback = fallback or SecureFallback(
            settings=self.settings, logger=self.logger
        )

    def run(
        self,
        source: Path,
        intervals: Sequence[RedactionInterval],
        output_path: Path,
        options: ProcessingOptions | None = None,
        job_id: str | None = None,
    ) -> RedactionOutcome:
        """Like :meth:`process`, wrapped with the interval list and timing."""
        job_id = job_id or uuid.uuid4().hex[:12]
        started = time.perf_counter()
        result = self.process(source, intervals, output_path, options, job_id=job_id)
        return RedactionOutcome(
            job_id=job_id,
            result=result,
            intervals=list(intervals),
            redacted_seconds=round(total_duration(intervals), 3),
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )

    def process(
        self,
        source: Path,
        intervals: Sequence[RedactionInterval],
        output_path: Path,
        options: ProcessingOptions | None = None,
        job_id: str | None = None,
    ) -> ProcessingResult:
        """Redact ``intervals`` of ``source`` into ``output_path``.

        Args:
            source: Uploaded recording (WAV or MP3)
            intervals: Merged redaction intervals
            output_path: Delivery file; its suffix selects WAV or MP3
            options: Redaction method, volumes and size tolerance
            job_id: Unique id for temp naming and log context

        Returns:
            Direct, Converted or Compressed on success, Fallback when any
            stage failed and silence was delivered instead

        Raises:
            ValueError: Unsupported delivery suffix, or output is the source
            InputNotFoundError: The source does not exist
            FallbackFailedError: Not even silence could be delivered
        """
        source = Path(source)
        output_path = Path(output_path)
        options = options or ProcessingOptions()
        job_id = job_id or uuid.uuid4().hex[:12]
        fmt = delivery_format(output_path)

        if output_path.resolve() == source.resolve():
            raise ValueError("output_path must differ from the source recording")
        if not source.is_file():
            raise InputNotFoundError(source)

        log = self.logger.bind(job_id=job_id)
        log.info(
            "redaction_job_started",
            source=str(source),
            output=str(output_path),
            delivery_format=fmt.value,
            interval_count=len(intervals),
            method=options.redaction_method.value,
        )
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(
            prefix=f"callscrub-{job_id}-", dir=self.settings.work_dir
        ) as tmp:
            work_dir = Path(tmp)
            stage = "convert"
            try:
                canonical = self.codec.to_canonical_pcm(source, work_dir)

                stage = "redact"
                touched = frames_in_range(
                    intervals, canonical.buffer.sample_rate, canonical.buffer.frames
                )
                processed = redact(canonical.buffer, intervals, options, logger=log)
                converted = canonical.converted
                del canonical

                stage = "reencode"
                staged = work_dir / f"delivery.{fmt.value}"
                if fmt == AudioFormat.WAV:
                    try:
                        write_wav(processed, staged)
                    except OSError as e:
                        raise EncodeFailedError(
                            f"Failed to write WAV delivery: {e}", stage="reencode"
                        ) from e
                    result: ProcessingResult = (
                        ConvertedResult(path=output_path, format=fmt)
                        if converted
                        else DirectResult(path=output_path, format=fmt)
                    )
                else:
                    report = self.encoder.compress_to_target(
                        processed,
                        source.stat().st_size,
                        staged,
                        work_dir,
                        tolerance=options.size_tolerance,
                    )
                    result = CompressedResult(
                        path=output_path,
                        format=fmt,
                        bitrate_kbps=report.bitrate_kbps,
                        size_converged=report.converged,
                    )
                _move_into_place(staged, output_path, job_id)
                # Nothing was overwritten, so source bytes are a valid delivery
                must_differ = touched > 0
            except InputNotFoundError:
                raise
            except Exception as e:
                # No failure may leave the source, or part of it, at the delivery path
                result = self._fall_back(
                    source, intervals, output_path, work_dir, stage, e, log
                )
                must_differ = True

            if must_differ and same_content(source, output_path):
                log.error("delivery_identical_to_source", path=str(output_path))
                result = self._fall_back(
                    source,
                    intervals,
                    output_path,
                    work_dir,
                    "verify",
                    EncodeFailedError("Delivered file is identical to the source"),
                    log,
                )
                if same_content(source, output_path):
                    output_path.unlink(missing_ok=True)
                    raise FallbackFailedError(
                        "Silence output is identical to the source recording"
                    )

        log.info("redaction_job_finished", result=result.kind, path=str(result.path))
        return result

    def _fall_back(
        self,
        source: Path,
        intervals: Sequence[RedactionInterval],
        output_path: Path,
        work_dir: Path,
        stage: str,
        error: Exception,
        log: structlog.typing.FilteringBoundLogger,
    ) -> FallbackResult:
        log.warning(
            "redaction_fallback",
            failed_stage=stage,
            error=str(error),
            error_type=type(error).__name__,
        )
        try:
            output_path.unlink(missing_ok=True)
        except OSError as e:
            raise FallbackFailedError(
                f"Could not remove stale delivery file {output_path}: {e}"
            ) from e

        duration = self.fallback.probe_duration(source)
        staged = work_dir / f"silence{output_path.suffix.lower()}"
        self.fallback.generate_silence(duration, staged)
        try:
            _move_into_place(staged, output_path, work_dir.name)
        except OSError as e:
            raise FallbackFailedError(f"Could not deliver silence: {e}") from e

        beep_path = output_path.with_name(f"{output_path.name}.beeps.wav")
        player_path = output_path.with_name(f"{output_path.name}.player.html")
        try:
            self.fallback.write_beep_track(list(intervals), beep_path, duration)
        except Exception as e:
            log.warning("beep_track_failed", error=str(e))
            beep_path.unlink(missing_ok=True)
            beep_path = None
        if beep_path is not None:
            try:
                self.fallback.write_player(
                    source.name, beep_path.name, list(intervals), player_path
                )
            except Exception as e:
                log.warning("player_failed", error=str(e))
                player_path.unlink(missing_ok=True)
                player_path = None
        else:
            player_path = None

        return FallbackResult(
            path=output_path,
            beep_track_path=beep_path,
            player_path=player_path,
            failed_stage=stage,
            reason=str(error),
        )


def _move_into_place(staged: Path, output_path: Path, tag: str) -> None:
    """Move ``staged`` to ``output_path`` so readers never see a partial file.

    The file is first copied next to the destination, then renamed, since
    the work directory may be on another filesystem.
    """
    part = output_path.with_name(f".{output_path.name}.{tag}.part")
    try:
        shutil.move(staged, part)
        os.replace(part, output_path)
    finally:
        part.unlink(missing_ok=True)
