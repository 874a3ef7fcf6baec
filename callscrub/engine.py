"""Redaction engine: transcript in, redacted recording and transcript out.

Runs span detection on the word stream, merges the spans into intervals,
hands them to the audio pipeline and masks the transcript text. The
unredacted transcript is never written anywhere by the engine.
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Any

from callscrub.audio.ffmpeg import FFmpeg
from callscrub.common.pipeline_types import FallbackResult, RedactOutput
from callscrub.config import Settings, get_settings
from callscrub.detect import SpanDetector, merge_spans, redact_text
from callscrub.engine_sdk import Engine, TaskInput, TaskOutput
from callscrub.logging import reset_context
from callscrub.pipeline import RedactionPipeline


class RedactionEngine(Engine):
    """Detects sensitive spans in a transcript and redacts them from audio."""

    def __init__(
        self,
        pipeline: RedactionPipeline | None = None,
        detector: SpanDetector | None = None,
        ffmpeg: FFmpeg | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpeg(self.settings)
        self.detector = detector or SpanDetector(settings=self.settings)
        self.pipeline = pipeline or RedactionPipeline(settings=self.settings)

    def process(self, input: TaskInput) -> TaskOutput:
        """Redact one recording.

        Args:
            input: Task input with the recording, transcript and options

        Returns:
            TaskOutput with a RedactOutput and the delivered artifacts

        Raises:
            ValueError: Bad transcript, options or output path
            InputNotFoundError: The recording does not exist
            FallbackFailedError: Not even silence could be delivered
        """
        reset_context(job_id=input.job_id)
        started = time.perf_counter()

        transcript = input.get_transcript()
        options = input.get_options()

        self.logger.info(
            "redaction_engine_starting",
            word_count=len(transcript.words),
            method=options.redaction_method.value,
        )

        spans = self.detector.detect(transcript.words)
        intervals = merge_spans(spans, gap=self.settings.merge_gap_seconds)
        by_kind = Counter(span.kind.value for span in spans)

        self.logger.info(
            "spans_merged",
            span_count=len(spans),
            interval_count=len(intervals),
            kinds=dict(by_kind),
        )

        outcome = self.pipeline.run(
            input.audio_path,
            intervals,
            input.output_path,
            options,
            job_id=input.job_id,
        )
        result = outcome.result

        if isinstance(result, FallbackResult):
            # Delivered, but only silence; operators should review the job
            self.logger.warning(
                "redaction_degraded_to_fallback",
                failed_stage=result.failed_stage,
                reason=result.reason,
            )

        output = RedactOutput(
            job_id=input.job_id,
            result=result,
            intervals=intervals,
            spans_detected=len(spans),
            span_count_by_kind=dict(by_kind),
            redacted_text=redact_text(transcript.text, self.detector.kinds),
            redacted_seconds=outcome.redacted_seconds,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        )

        self.logger.info(
            "redaction_engine_complete",
            result=result.kind,
            processing_time_ms=output.processing_time_ms,
        )
        return TaskOutput(data=output, artifacts=_artifacts(result))

    def health_check(self) -> dict[str, Any]:
        """Report whether the external tools the pipeline needs can run."""
        tools = self.ffmpeg.available()
        return {
            "status": "healthy" if all(tools.values()) else "degraded",
            "tools": tools,
        }


def _artifacts(result) -> dict:
    artifacts = {"audio": result.path}
    if isinstance(result, FallbackResult):
        if result.beep_track_path:
            artifacts["beep_track"] = result.beep_track_path
        if result.player_path:
            artifacts["player"] = result.player_path
    return artifacts
