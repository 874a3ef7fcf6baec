"""Destructive replacement of sample ranges with silence or a 1kHz tone."""

from __future__ import annotations

import math
from collections.abc import Iterable

import numpy as np
import structlog

from callscrub.audio.buffer import AudioBuffer
from callscrub.common.pipeline_types import (
    ProcessingOptions,
    RedactionInterval,
    RedactionMethod,
)

BEEP_FREQUENCY = 1000  # 1kHz beep tone


def sample_range(
    interval: RedactionInterval, sample_rate: int, frames: int
) -> tuple[int, int]:
    """Map an interval to ``[start_sample, end_sample)`` clamped to the buffer."""
    start = min(max(math.floor(interval.start * sample_rate), 0), frames)
    end = min(max(math.floor(interval.end * sample_rate), 0), frames)
    return start, end


def frames_in_range(
    intervals: Iterable[RedactionInterval], sample_rate: int, frames: int
) -> int:
    """Number of frames :func:`redact` overwrites for these intervals."""
    total = 0
    for interval in intervals:
        start, end = sample_range(interval, sample_rate, frames)
        total += max(end - start, 0)
    return total


def tone(frames: int, sample_rate: int, volume: float) -> np.ndarray:
    """A sine at BEEP_FREQUENCY starting at phase zero."""
    t = np.arange(frames, dtype=np.float64) / sample_rate
    return (volume * np.sin(2 * np.pi * BEEP_FREQUENCY * t)).astype(np.float32)


def redact(
    buf: AudioBuffer,
    intervals: Iterable[RedactionInterval],
    options: ProcessingOptions,
    logger: structlog.typing.FilteringBoundLogger | None = None,
) -> AudioBuffer:
    """Overwrite every interval of ``buf`` on all channels.

    The whole recording is first scaled by ``options.audio_volume`` (clipped
    to full scale). Each interval is then clamped and written independently,
    so intervals need not be sorted.

    Args:
        buf: Canonical PCM; the caller must not use it afterwards
        intervals: Time ranges to destroy
        options: Redaction method and volumes
        logger: Bound logger for stage events

    Returns:
        A new buffer with the redacted audio
    """
    logger = logger or structlog.get_logger()
    samples = buf.samples.astype(np.float32, copy=True)
    if options.audio_volume != 1.0:
        samples *= np.float32(options.audio_volume)
        np.clip(samples, -1.0, 1.0, out=samples)

    redacted = 0
    for interval in intervals:
        start, end = sample_range(interval, buf.sample_rate, buf.frames)
        if end <= start:
            logger.debug(
                "interval_outside_audio",
                start=interval.start,
                end=interval.end,
                duration=round(buf.duration, 3),
            )
            continue

        if options.redaction_method == RedactionMethod.MUTE:
            samples[:, start:end] = 0.0
        else:
            samples[:, start:end] = tone(end - start, buf.sample_rate, options.beep_volume)
        redacted += end - start

    logger.info(
        "samples_redacted",
        method=options.redaction_method.value,
        frames_redacted=redacted,
        seconds_redacted=round(redacted / buf.sample_rate, 3),
    )
    return AudioBuffer(buf.sample_rate, samples)


def beep_track(
    intervals: Iterable[RedactionInterval],
    duration: float,
    volume: float,
    sample_rate: int = 44100,
    channels: int = 2,
) -> AudioBuffer:
    """Silence of ``duration`` seconds with a tone over each interval."""
    track = AudioBuffer.silence(duration, sample_rate=sample_rate, channels=channels)
    for interval in intervals:
        start, end = sample_range(interval, sample_rate, track.frames)
        if end > start:
            track.samples[:, start:end] = tone(end - start, sample_rate, volume)
    return track
