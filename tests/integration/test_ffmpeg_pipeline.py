"""Integration tests running the redaction pipeline against a real ffmpeg.

Skipped when ffmpeg or ffprobe is not on PATH. Run with:

    pytest -m integration -v tests/integration/test_ffmpeg_pipeline.py
"""

import shutil
import subprocess

import numpy as np
import pytest

from callscrub.audio.buffer import read_wav
from callscrub.common.pipeline_types import (
    CompressedResult,
    DirectResult,
    FallbackResult,
    ProcessingOptions,
    RedactionInterval,
)
from callscrub.config import Settings
from callscrub.pipeline import RedactionPipeline, same_content

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
        reason="ffmpeg not installed",
    ),
]


@pytest.fixture
def pipeline(tmp_path):
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    settings = Settings(
        conversion_retries=0, conversion_backoff_seconds=0.0, work_dir=work_dir
    )
    return RedactionPipeline(settings=settings)


@pytest.fixture
def real_mp3(tmp_path):
    """Four seconds of 440 Hz tone encoded at 128 kbps."""
    path = tmp_path / "call.mp3"
    subprocess.run(
        [
            "ffmpeg",
            "-y",
            "-hide_banner",
            "-f",
            "lavfi",
            "-i",
            "sine=frequency=440:duration=4",
            "-ac",
            "2",
            "-codec:a",
            "libmp3lame",
            "-b:a",
            "128k",
            str(path),
        ],
        check=True,
        capture_output=True,
        timeout=60,
    )
    return path


INTERVALS = [RedactionInterval(start=1.0, end=2.0)]


class TestMp3RoundTrip:
    def test_redacted_mp3_close_to_source_size(self, pipeline, real_mp3, tmp_path):
        output = tmp_path / "out" / "call.mp3"

        result = pipeline.process(real_mp3, INTERVALS, output, ProcessingOptions())

        assert isinstance(result, CompressedResult)
        assert output.is_file()
        assert not same_content(real_mp3, output)
        source_size = real_mp3.stat().st_size
        assert abs(output.stat().st_size - source_size) / source_size < 0.25

    def test_wav_delivery_from_mp3_is_muted(self, pipeline, real_mp3, tmp_path):
        output = tmp_path / "call.wav"

        result = pipeline.process(
            real_mp3, INTERVALS, output, ProcessingOptions(redaction_method="mute")
        )

        assert result.kind == "converted"
        buf = read_wav(output)
        # Decoder priming can shift the tone slightly; sample well inside
        inner = buf.samples[:, int(1.1 * buf.sample_rate) : int(1.9 * buf.sample_rate)]
        assert np.max(np.abs(inner)) == 0
        outer = buf.samples[:, int(2.5 * buf.sample_rate) : int(3.5 * buf.sample_rate)]
        assert np.max(np.abs(outer)) > 0.1


class TestWavRoundTrip:
    def test_pcm_wav_redacted_directly(self, pipeline, wav_file, tmp_path):
        source = wav_file(seconds=3.0, channels=2)
        output = tmp_path / "clean.wav"

        result = pipeline.process(
            source, INTERVALS, output, ProcessingOptions(redaction_method="mute")
        )

        assert isinstance(result, DirectResult)
        buf = read_wav(output)
        start, end = buf.sample_rate, 2 * buf.sample_rate
        assert np.all(buf.samples[:, start:end] == 0)
        assert np.max(np.abs(buf.samples[:, :start])) > 0.1


class TestCorruptInput:
    def test_text_file_named_mp3_falls_back_to_silence(self, pipeline, tmp_path):
        source = tmp_path / "corrupt.mp3"
        source.write_bytes(b"this is not an audio recording\n" * 500)
        output = tmp_path / "corrupt.redacted.mp3"

        result = pipeline.process(source, INTERVALS, output)

        assert isinstance(result, FallbackResult)
        assert result.failed_stage == "convert"
        assert output.is_file()
        assert not same_content(source, output)
        assert result.beep_track_path is not None
        assert result.beep_track_path.is_file()
        assert result.player_path is not None
        assert "corrupt.mp3" in result.player_path.read_text()

    def test_work_dir_cleaned_up(self, pipeline, tmp_path):
        source = tmp_path / "corrupt.mp3"
        source.write_bytes(b"\x00" * 5000)

        pipeline.process(source, INTERVALS, tmp_path / "out.mp3")

        assert list(pipeline.settings.work_dir.iterdir()) == []
