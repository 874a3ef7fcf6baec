"""Unit tests for RedactionPipeline routing, fallback and cleanup."""

import pytest

from callscrub.audio.buffer import read_wav
from callscrub.audio.codec import CodecAdapter
from callscrub.audio.encoder import SizeMatchingEncoder
from callscrub.audio.fallback import SecureFallback
from callscrub.common.pipeline_types import (
    CompressedResult,
    ConvertedResult,
    DirectResult,
    FallbackResult,
    ProcessingOptions,
    RedactionInterval,
    RedactionMethod,
)
from callscrub.exceptions import FallbackFailedError, InputNotFoundError
from callscrub.pipeline import RedactionPipeline, delivery_format, same_content

MUTE = ProcessingOptions(redaction_method=RedactionMethod.MUTE)
INTERVALS = [RedactionInterval(start=0.5, end=1.0)]


@pytest.fixture
def make_pipeline(settings):
    def _make(ffmpeg, encoder=None):
        return RedactionPipeline(
            codec=CodecAdapter(ffmpeg=ffmpeg, settings=settings, sleep=lambda s: None),
            encoder=encoder or SizeMatchingEncoder(ffmpeg=ffmpeg, settings=settings),
            fallback=SecureFallback(ffmpeg=ffmpeg, settings=settings),
            settings=settings,
        )

    return _make


def assert_silent_wav(path, duration):
    buf = read_wav(path)
    assert buf.duration == pytest.approx(duration, abs=1e-3)
    assert not buf.samples.any()


class TestDeliveryFormat:
    def test_supported(self, tmp_path):
        assert delivery_format(tmp_path / "a.WAV").value == "wav"
        assert delivery_format(tmp_path / "a.mp3").value == "mp3"

    def test_unsupported(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported delivery format"):
            delivery_format(tmp_path / "a.flac")


class TestSuccessfulPaths:
    """Direct, Converted and Compressed results."""

    def test_wav_to_wav_is_direct(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path):
        source = wav_file(seconds=2.0)
        output = tmp_path / "out" / "clean.wav"

        result = make_pipeline(fake_ffmpeg()).process(source, INTERVALS, output, MUTE)

        assert isinstance(result, DirectResult)
        assert result.path == output
        buf = read_wav(output)
        assert not buf.samples[:, 22050:44100].any()
        assert buf.samples[:, :22050].any()

    def test_mp3_to_wav_is_converted(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        output = tmp_path / "clean.wav"
        result = make_pipeline(fake_ffmpeg()).process(mp3_file, INTERVALS, output, MUTE)

        assert isinstance(result, ConvertedResult)
        assert read_wav(output).sample_rate == 44100

    def test_mp3_delivery_is_compressed(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        output = tmp_path / "clean.mp3"
        result = make_pipeline(fake_ffmpeg()).process(mp3_file, INTERVALS, output, MUTE)

        assert isinstance(result, CompressedResult)
        assert result.bitrate_kbps is not None
        assert output.exists()

    def test_no_intervals_still_reencodes(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path):
        source = wav_file(seconds=1.0)
        output = tmp_path / "clean.wav"
        result = make_pipeline(fake_ffmpeg()).process(
            source, [], output, ProcessingOptions(audio_volume=0.5)
        )

        assert isinstance(result, DirectResult)
        assert not same_content(source, output)

    def test_run_reports_timing(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path):
        outcome = make_pipeline(fake_ffmpeg()).run(
            wav_file(), INTERVALS, tmp_path / "clean.wav", MUTE, job_id="job-1"
        )

        assert outcome.job_id == "job-1"
        assert outcome.redacted_seconds == 0.5
        assert outcome.intervals == INTERVALS
        assert outcome.processing_time_ms >= 0


class TestFallback:
    """Any stage failure delivers silence, never the source."""

    def test_conversion_failure(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        ffmpeg = fake_ffmpeg(fail_rates=(44100, 48000), probe_duration=3.0)
        output = tmp_path / "clean.wav"

        result = make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert isinstance(result, FallbackResult)
        assert result.failed_stage == "convert"
        assert "Failed to convert" in result.reason
        assert len(ffmpeg.conversion_rates()) == 8
        assert_silent_wav(output, 3.0)
        assert not same_content(mp3_file, output)

    def test_default_duration_when_unprobeable(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        ffmpeg = fake_ffmpeg(fail_rates=(44100, 48000), probe_duration=None)
        output = tmp_path / "clean.wav"

        make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert_silent_wav(output, 60.0)

    def test_redact_failure(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path, monkeypatch):
        def broken(*args, **kwargs):
            raise MemoryError("out of memory")

        monkeypatch.setattr("callscrub.pipeline.orchestrator.redact", broken)
        source = wav_file(seconds=2.0)
        output = tmp_path / "clean.wav"

        result = make_pipeline(fake_ffmpeg(probe_duration=2.0)).process(
            source, INTERVALS, output, MUTE
        )

        assert isinstance(result, FallbackResult)
        assert result.failed_stage == "redact"
        assert_silent_wav(output, 2.0)

    def test_reencode_failure(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        ffmpeg = fake_ffmpeg(fail_encode=True)
        output = tmp_path / "clean.mp3"

        result = make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert isinstance(result, FallbackResult)
        assert result.failed_stage == "reencode"
        assert output.read_bytes().startswith(b"ID3")
        assert not same_content(mp3_file, output)

    def test_companions_written(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        ffmpeg = fake_ffmpeg(fail_rates=(44100, 48000))
        output = tmp_path / "clean.wav"

        result = make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert result.beep_track_path == tmp_path / "clean.wav.beeps.wav"
        assert result.player_path == tmp_path / "clean.wav.player.html"
        page = result.player_path.read_text()
        assert 'src="call.mp3"' in page
        assert 'src="clean.wav.beeps.wav"' in page

    def test_stale_output_replaced(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        output = tmp_path / "clean.wav"
        output.write_bytes(mp3_file.read_bytes())
        ffmpeg = fake_ffmpeg(fail_rates=(44100, 48000))

        make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert_silent_wav(output, 2.0)

    def test_silence_failure_is_fatal(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path):
        ffmpeg = fake_ffmpeg(fail_encode=True, fail_silence=True)
        output = tmp_path / "clean.mp3"

        with pytest.raises(FallbackFailedError):
            make_pipeline(ffmpeg).process(mp3_file, INTERVALS, output, MUTE)

        assert not output.exists()

    @pytest.mark.parametrize("stage", ["convert", "redact", "reencode"])
    def test_injected_failure_never_delivers_source(
        self, make_pipeline, fake_ffmpeg, wav_file, tmp_path, monkeypatch, stage
    ):
        source = wav_file(seconds=1.0, channels=2)
        output = tmp_path / "clean.wav"
        pipeline = make_pipeline(fake_ffmpeg(probe_duration=1.0))

        def boom(*args, **kwargs):
            raise RuntimeError(f"{stage} exploded")

        if stage == "convert":
            monkeypatch.setattr(pipeline.codec, "to_canonical_pcm", boom)
        elif stage == "redact":
            monkeypatch.setattr("callscrub.pipeline.orchestrator.redact", boom)
        else:
            monkeypatch.setattr("callscrub.pipeline.orchestrator.write_wav", boom)

        result = pipeline.process(source, INTERVALS, output, MUTE)

        assert result.failed_stage == stage
        assert not same_content(source, output)
        assert_silent_wav(output, 1.0)


class TestIdentityGuard:
    def test_output_identical_to_source_is_replaced(
        self, make_pipeline, fake_ffmpeg, wav_file, tmp_path, monkeypatch
    ):
        """A redaction that changed nothing must not hand back the source bytes."""
        monkeypatch.setattr(
            "callscrub.pipeline.orchestrator.redact",
            lambda buf, intervals, opts, **kwargs: buf,
        )
        source = wav_file(seconds=1.0)
        output = tmp_path / "clean.wav"

        result = make_pipeline(fake_ffmpeg(probe_duration=1.0)).process(
            source, INTERVALS, output, MUTE
        )

        assert isinstance(result, FallbackResult)
        assert result.failed_stage == "verify"
        assert_silent_wav(output, 1.0)

    def test_clean_wav_without_intervals_delivered_as_is(
        self, make_pipeline, fake_ffmpeg, wav_file, tmp_path
    ):
        source = wav_file(seconds=1.0)
        output = tmp_path / "clean.wav"

        result = make_pipeline(fake_ffmpeg()).process(
            source, [], output, ProcessingOptions()
        )

        assert isinstance(result, DirectResult)
        assert read_wav(output).samples.any()
        assert same_content(source, output)

    def test_intervals_past_end_of_audio_delivered_as_is(
        self, make_pipeline, fake_ffmpeg, wav_file, tmp_path
    ):
        source = wav_file(seconds=1.0)
        output = tmp_path / "clean.wav"

        result = make_pipeline(fake_ffmpeg()).process(
            source,
            [RedactionInterval(start=5.0, end=6.0)],
            output,
            ProcessingOptions(),
        )

        assert isinstance(result, DirectResult)
        assert read_wav(output).samples.any()


class TestGuards:
    def test_missing_input_propagates(self, make_pipeline, fake_ffmpeg, tmp_path):
        with pytest.raises(InputNotFoundError):
            make_pipeline(fake_ffmpeg()).process(
                tmp_path / "gone.wav", INTERVALS, tmp_path / "out.wav"
            )

    def test_output_same_as_source_rejected(self, make_pipeline, fake_ffmpeg, wav_file):
        source = wav_file()
        with pytest.raises(ValueError, match="must differ"):
            make_pipeline(fake_ffmpeg()).process(source, INTERVALS, source)

    def test_unsupported_output_suffix(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path):
        with pytest.raises(ValueError):
            make_pipeline(fake_ffmpeg()).process(wav_file(), INTERVALS, tmp_path / "o.ogg")


class TestTempLifecycle:
    """Job temp directories are removed on every exit path."""

    def test_cleaned_after_success(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path, settings):
        make_pipeline(fake_ffmpeg()).process(mp3_file, INTERVALS, tmp_path / "c.mp3", MUTE)
        assert list(settings.work_dir.iterdir()) == []

    def test_cleaned_after_fallback(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path, settings):
        ffmpeg = fake_ffmpeg(fail_rates=(44100, 48000))
        make_pipeline(ffmpeg).process(mp3_file, INTERVALS, tmp_path / "c.wav", MUTE)
        assert list(settings.work_dir.iterdir()) == []

    def test_cleaned_after_hard_failure(self, make_pipeline, fake_ffmpeg, mp3_file, tmp_path, settings):
        ffmpeg = fake_ffmpeg(fail_encode=True, fail_silence=True)
        with pytest.raises(FallbackFailedError):
            make_pipeline(ffmpeg).process(mp3_file, INTERVALS, tmp_path / "c.mp3", MUTE)
        assert list(settings.work_dir.iterdir()) == []

    def test_job_id_in_temp_name(self, make_pipeline, fake_ffmpeg, wav_file, tmp_path, settings, monkeypatch):
        seen = []
        pipeline = make_pipeline(fake_ffmpeg())
        original = pipeline.codec.to_canonical_pcm

        def spy(path, work_dir, retry_budget=None):
            seen.append(work_dir)
            return original(path, work_dir, retry_budget)

        monkeypatch.setattr(pipeline.codec, "to_canonical_pcm", spy)
        pipeline.process(wav_file(), INTERVALS, tmp_path / "c.wav", MUTE, job_id="abc123")

        assert seen[0].name.startswith("callscrub-abc123-")
        assert seen[0].parent == settings.work_dir
        assert not any(p.exists() for p in seen)
