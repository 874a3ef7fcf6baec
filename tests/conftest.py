"""Shared fixtures: synthetic recordings and a scriptable stand-in for ffmpeg."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from callscrub.audio.buffer import AudioBuffer, write_wav
from callscrub.audio.ffmpeg import AudioProbe, ToolResult
from callscrub.config import Settings
from callscrub.exceptions import DecodeInvalidError, ProcessTimeoutError


def tone_buffer(
    seconds: float = 2.0,
    sample_rate: int = 44100,
    channels: int = 1,
    freq: float = 440.0,
    amplitude: float = 0.5,
) -> AudioBuffer:
    """A sine that is non-zero almost everywhere, offset so sample 0 is too."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    wave = amplitude * np.sin(2 * np.pi * freq * t + 0.3)
    samples = np.tile(wave, (channels, 1)).astype(np.float32)
    return AudioBuffer(sample_rate, samples)


class FakeFFmpeg:
    """Pretends to be :class:`callscrub.audio.ffmpeg.FFmpeg`.

    Conversions write a real WAV tone of ``duration`` seconds at the
    requested rate and channel count. MP3 encodes write ``mp3_size(bitrate)``
    bytes. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        duration: float = 2.0,
        fail_rates: tuple[int, ...] = (),
        timeout_rates: tuple[int, ...] = (),
        fail_encode: bool = False,
        fail_silence: bool = False,
        mp3_size=None,
        probe_duration: float | None = 2.0,
        tools: dict[str, bool] | None = None,
    ):
        self.duration = duration
        self.fail_rates = set(fail_rates)
        self.timeout_rates = set(timeout_rates)
        self.fail_encode = fail_encode
        self.fail_silence = fail_silence
        self.mp3_size = mp3_size or (lambda bitrate: int(bitrate * 1000 / 8 * duration))
        self.probe_duration = probe_duration
        self.tools = tools or {"ffmpeg": True, "ffprobe": True}
        self.calls: list[list[str]] = []

    def run(self, args: list[str], timeout: float | None = None) -> ToolResult:
        self.calls.append(list(args))
        output = Path(args[-1])

        if "-acodec" in args:
            rate = int(args[args.index("-ar") + 1])
            channels = int(args[args.index("-ac") + 1])
            if rate in self.timeout_rates:
                raise ProcessTimeoutError("ffmpeg", timeout or 300)
            if rate in self.fail_rates:
                return ToolResult(returncode=1, stderr="Invalid data found when processing input")
            write_wav(tone_buffer(self.duration, rate, channels), output)
            return ToolResult(returncode=0)

        if "lavfi" in args:
            if self.fail_silence:
                return ToolResult(returncode=1, stderr="Unknown encoder 'libmp3lame'")
            # ID3 header followed by zeros
            output.write_bytes(b"ID3" + bytes(4096))
            return ToolResult(returncode=0)

        if "libmp3lame" in args:
            if self.fail_encode:
                return ToolResult(returncode=1, stderr="Unknown encoder 'libmp3lame'")
            bitrate = int(args[args.index("-b:a") + 1].rstrip("k"))
            output.write_bytes(b"\xff\xfb" + bytes(self.mp3_size(bitrate) - 2))
            return ToolResult(returncode=0)

        raise AssertionError(f"unexpected ffmpeg call: {args}")

    def probe(self, path: Path) -> AudioProbe:
        if self.probe_duration is None:
            raise DecodeInvalidError(f"ffprobe failed for {path}")
        return AudioProbe(
            duration=self.probe_duration,
            sample_rate=44100,
            channels=2,
            codec_name="mp3",
            format_name="mp3",
        )

    def available(self) -> dict[str, bool]:
        return dict(self.tools)

    def conversion_rates(self) -> list[int]:
        """Sample rates of the conversion attempts, in call order."""
        return [int(c[c.index("-ar") + 1]) for c in self.calls if "-acodec" in c]


@pytest.fixture
def settings(tmp_path):
    """Settings with no retry backoff and a private work directory."""
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return Settings(conversion_backoff_seconds=0.0, work_dir=work_dir)


@pytest.fixture
def fake_ffmpeg():
    """Factory for FakeFFmpeg instances."""
    return FakeFFmpeg


@pytest.fixture
def wav_file(tmp_path):
    """Factory writing a tone WAV file and returning its path."""

    def _make(name: str = "call.wav", **kwargs) -> Path:
        return write_wav(tone_buffer(**kwargs), tmp_path / name)

    return _make


@pytest.fixture
def mp3_file(tmp_path):
    """An MP3-looking file: ID3 tag then noise. Only FakeFFmpeg reads it."""
    path = tmp_path / "call.mp3"
    rng = np.random.default_rng(7)
    path.write_bytes(b"ID3\x04\x00\x00" + rng.integers(0, 256, 32000, dtype=np.uint8).tobytes())
    return path


@pytest.fixture
def make_buffer():
    """Factory for in-memory tone buffers."""
    return tone_buffer
