"""In-memory PCM buffers and WAV file I/O.

Samples are float32 in [-1.0, 1.0] shaped ``(channels, frames)``. 16-bit
conversion uses the same 32768 scale in both directions, so decoding a
16-bit file and writing it back reproduces it exactly.
"""

from __future__ import annotations

import wave
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from callscrub.exceptions import DecodeInvalidError

_INT_SCALE = {1: 128.0, 2: 32768.0, 3: 8388608.0, 4: 2147483648.0}


@dataclass
class AudioBuffer:
    """Decoded audio owned by exactly one pipeline stage at a time.

    Stages hand a buffer on by returning it; the previous holder must not
    keep using it.
    """

    sample_rate: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.samples.ndim != 2:
            raise ValueError(
                f"samples must be shaped (channels, frames), got {self.samples.shape}"
            )

    @classmethod
    def silence(cls, duration: float, sample_rate: int = 44100, channels: int = 2):
        frames = max(0, int(np.ceil(duration * sample_rate)))
        return cls(sample_rate, np.zeros((channels, frames), dtype=np.float32))

    @property
    def channels(self) -> int:
        return self.samples.shape[0]

    @property
    def frames(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate


def read_wav(path: Path) -> AudioBuffer:
    """Decode an integer PCM WAV file.

    Raises:
        DecodeInvalidError: If the file is missing, not PCM WAV, or truncated
    """
    try:
        with wave.open(str(path), "rb") as wav:
            channels = wav.getnchannels()
            width = wav.getsampwidth()
            rate = wav.getframerate()
            raw = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError, OSError, RuntimeError, ValueError) as e:
        raise DecodeInvalidError(f"Failed to decode WAV file {path}: {e}") from e

    if width not in _INT_SCALE:
        raise DecodeInvalidError(f"Unsupported sample width {width} in {path}")
    if channels < 1:
        raise DecodeInvalidError(f"WAV file has no channels: {path}")

    usable = len(raw) - len(raw) % (width * channels)
    data = _decode_pcm(raw[:usable], width)
    samples = data.reshape(-1, channels).T.copy()
    return AudioBuffer(rate, samples)


def _decode_pcm(raw: bytes, width: int) -> np.ndarray:
    scale = _INT_SCALE[width]
    if width == 1:
        # 8-bit WAV is unsigned
        ints = np.frombuffer(raw, dtype=np.uint8).astype(np.float32) - 128.0
    elif width == 3:
        b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        ints = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        ints = np.where(ints >= 1 << 23, ints - (1 << 24), ints).astype(np.float64)
    else:
        dtype = "<i2" if width == 2 else "<i4"
        ints = np.frombuffer(raw, dtype=dtype).astype(np.float64)
    return (ints / scale).astype(np.float32)


def write_wav(buf: AudioBuffer, path: Path) -> Path:
    """Write a buffer as 16-bit PCM WAV."""
    scaled = np.round(buf.samples.astype(np.float64) * 32768.0)
    ints = np.clip(scaled, -32768, 32767).astype("<i2")
    interleaved = ints.T.reshape(-1)

    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(buf.channels)
        wav.setsampwidth(2)
        wav.setframerate(buf.sample_rate)
        wav.writeframes(interleaved.tobytes())
    return path


def verify_wav(path: Path) -> AudioBuffer:
    """Decode a WAV file and check it holds usable audio.

    Checks that the file exists, is non-empty, decodes, has at least one
    channel and non-empty channel data.

    Returns:
        The decoded buffer

    Raises:
        DecodeInvalidError: With the first failed check as the message
    """
    path = Path(path)
    if not path.exists():
        raise DecodeInvalidError(f"WAV file does not exist: {path}")
    if path.stat().st_size == 0:
        raise DecodeInvalidError(f"WAV file is empty: {path}")

    buf = read_wav(path)
    if buf.channels == 0:
        raise DecodeInvalidError(f"WAV file has invalid data structure: {path}")
    if buf.frames == 0:
        raise DecodeInvalidError(f"WAV file has empty audio data: {path}")
    return buf
