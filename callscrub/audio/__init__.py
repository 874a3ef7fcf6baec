"""Audio stages: decode, redact, re-encode and fail-safe output."""

from callscrub.audio.buffer import AudioBuffer, read_wav, verify_wav, write_wav
from callscrub.audio.codec import (
    PRIMARY_PROFILE,
    SECONDARY_PROFILE,
    CanonicalAudio,
    CodecAdapter,
    ConversionProfile,
)
from callscrub.audio.encoder import EncodeReport, SizeMatchingEncoder
from callscrub.audio.fallback import SecureFallback
from callscrub.audio.ffmpeg import AudioProbe, FFmpeg, ToolResult, detect_format
from callscrub.audio.redactor import beep_track, frames_in_range, redact

__all__ = [
    "PRIMARY_PROFILE",
    "SECONDARY_PROFILE",
    "AudioBuffer",
    "AudioProbe",
    "CanonicalAudio",
    "CodecAdapter",
    "ConversionProfile",
    "EncodeReport",
    "FFmpeg",
    "SecureFallback",
    "SizeMatchingEncoder",
    "ToolResult",
    "beep_track",
    "detect_format",
    "frames_in_range",
    "read_wav",
    "redact",
    "verify_wav",
    "write_wav",
]
