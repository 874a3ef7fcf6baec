"""Fail-safe output for jobs whose redaction could not be completed.

The delivery file written here is synthesized from nothing: it never reads
a sample of the source recording. If even that fails the job is failed
outright; there is no further fallback to the source file.
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from string import Template

import structlog

from callscrub.audio.buffer import AudioBuffer, write_wav
from callscrub.audio.ffmpeg import FFmpeg
from callscrub.audio.redactor import beep_track
from callscrub.common.pipeline_types import AudioFormat, RedactionInterval
from callscrub.config import Settings, get_settings
from callscrub.exceptions import FallbackFailedError

SILENCE_SAMPLE_RATE = 44100
SILENCE_CHANNELS = 2
BEEP_TRACK_VOLUME = 0.7
# Seconds of beep track past the last interval
BEEP_TRACK_TAIL = 1.0


class SecureFallback:
    """Produces silence (and optional beep-track companions) on failure."""

    def __init__(
        self,
        ffmpeg: FFmpeg | None = None,
        settings: Settings | None = None,
        logger: structlog.typing.FilteringBoundLogger | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.ffmpeg = ffmpeg or FFmpeg(settings)
        self.default_duration = settings.fallback_duration_seconds
        self.bitrate = settings.fallback_bitrate_kbps
        self.logger = logger or structlog.get_logger()

    def probe_duration(self, source: Path) -> float:
        """Best-effort duration of the source, default on any failure."""
        try:
            duration = self.ffmpeg.probe(source).duration
        except Exception as e:
            self.logger.warning("fallback_probe_failed", error=str(e))
            duration = None

        if duration is None or duration <= 0:
            self.logger.info("fallback_default_duration", duration=self.default_duration)
            return self.default_duration
        return duration

    def generate_silence(self, duration: float, path: Path) -> Path:
        """Write ``duration`` seconds of stereo silence to ``path``.

        WAV is written directly; MP3 is synthesized by ffmpeg from a null
        source at the configured bitrate.

        Raises:
            FallbackFailedError: Nothing could be written
        """
        path = Path(path)
        fmt = path.suffix.lower().lstrip(".")
        try:
            if fmt == AudioFormat.WAV.value:
                write_wav(
                    AudioBuffer.silence(
                        duration,
                        sample_rate=SILENCE_SAMPLE_RATE,
                        channels=SILENCE_CHANNELS,
                    ),
                    path,
                )
            else:
                self._synthesize(duration, path)
        except FallbackFailedError:
            raise
        except Exception as e:
            raise FallbackFailedError(f"Failed to generate silence: {e}") from e

        if not path.exists() or path.stat().st_size == 0:
            raise FallbackFailedError(f"Silence generation produced no file: {path}")

        self.logger.warning(
            "fallback_silence_written", path=str(path), duration=round(duration, 3)
        )
        return path

    def _synthesize(self, duration: float, path: Path) -> None:
        args = [
            "-f",
            "lavfi",
            "-i",
            f"anullsrc=r={SILENCE_SAMPLE_RATE}:cl=stereo",
            "-t",
            f"{duration:.3f}",
            "-codec:a",
            "libmp3lame",
            "-b:a",
            f"{self.bitrate}k",
            str(path),
        ]
        result = self.ffmpeg.run(args)
        if not result.ok:
            raise FallbackFailedError(
                f"ffmpeg silence synthesis exited with code {result.returncode}: "
                f"{result.stderr_tail}"
            )

    def write_beep_track(
        self,
        intervals: list[RedactionInterval],
        path: Path,
        duration: float = 0.0,
    ) -> Path:
        """Write a WAV that is silent except for a tone over each interval."""
        last_end = max((i.end for i in intervals), default=0.0)
        length = max(duration, last_end + BEEP_TRACK_TAIL)
        write_wav(beep_track(intervals, length, BEEP_TRACK_VOLUME), path)
        self.logger.info("beep_track_written", path=str(path), intervals=len(intervals))
        return path

    def write_player(
        self,
        original_name: str,
        beep_track_name: str,
        intervals: list[RedactionInterval],
        path: Path,
    ) -> Path:
        """Write an HTML page pairing the original recording with the beep track.

        The original is referenced by file name only; it is served by whoever
        stores it, never copied here.
        """
        rows = "\n".join(
            f"<li>{i.start:.2f}s - {i.end:.2f}s ({i.end - i.start:.2f}s)</li>"
            for i in intervals
        )
        page = _PLAYER_TEMPLATE.substitute(
            original=html.escape(original_name, quote=True),
            beeps=html.escape(beep_track_name, quote=True),
            rows=rows,
            intervals=json.dumps([[i.start, i.end] for i in intervals]),
        )
        Path(path).write_text(page, encoding="utf-8")
        self.logger.info("player_written", path=str(path))
        return Path(path)


_PLAYER_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Audio Redaction Player</title>
<style>
body { font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }
.timeline { position: relative; height: 40px; background: #f0f0f0; border-radius: 4px; }
.progress { height: 100%; width: 0; background: #bbdefb; }
.redacted { position: absolute; top: 0; height: 100%; background: rgba(244, 67, 54, 0.3); }
</style>
</head>
<body>
<h1>Audio Redaction Player</h1>
<p>Automatic audio redaction failed for this recording. Play the original
together with the beep track; beeps mark the sensitive sections.</p>
<audio id="original" src="$original" preload="auto"></audio>
<audio id="beeps" src="$beeps" preload="auto"></audio>
<div class="timeline" id="timeline"><div class="progress" id="progress"></div></div>
<p>
<button id="play">Play both</button>
<button id="stop">Stop</button>
</p>
<h3>Redacted sections</h3>
<ol>
$rows
</ol>
<script>
const intervals = $intervals;
const original = document.getElementById("original");
const beeps = document.getElementById("beeps");
const timeline = document.getElementById("timeline");
original.addEventListener("loadedmetadata", () => {
  for (const [start, end] of intervals) {
    const mark = document.createElement("div");
    mark.className = "redacted";
    mark.style.left = (start / original.duration * 100) + "%";
    mark.style.width = ((end - start) / original.duration * 100) + "%";
    timeline.appendChild(mark);
  }
});
original.addEventListener("timeupdate", () => {
  document.getElementById("progress").style.width =
    (original.currentTime / original.duration * 100) + "%";
});
document.getElementById("play").addEventListener("click", () => {
  beeps.currentTime = original.currentTime;
  original.play();
  beeps.play();
});
document.getElementById("stop").addEventListener("click", () => {
  for (const audio of [original, beeps]) { audio.pause(); audio.currentTime = 0; }
});
timeline.addEventListener("click", (e) => {
  const time = e.offsetX / timeline.offsetWidth * original.duration;
  original.currentTime = time;
  beeps.currentTime = time;
});
</script>
</body>
</html>
""")
