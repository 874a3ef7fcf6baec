"""Redact command: beep or mute sensitive numbers in a recording."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError

from callscrub.common.pipeline_types import (
    FallbackResult,
    ProcessingOptions,
    RedactionMethod,
)
from callscrub.engine import RedactionEngine
from callscrub.engine_sdk import TaskInput
from callscrub.exceptions import RedactionError
from callscrub_cli.config import get_default
from callscrub_cli.state import state
from callscrub_cli.output import console, error_console, output_redaction

DELIVERY_SUFFIXES = (".wav", ".mp3")


def default_output_path(audio: Path) -> Path:
    """``call.mp3`` -> ``call.redacted.mp3``; unknown formats are delivered as MP3."""
    suffix = audio.suffix.lower() if audio.suffix.lower() in DELIVERY_SUFFIXES else ".mp3"
    return audio.with_name(f"{audio.stem}.redacted{suffix}")


def redact(
    audio: Annotated[
        Path,
        typer.Argument(help="Recording to redact (WAV or MP3)."),
    ],
    transcript: Annotated[
        Path,
        typer.Option(
            "--transcript",
            "-t",
            exists=True,
            dir_okay=False,
            help="Word-level transcript JSON (Deepgram, Whisper or plain words).",
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Delivery file (.wav or .mp3). Default: <name>.redacted.<ext>.",
        ),
    ] = None,
    method: Annotated[
        RedactionMethod | None,
        typer.Option(
            "--method",
            "-m",
            case_sensitive=False,
            help="Replace sensitive audio with a beep or silence.",
        ),
    ] = None,
    beep_volume: Annotated[
        float | None,
        typer.Option("--beep-volume", help="Beep amplitude, 0.0-1.0."),
    ] = None,
    audio_volume: Annotated[
        float | None,
        typer.Option("--audio-volume", help="Gain applied to the whole recording."),
    ] = None,
    size_tolerance: Annotated[
        float | None,
        typer.Option(
            "--size-tolerance",
            help="Accepted relative size difference for MP3 delivery.",
        ),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Redact sensitive numbers from a call recording.

    Exit code is 0 when a file was delivered, including the degraded
    fallback where only silence could be produced, and 1 when nothing safe
    could be delivered.

    Examples:

        callscrub redact call.mp3 --transcript call.json

        callscrub redact call.wav -t call.json --method mute -o clean.wav
    """
    config = state.config
    try:
        options = ProcessingOptions(
            redaction_method=method or get_default(config, "method", "beep"),
            beep_volume=_pick(beep_volume, get_default(config, "beep_volume", 0.2)),
            audio_volume=_pick(audio_volume, get_default(config, "audio_volume", 1.0)),
            size_tolerance=_pick(
                size_tolerance, get_default(config, "size_tolerance", 0.10)
            ),
        )
    except ValidationError as e:
        error_console.print(f"[red]Error:[/red] Invalid redaction options: {e}")
        raise typer.Exit(code=2) from None

    try:
        with open(transcript, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        error_console.print(f"[red]Error:[/red] Could not read transcript: {e}")
        raise typer.Exit(code=1) from None

    task = TaskInput(
        job_id=uuid.uuid4().hex[:12],
        audio_path=audio,
        output_path=output or default_output_path(audio),
        transcript=payload,
        config=options.model_dump(mode="json"),
    )

    try:
        result = RedactionEngine().process(task)
    except RedactionError as e:
        if as_json:
            console.print_json(data=e.to_dict())
        else:
            error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None

    output_redaction(result.data, as_json=as_json)
    if isinstance(result.data.result, FallbackResult):
        error_console.print(
            "[yellow]Warning:[/yellow] redaction failed at stage "
            f"'{result.data.result.failed_stage}'; delivered silence instead."
        )


def _pick(value, default):
    return default if value is None else value
