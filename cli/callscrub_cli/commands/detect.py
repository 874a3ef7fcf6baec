"""Detect command: show what would be redacted, without touching audio."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from callscrub.config import get_settings
from callscrub.detect import SpanDetector, merge_spans
from callscrub.transcript import load_transcript
from callscrub_cli.output import error_console, output_detection


def detect(
    transcript: Annotated[
        Path,
        typer.Option(
            "--transcript",
            "-t",
            exists=True,
            dir_okay=False,
            help="Word-level transcript JSON.",
        ),
    ],
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Detect sensitive spans in a transcript.

    Examples:

        callscrub detect --transcript call.json

        callscrub detect -t call.json --json
    """
    try:
        words = load_transcript(transcript).words
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] Invalid transcript: {e}")
        raise typer.Exit(code=1) from None

    settings = get_settings()
    spans = SpanDetector(settings=settings).detect(words)
    intervals = merge_spans(spans, gap=settings.merge_gap_seconds)
    output_detection(spans, intervals, as_json=as_json)
