"""Health command for checking the external audio tools."""

from __future__ import annotations

from typing import Annotated

import typer

from callscrub.engine import RedactionEngine
from callscrub_cli.output import output_health


def health(
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show whether ffmpeg and ffprobe are available.

    Exits with code 4 when the engine is degraded.

    Examples:

        callscrub health
    """
    status = RedactionEngine().health_check()
    output_health(status, as_json=as_json)
    if status["status"] != "healthy":
        raise typer.Exit(code=4)
