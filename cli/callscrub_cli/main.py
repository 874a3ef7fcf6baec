"""CLI entry point for callscrub.

Provides the main `callscrub` command with global options and subcommands.
"""

from __future__ import annotations

import sys
from typing import Annotated

import typer

from callscrub import logging as callscrub_logging
from callscrub_cli import __version__
from callscrub_cli.config import load_config
from callscrub_cli.state import state

app = typer.Typer(
    name="callscrub",
    help="callscrub - Redact sensitive numbers from call recordings.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Handle --version flag."""
    if value:
        print(f"callscrub {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbose logging to stderr.",
        ),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """callscrub - Redact sensitive numbers from call recordings.

    Finds social security, card, phone, bank account and routing numbers in
    a word-level transcript and beeps or mutes them in the audio.

    Redaction defaults can be provided via:

        - CLI options (--method, --beep-volume, ...)
        - Config file (~/.callscrub/config.yaml)

    Examples:

        # Beep every sensitive number in a recording
        callscrub redact call.mp3 --transcript call.json

        # Show what would be redacted
        callscrub detect --transcript call.json

        # Check that ffmpeg is installed
        callscrub health
    """
    # Logs go to stderr so --json output on stdout stays parseable
    callscrub_logging.configure(
        "cli",
        stream=sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        log_format="console" if verbose else None,
        cache_loggers=False,
    )

    state.config = load_config()
    state.verbose = verbose


# Import and register commands after app is defined
from callscrub_cli.commands import detect, health, redact  # noqa: E402

app.command()(redact.redact)
app.command()(detect.detect)
app.command()(health.health)


def cli() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    cli()
