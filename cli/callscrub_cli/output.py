"""Output formatting for the callscrub CLI.

Provides consistent output formatting for both human-readable and
machine-readable (JSON) output modes.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

from callscrub.common.pipeline_types import (
    FallbackResult,
    RawSpan,
    RedactionInterval,
    RedactOutput,
)

# Console instances for stdout and stderr
console = Console()
error_console = Console(stderr=True)

RESULT_STYLES = {
    "direct": "green",
    "converted": "green",
    "compressed": "green",
    "fallback": "yellow",
}


def output_redaction(output: RedactOutput, as_json: bool = False) -> None:
    """Display the result of a redaction job.

    Args:
        output: Engine output for the job.
        as_json: Output as JSON if True.
    """
    if as_json:
        console.print_json(data=output.model_dump(mode="json"))
        return

    result = output.result
    style = RESULT_STYLES.get(result.kind, "")
    console.print(f"Job:      {output.job_id}")
    console.print(f"Result:   [{style}]{result.kind}[/]")
    console.print(f"Output:   {result.path}")
    console.print(
        f"Redacted: {len(output.intervals)} interval(s), "
        f"{format_duration(output.redacted_seconds)}"
    )
    if output.span_count_by_kind:
        kinds = ", ".join(f"{k}={n}" for k, n in sorted(output.span_count_by_kind.items()))
        console.print(f"Detected: {kinds}")

    if isinstance(result, FallbackResult):
        if result.beep_track_path:
            console.print(f"Beeps:    {result.beep_track_path}")
        if result.player_path:
            console.print(f"Player:   {result.player_path}")


def output_detection(
    spans: list[RawSpan],
    intervals: list[RedactionInterval],
    as_json: bool = False,
) -> None:
    """Display detected spans and the merged intervals.

    Args:
        spans: Raw spans in detection order.
        intervals: Merged redaction intervals.
        as_json: Output as JSON if True.
    """
    if as_json:
        console.print_json(
            data={
                "spans": [s.model_dump(mode="json") for s in spans],
                "intervals": [i.model_dump(mode="json") for i in intervals],
            }
        )
        return

    if not spans:
        console.print("No sensitive spans detected.")
        return

    table = Table(title="Detected spans")
    table.add_column("Kind", style="cyan")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    for span in spans:
        table.add_row(span.kind.value, f"{span.start:.2f}", f"{span.end:.2f}")
    console.print(table)

    console.print("Redaction intervals:")
    for interval in intervals:
        console.print(
            f"  [{_format_timestamp(interval.start)} - {_format_timestamp(interval.end)}]"
            f" {interval.duration:.2f}s"
        )


def output_health(status: dict[str, Any], as_json: bool = False) -> None:
    """Display engine health.

    Args:
        status: Health check dictionary.
        as_json: Output as JSON if True.
    """
    if as_json:
        console.print_json(data=status)
        return

    for tool, ok in status.get("tools", {}).items():
        mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
        console.print(f"{tool}: {mark}")
    color = "green" if status.get("status") == "healthy" else "yellow"
    console.print(f"Status: [{color}]{status.get('status')}[/{color}]")


def _format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS.ms."""
    mins = int(seconds // 60)
    secs = seconds % 60
    return f"{mins:02d}:{secs:05.2f}"


def format_duration(seconds: float) -> str:
    """Format duration as human-readable string.

    Args:
        seconds: Duration in seconds.

    Returns:
        Formatted duration string.
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins}m {secs}s"
    else:
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        return f"{hours}h {mins}m"
