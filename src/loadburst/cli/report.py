"""``loadburst report``: re-render a report saved with ``loadburst run --save``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from loadburst._internal.errors import ConfigError
from loadburst.report.json_report import load_json, render_json
from loadburst.report.text import render_text

console = Console(stderr=True)


def report_cmd(
    report_file: Path = typer.Argument(
        ...,
        help="JSON report written by 'loadburst run --save'.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    fmt: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text or json.",
    ),
) -> None:
    """Print a saved report."""
    if fmt not in ("text", "json"):
        msg = f"Unknown format: {fmt}. Choose from: text, json"
        raise typer.BadParameter(msg)

    try:
        report = load_json(report_file)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=2) from exc

    if fmt == "json":
        typer.echo(render_json(report))
    else:
        render_text(report, console)
