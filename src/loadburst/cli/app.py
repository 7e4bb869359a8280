"""Main Typer application and entry point for the ``loadburst`` CLI."""

from __future__ import annotations

import typer

from loadburst import __version__
from loadburst.cli.report import report_cmd
from loadburst.cli.run import run_cmd

app = typer.Typer(
    name="loadburst",
    help="Fire a fixed batch of HTTP requests at an endpoint and summarise the results.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a load test against a URL.")(run_cmd)
app.command("report", help="Re-render a saved JSON report.")(report_cmd)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"loadburst {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """loadburst: fixed-count HTTP load testing."""
