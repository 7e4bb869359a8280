"""``loadburst run``: send a fixed batch of requests with live terminal output."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel

from loadburst._internal.config import load_config
from loadburst._internal.errors import ConfigError, LoadBurstError
from loadburst.engine.run_config import RunConfig
from loadburst.engine.runner import LoadRunner
from loadburst.report.json_report import render_json, save_json
from loadburst.report.run_report import RunReport
from loadburst.report.text import make_progress_table, render_text
from loadburst.request.template import RequestTemplate, parse_header

if TYPE_CHECKING:
    from loadburst.engine.run_config import RunResult
    from loadburst.metrics.models import ProgressSnapshot

console = Console(stderr=True)

EXIT_OK = 0
EXIT_INCOMPLETE = 1
EXIT_CONFIG_ERROR = 2

_FORMATS = ("text", "json")


# ---------------------------------------------------------------------------
# Option resolution helpers
# ---------------------------------------------------------------------------


def _read_body(body: str | None, body_file: Path | None) -> bytes | None:
    """Resolve ``--body`` / ``--body-file`` into raw bytes.

    Raises:
        ConfigError: If both are given or the file cannot be read.
    """
    if body is not None and body_file is not None:
        msg = "--body and --body-file are mutually exclusive"
        raise ConfigError(msg)
    if body_file is not None:
        try:
            return body_file.read_bytes()
        except OSError as exc:
            msg = f"Cannot read body file {body_file}: {exc}"
            raise ConfigError(msg) from exc
    return body.encode("utf-8") if body is not None else None


def _build_run(
    url: str | None,
    requests: int | None,
    concurrency: int | None,
    method: str | None,
    headers: list[str] | None,
    body: bytes | None,
    timeout: float | None,
    deadline: float | None,
    rate_limit: float | None,
    keepalive: bool,
) -> tuple[RequestTemplate, RunConfig]:
    """Merge CLI flags over environment defaults and validate them.

    Raises:
        ConfigError: If any value is invalid.
    """
    defaults = load_config()

    total = requests if requests is not None else defaults.num_requests
    limit = concurrency if concurrency is not None else defaults.concurrency
    if 0 < total < limit:
        console.print(
            f"[yellow]Concurrency {limit} exceeds request count; using {total}.[/yellow]"
        )
        limit = total

    header_pairs = [parse_header(h) for h in headers or ()]
    if defaults.accept and not any(key.lower() == "accept" for key, _ in header_pairs):
        header_pairs.insert(0, ("Accept", defaults.accept))

    template = RequestTemplate.build(
        url=url or defaults.target_url,
        method=method or defaults.method,
        headers=header_pairs,
        body=body,
    )
    config = RunConfig(
        total=total,
        concurrency=limit,
        request_timeout=timeout if timeout is not None else defaults.request_timeout,
        deadline=deadline,
        rate_limit=rate_limit,
        keepalive=keepalive,
    )
    return template, config


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _print_banner(template: RequestTemplate, config: RunConfig) -> None:
    lines = [
        f"[bold]Target URL:[/bold]   {template.url}",
        f"[bold]Method:[/bold]       {template.method.value}",
        f"[bold]Num Requests:[/bold] {config.total}",
        f"[bold]Concurrency:[/bold]  {config.concurrency}",
        f"[bold]Timeout:[/bold]      {config.request_timeout:g}s",
    ]
    if config.deadline is not None:
        lines.append(f"[bold]Deadline:[/bold]     {config.deadline:g}s")
    if config.rate_limit is not None:
        lines.append(f"[bold]Rate Limit:[/bold]   {config.rate_limit:g} req/s")
    for key, value in template.headers.items():
        lines.append(f"[bold]Header:[/bold]       {key}: {value}")
    console.print(Panel("\n".join(lines), title="loadburst", border_style="cyan"))


def _execute(runner: LoadRunner, *, show_progress: bool) -> RunResult:
    if not show_progress:
        return runner.run()

    with Live(
        make_progress_table(None),
        console=console,
        refresh_per_second=4,
        transient=True,
    ) as live:

        def _on_progress(snapshot: ProgressSnapshot) -> None:
            live.update(make_progress_table(snapshot))

        runner.on_progress = _on_progress
        return runner.run()


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    url: str | None = typer.Argument(
        None,
        help="Target URL. Defaults to $LOADBURST_URL, else built from "
        "$LOADBURST_HOST, $LOADBURST_PORT and $LOADBURST_ENDPOINT.",
        show_default=False,
    ),
    requests: int | None = typer.Option(
        None,
        "--requests",
        "-n",
        help="Total requests to send [default: $LOADBURST_NUM_REQUESTS or 10000].",
        min=0,
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Maximum requests in flight [default: $LOADBURST_CONCURRENCY or 50].",
        min=1,
    ),
    method: str | None = typer.Option(
        None,
        "--method",
        "-m",
        help="HTTP method [default: $LOADBURST_METHOD or GET].",
    ),
    header: list[str] | None = typer.Option(
        None,
        "--header",
        "-H",
        help="Request header as 'Key: value'. Repeatable.",
    ),
    body: str | None = typer.Option(
        None,
        "--body",
        "-d",
        help="Request body as a string.",
    ),
    body_file: Path | None = typer.Option(
        None,
        "--body-file",
        "-D",
        help="Read the request body from a file.",
        dir_okay=False,
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Per-request timeout in seconds [default: $LOADBURST_TIMEOUT or 30].",
    ),
    deadline: float | None = typer.Option(
        None,
        "--deadline",
        "-z",
        help="Abort the whole run after this many seconds.",
    ),
    rate_limit: float | None = typer.Option(
        None,
        "--rate-limit",
        "-q",
        help="Maximum requests started per second.",
    ),
    disable_keepalive: bool = typer.Option(
        False,
        "--disable-keepalive",
        help="Open a new connection for every request.",
    ),
    fmt: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Report format: text or json.",
    ),
    save: Path | None = typer.Option(
        None,
        "--save",
        help="Also write the JSON report to this file.",
        dir_okay=False,
    ),
    no_progress: bool = typer.Option(
        False,
        "--no-progress",
        help="Disable the live progress table.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    log_json: bool = typer.Option(
        False,
        "--log-json",
        help="Emit log lines as JSON.",
    ),
) -> None:
    """Send a fixed number of requests and print a summary."""
    if fmt not in _FORMATS:
        msg = f"Unknown format: {fmt}. Choose from: {', '.join(_FORMATS)}"
        raise typer.BadParameter(msg)

    try:
        template, config = _build_run(
            url=url,
            requests=requests,
            concurrency=concurrency,
            method=method,
            headers=header,
            body=_read_body(body, body_file),
            timeout=timeout,
            deadline=deadline,
            rate_limit=rate_limit,
            keepalive=not disable_keepalive,
        )
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from exc

    _print_banner(template, config)
    console.print("Starting load test...")

    runner = LoadRunner(
        template,
        config,
        log_level=logging.DEBUG if verbose else logging.WARNING,
        log_json=log_json,
    )
    try:
        result = _execute(runner, show_progress=not no_progress)
    except LoadBurstError as exc:
        console.print(f"[red]Load test failed:[/red] {exc}")
        raise typer.Exit(code=EXIT_INCOMPLETE) from exc

    report = RunReport.from_result(result)
    if fmt == "json":
        typer.echo(render_json(report))
    else:
        render_text(report, console)

    if save is not None:
        save_json(report, save)
        console.print(f"Report saved to {save}")

    if not result.completed:
        console.print(
            f"[red]Run {result.state.name.replace('_', ' ').lower()} after "
            f"{result.summary.total_counted} of {config.total} requests.[/red]"
        )
        raise typer.Exit(code=EXIT_INCOMPLETE)

    console.print("[green]Load test completed![/green]")
