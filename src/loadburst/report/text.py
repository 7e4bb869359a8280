"""Rich terminal rendering of run reports and live progress."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

from loadburst.engine.run_config import RunState

if TYPE_CHECKING:
    from rich.console import Console

    from loadburst.metrics.models import ProgressSnapshot, Summary
    from loadburst.report.run_report import RunReport

_BAR_WIDTH = 40

_STATE_STYLES = {
    RunState.COMPLETED: "bold green",
    RunState.CANCELLED: "bold yellow",
    RunState.TIMED_OUT: "bold red",
}


def _format_bytes(n: float) -> str:
    for unit in ("B", "KiB", "MiB", "GiB"):
        if abs(n) < 1024 or unit == "GiB":
            return f"{n:.0f} {unit}" if unit == "B" else f"{n:.2f} {unit}"
        n /= 1024
    return f"{n:.2f} GiB"


def make_progress_table(snapshot: ProgressSnapshot | None) -> Table:
    """Build the live progress table shown while a run is in flight."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    if snapshot is None:
        table.add_row("Status", "Starting...")
        return table

    table.add_row("Elapsed", f"{snapshot.elapsed_seconds:.1f}s")
    table.add_row("Progress", f"{snapshot.counted}/{snapshot.total} ({snapshot.fraction_done * 100:.1f}%)")
    table.add_row("In Flight", str(snapshot.in_flight))
    table.add_row("Requests/sec", f"{snapshot.requests_per_second:.1f}")
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.2f}ms")
    table.add_row("p99 Latency", f"{snapshot.latency_p99:.2f}ms")
    table.add_row("Failures", str(snapshot.failure_count))
    return table


def _summary_table(report: RunReport) -> Table:
    summary = report.summary
    style = _STATE_STYLES.get(report.state, "bold")
    table = Table(title="Summary", show_header=True, header_style="bold green", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Target", f"{report.method} {report.target}")
    table.add_row("State", f"[{style}]{report.state.name.replace('_', ' ').title()}[/{style}]")
    table.add_row("Requests", f"{summary.total_counted}/{report.total}")
    table.add_row("Concurrency", f"{report.concurrency} (peak {report.peak_in_flight})")
    table.add_row("Success Rate", f"{summary.success_rate * 100:.2f}%")
    table.add_row("Total Time", f"{summary.duration_seconds:.4f}s")
    table.add_row("Slowest", f"{summary.latency.max_ms:.4f}ms")
    table.add_row("Fastest", f"{summary.latency.min_ms:.4f}ms")
    table.add_row("Average", f"{summary.latency.mean_ms:.4f}ms")
    table.add_row("Std Dev", f"{summary.latency.stddev_ms:.4f}ms")
    table.add_row("Requests/sec", f"{summary.requests_per_second:.4f}")
    table.add_row("Total Data", _format_bytes(summary.total_bytes))
    table.add_row("Size/Request", _format_bytes(summary.bytes_per_request))
    table.add_row("Size/sec", _format_bytes(summary.bytes_per_second))
    return table


def _histogram_table(summary: Summary) -> Table:
    table = Table(title="Response Time Histogram", show_header=False, expand=True, box=None)
    table.add_column("Upper", justify="right", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("Bar")

    peak = max((b.count for b in summary.latency.histogram), default=0)
    for bucket in summary.latency.histogram:
        width = round(bucket.count / peak * _BAR_WIDTH) if peak else 0
        table.add_row(f"{bucket.upper_ms:.3f}ms", str(bucket.count), "■" * width)
    return table


def _percentile_table(summary: Summary) -> Table:
    table = Table(title="Response Time Distribution", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Percentile", style="bold")
    table.add_column("Latency", justify="right")
    for pct, value in summary.latency.percentiles.items():
        table.add_row(f"{pct:g}%", f"{value:.4f}ms")
    return table


def _status_table(summary: Summary) -> Table:
    table = Table(title="Status Code Distribution", show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Status")
    table.add_column("Responses", justify="right")
    for status_class, count in summary.status_classes.items():
        table.add_row(f"[bold]{status_class}[/bold]", str(count))
    for code, count in summary.status_codes.items():
        table.add_row(f"  {code}", str(count))
    return table


def _error_table(summary: Summary) -> Table:
    table = Table(title="Error Distribution", show_header=True, header_style="bold red", expand=True)
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for kind, count in summary.errors.items():
        table.add_row(kind.value, str(count))
    return table


def render_text(report: RunReport, console: Console) -> None:
    """Print the full human-readable report to ``console``."""
    summary = report.summary
    console.print(_summary_table(report))

    if summary.total_counted == 0:
        console.print("[yellow]No requests were dispatched.[/yellow]")
        return

    if summary.latency.histogram:
        console.print()
        console.print(_histogram_table(summary))
    if summary.latency.percentiles:
        console.print()
        console.print(_percentile_table(summary))
    if summary.status_classes:
        console.print()
        console.print(_status_table(summary))
    if summary.errors:
        console.print()
        console.print(_error_table(summary))
