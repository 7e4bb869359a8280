"""Machine-readable JSON reports."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from loadburst._internal.errors import ConfigError
from loadburst.report.run_report import RunReport

if TYPE_CHECKING:
    from pathlib import Path


def render_json(report: RunReport, *, indent: int | None = 2) -> str:
    """Serialize a report to a JSON string."""
    return json.dumps(report.to_dict(), indent=indent)


def save_json(report: RunReport, path: Path) -> None:
    """Write a report to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_json(report) + "\n", encoding="utf-8")


def load_json(path: Path) -> RunReport:
    """Read a report written by :func:`save_json`.

    Raises:
        ConfigError: If the file is missing, is not JSON, or does not hold
            a loadburst report.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"Cannot read report {path}: {exc}"
        raise ConfigError(msg) from exc
    except json.JSONDecodeError as exc:
        msg = f"Report {path} is not valid JSON: {exc}"
        raise ConfigError(msg) from exc

    try:
        return RunReport.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        msg = f"Report {path} is not a loadburst report: {exc!r}"
        raise ConfigError(msg) from exc
