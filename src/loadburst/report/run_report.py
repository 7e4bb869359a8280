"""Presentation-side view of a finished run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loadburst.engine.run_config import RunState
from loadburst.metrics.models import Summary

if TYPE_CHECKING:
    from loadburst.engine.run_config import RunResult


@dataclass(frozen=True)
class RunReport:
    """What reporters need to know about a run.

    Built from a live RunResult or from a saved JSON report, so both
    ``loadburst run`` and ``loadburst report`` render through the same code.

    Attributes:
        state: Terminal run state.
        target: Target URL.
        method: HTTP method.
        total: Attempts requested.
        concurrency: Concurrency limit.
        peak_in_flight: Highest simultaneous attempts observed.
        summary: Finalized statistics.
    """

    state: RunState
    target: str
    method: str
    total: int
    concurrency: int
    peak_in_flight: int
    summary: Summary

    @classmethod
    def from_result(cls, result: RunResult) -> RunReport:
        return cls(
            state=result.state,
            target=str(result.template.url),
            method=result.template.method.value,
            total=result.config.total,
            concurrency=result.config.concurrency,
            peak_in_flight=result.peak_in_flight,
            summary=result.summary,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.name.lower(),
            "target": self.target,
            "method": self.method,
            "total": self.total,
            "concurrency": self.concurrency,
            "peak_in_flight": self.peak_in_flight,
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunReport:
        """Rebuild a report from :meth:`to_dict` output.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a value has the wrong shape.
        """
        return cls(
            state=RunState[str(data["state"]).upper()],
            target=str(data["target"]),
            method=str(data["method"]),
            total=int(data["total"]),
            concurrency=int(data["concurrency"]),
            peak_in_flight=int(data.get("peak_in_flight", 0)),
            summary=Summary.from_dict(data["summary"]),
        )
