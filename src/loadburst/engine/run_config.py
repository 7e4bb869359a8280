"""Run parameters, run states and the result of a finished run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadburst._internal.errors import ConfigError

if TYPE_CHECKING:
    from loadburst.metrics.models import Summary
    from loadburst.request.template import RequestTemplate


class RunState(Enum):
    """State machine for a single run.

    IDLE -> RUNNING -> COMPLETED | CANCELLED | TIMED_OUT
    """

    IDLE = auto()
    RUNNING = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    TIMED_OUT = auto()

    @property
    def is_terminal(self) -> bool:
        return self in {RunState.COMPLETED, RunState.CANCELLED, RunState.TIMED_OUT}


@dataclass(frozen=True)
class RunConfig:
    """How many requests to send and how hard to push.

    Attributes:
        total: Number of attempts to make. Zero yields an empty run.
        concurrency: Maximum attempts in flight. At most ``total`` when
            ``total`` is positive.
        request_timeout: Seconds each attempt may take.
        deadline: Seconds the whole run may take, or None for no limit.
        rate_limit: Maximum attempts started per second, or None.
        keepalive: Reuse connections between attempts.

    Raises:
        ConfigError: On construction, if any value is out of range.
    """

    total: int
    concurrency: int
    request_timeout: float = 30.0
    deadline: float | None = None
    rate_limit: float | None = None
    keepalive: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.total, bool) or not isinstance(self.total, int) or self.total < 0:
            msg = f"total must be a non-negative integer, got: {self.total!r}"
            raise ConfigError(msg)
        if (
            isinstance(self.concurrency, bool)
            or not isinstance(self.concurrency, int)
            or self.concurrency < 1
        ):
            msg = f"concurrency must be a positive integer, got: {self.concurrency!r}"
            raise ConfigError(msg)
        if self.total > 0 and self.concurrency > self.total:
            msg = f"concurrency ({self.concurrency}) must not exceed total ({self.total})"
            raise ConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got: {self.request_timeout}"
            raise ConfigError(msg)
        if self.deadline is not None and self.deadline <= 0:
            msg = f"deadline must be positive, got: {self.deadline}"
            raise ConfigError(msg)
        if self.rate_limit is not None and self.rate_limit <= 0:
            msg = f"rate_limit must be positive, got: {self.rate_limit}"
            raise ConfigError(msg)


@dataclass(frozen=True)
class RunResult:
    """Everything known about a finished run.

    Attributes:
        state: Terminal state the run ended in.
        summary: Finalized statistics.
        config: Parameters the run was started with.
        template: Request that was repeated.
        peak_in_flight: Highest number of simultaneous attempts observed.
    """

    state: RunState
    summary: Summary
    config: RunConfig
    template: RequestTemplate
    peak_in_flight: int = 0

    @property
    def completed(self) -> bool:
        """True when every attempt ran to an outcome."""
        return self.state is RunState.COMPLETED
