"""loadburst: fire a fixed batch of HTTP requests and summarise the results."""

from __future__ import annotations

from loadburst.engine.dispatcher import Dispatcher
from loadburst.engine.governor import ConcurrencyGovernor, Permit
from loadburst.engine.run_config import RunConfig, RunResult, RunState
from loadburst.engine.runner import LoadRunner
from loadburst.metrics.aggregator import Aggregator
from loadburst.metrics.models import LatencyDistribution, ProgressSnapshot, Summary
from loadburst.metrics.outcome import ErrorKind, Failure, Outcome, Success
from loadburst.request.template import HttpMethod, RequestTemplate

__version__ = "0.1.0"

__all__ = [
    "Aggregator",
    "ConcurrencyGovernor",
    "Dispatcher",
    "ErrorKind",
    "Failure",
    "HttpMethod",
    "LatencyDistribution",
    "LoadRunner",
    "Outcome",
    "Permit",
    "ProgressSnapshot",
    "RequestTemplate",
    "RunConfig",
    "RunResult",
    "RunState",
    "Success",
    "Summary",
]
