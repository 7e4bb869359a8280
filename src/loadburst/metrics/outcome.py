"""Per-attempt outcomes handed from the dispatcher to the aggregator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Why an attempt produced no HTTP response."""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    PROTOCOL = "protocol"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Success:
    """An attempt that received an HTTP response, whatever its status.

    Attributes:
        status: HTTP status code.
        latency_ms: Time from send to the last body byte, in milliseconds.
        byte_count: Response body size in bytes. The body itself is discarded.
    """

    status: int
    latency_ms: float
    byte_count: int = 0

    @property
    def status_class(self) -> str:
        """Return the status class, e.g. ``"2xx"`` for 204."""
        return f"{self.status // 100}xx"


@dataclass(frozen=True)
class Failure:
    """An attempt that ended without a usable HTTP response.

    Attributes:
        kind: Error category.
        latency_ms: Time until the failure was observed, in milliseconds.
        message: Short description of the underlying exception.
    """

    kind: ErrorKind
    latency_ms: float
    message: str = ""


Outcome = Success | Failure
