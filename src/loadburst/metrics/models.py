"""Summary dataclasses produced by the aggregator."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from loadburst.metrics.outcome import ErrorKind

# Percentiles reported in every summary, in ascending order.
REPORTED_PERCENTILES: tuple[float, ...] = (10.0, 25.0, 50.0, 75.0, 90.0, 95.0, 99.0, 99.9, 99.99)


@dataclass(frozen=True)
class HistogramBucket:
    """One bar of the response-time histogram.

    Attributes:
        upper_ms: Inclusive upper bound of the bucket in milliseconds.
        count: Number of attempts whose latency falls in the bucket.
    """

    upper_ms: float
    count: int


@dataclass(frozen=True)
class LatencyDistribution:
    """Latency statistics over every recorded outcome, in milliseconds.

    Attributes:
        min_ms: Fastest attempt.
        max_ms: Slowest attempt.
        mean_ms: Mean latency.
        stddev_ms: Population standard deviation.
        percentiles: Latency at each of ``REPORTED_PERCENTILES``.
        histogram: Equal-width buckets between min and max.
    """

    min_ms: float = 0.0
    max_ms: float = 0.0
    mean_ms: float = 0.0
    stddev_ms: float = 0.0
    percentiles: dict[float, float] = field(default_factory=dict)
    histogram: tuple[HistogramBucket, ...] = ()

    def percentile(self, pct: float) -> float:
        """Return the latency at ``pct``, 0.0 if it was not computed."""
        return self.percentiles.get(pct, 0.0)


@dataclass(frozen=True)
class Summary:
    """Finalized statistics for one run.

    ``success_count`` counts attempts that received any HTTP response,
    grouped by class in ``status_classes``. Attempts without a response are
    counted per kind in ``errors``, so a 500 from the target and a refused
    connection never land in the same bucket.

    Attributes:
        total_counted: Outcomes recorded; one per dispatched attempt.
        success_count: Attempts that received an HTTP response.
        failure_count: Attempts that ended in an ErrorKind.
        status_classes: Responses per status class, e.g. ``{"2xx": 98}``.
        status_codes: Responses per exact status code.
        errors: Failures per ErrorKind.
        latency: Latency distribution over all outcomes.
        total_bytes: Sum of response body sizes.
        duration_seconds: Wall-clock time from start to finalize.
        requests_per_second: ``total_counted / duration_seconds``.
    """

    total_counted: int = 0
    success_count: int = 0
    failure_count: int = 0
    status_classes: dict[str, int] = field(default_factory=dict)
    status_codes: dict[int, int] = field(default_factory=dict)
    errors: dict[ErrorKind, int] = field(default_factory=dict)
    latency: LatencyDistribution = field(default_factory=LatencyDistribution)
    total_bytes: int = 0
    duration_seconds: float = 0.0
    requests_per_second: float = 0.0

    @classmethod
    def empty(cls) -> Summary:
        """Summary of a run that dispatched nothing."""
        return cls()

    @property
    def success_rate(self) -> float:
        """Fraction of attempts that received a response (0.0 to 1.0)."""
        return self.success_count / self.total_counted if self.total_counted else 0.0

    @property
    def bytes_per_request(self) -> float:
        """Mean response body size over attempts that got a response, 0.0 if none did."""
        return self.total_bytes / self.success_count if self.success_count else 0.0

    @property
    def bytes_per_second(self) -> float:
        """Body bytes received per second of run time, 0.0 for a zero duration."""
        return self.total_bytes / self.duration_seconds if self.duration_seconds > 0 else 0.0

    def error_count(self, kind: ErrorKind) -> int:
        """Return the number of failures of ``kind``."""
        return self.errors.get(kind, 0)

    def status_class_count(self, status_class: str) -> int:
        """Return the number of responses in ``status_class`` (e.g. ``"5xx"``)."""
        return self.status_classes.get(status_class, 0)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible dict. Inverse of :meth:`from_dict`."""
        data = asdict(self)
        data["errors"] = {kind.value: n for kind, n in self.errors.items()}
        data["status_codes"] = {str(code): n for code, n in self.status_codes.items()}
        data["latency"]["percentiles"] = {
            _percentile_key(p): v for p, v in self.latency.percentiles.items()
        }
        data["success_rate"] = self.success_rate
        data["bytes_per_request"] = self.bytes_per_request
        data["bytes_per_second"] = self.bytes_per_second
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Summary:
        """Rebuild a Summary from :meth:`to_dict` output.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If an error kind or number cannot be parsed.
        """
        raw_latency = data["latency"]
        latency = LatencyDistribution(
            min_ms=float(raw_latency["min_ms"]),
            max_ms=float(raw_latency["max_ms"]),
            mean_ms=float(raw_latency["mean_ms"]),
            stddev_ms=float(raw_latency.get("stddev_ms", 0.0)),
            percentiles={float(p): float(v) for p, v in raw_latency["percentiles"].items()},
            histogram=tuple(
                HistogramBucket(upper_ms=float(b["upper_ms"]), count=int(b["count"]))
                for b in raw_latency.get("histogram", ())
            ),
        )
        return cls(
            total_counted=int(data["total_counted"]),
            success_count=int(data["success_count"]),
            failure_count=int(data["failure_count"]),
            status_classes={str(k): int(v) for k, v in data["status_classes"].items()},
            status_codes={int(k): int(v) for k, v in data["status_codes"].items()},
            errors={ErrorKind(k): int(v) for k, v in data["errors"].items()},
            latency=latency,
            total_bytes=int(data["total_bytes"]),
            duration_seconds=float(data["duration_seconds"]),
            requests_per_second=float(data["requests_per_second"]),
        )


@dataclass(frozen=True)
class ProgressSnapshot:
    """Running view of a run in progress, emitted every tick.

    Attributes:
        elapsed_seconds: Seconds since the run started.
        total: Attempts the run will make.
        counted: Outcomes recorded so far.
        success_count: Responses received so far.
        failure_count: Failures so far.
        in_flight: Attempts currently holding a permit.
        requests_per_second: ``counted / elapsed_seconds``.
        latency_p50: Running median latency in ms.
        latency_p99: Running 99th percentile latency in ms.
    """

    elapsed_seconds: float
    total: int
    counted: int
    success_count: int
    failure_count: int
    in_flight: int = 0
    requests_per_second: float = 0.0
    latency_p50: float = 0.0
    latency_p99: float = 0.0

    @property
    def fraction_done(self) -> float:
        """Share of ``total`` already counted (0.0 to 1.0); 1.0 when ``total`` is zero."""
        return self.counted / self.total if self.total else 1.0


def _percentile_key(pct: float) -> str:
    return f"{pct:g}"
