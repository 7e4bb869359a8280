"""Thread-safe accumulation of attempt outcomes into a Summary.

Every ``record`` call takes one lock and updates all counters and the
latency histogram inside it, so concurrent writers (asyncio tasks or
threads) can neither lose nor double-count an outcome. Since every update
is a commutative increment, the finalized counters do not depend on the
order in which outcomes arrive.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import TYPE_CHECKING

from loadburst._internal.errors import AlreadyFinalizedError
from loadburst._internal.logging import get_logger
from loadburst.metrics.histogram import LatencyHistogram
from loadburst.metrics.models import (
    REPORTED_PERCENTILES,
    HistogramBucket,
    LatencyDistribution,
    ProgressSnapshot,
    Summary,
)
from loadburst.metrics.outcome import ErrorKind, Failure, Success

if TYPE_CHECKING:
    from loadburst.metrics.outcome import Outcome

logger = get_logger("metrics.aggregator")

DEFAULT_HISTOGRAM_BUCKETS = 11


class Aggregator:
    """Consumes outcomes and produces the run's Summary.

    The clock used for throughput starts when the aggregator is created,
    or at the last :meth:`start` call.

    Attributes:
        total: Expected number of outcomes, used for progress reporting.
        histogram_buckets: Bars in the response-time histogram.
    """

    def __init__(self, total: int = 0, *, histogram_buckets: int = DEFAULT_HISTOGRAM_BUCKETS) -> None:
        self.total = total
        self.histogram_buckets = histogram_buckets

        self._lock = threading.Lock()
        self._started_at = time.monotonic()
        self._summary: Summary | None = None

        self._histogram = LatencyHistogram()
        self._counted = 0
        self._success_count = 0
        self._failure_count = 0
        self._total_bytes = 0
        self._status_classes: Counter[str] = Counter()
        self._status_codes: Counter[int] = Counter()
        self._errors: Counter[ErrorKind] = Counter()

    @property
    def counted(self) -> int:
        """Outcomes recorded so far."""
        with self._lock:
            return self._counted

    @property
    def finalized(self) -> bool:
        with self._lock:
            return self._summary is not None

    def start(self) -> None:
        """Reset the throughput clock to now."""
        with self._lock:
            self._started_at = time.monotonic()

    def record(self, outcome: Outcome) -> None:
        """Fold one outcome into the running counters.

        Args:
            outcome: Result of a single attempt.

        Raises:
            AlreadyFinalizedError: If :meth:`finalize` was already called.
        """
        with self._lock:
            if self._summary is not None:
                msg = "Cannot record an outcome after the summary was finalized"
                raise AlreadyFinalizedError(msg)

            self._counted += 1
            self._histogram.record(outcome.latency_ms)

            if isinstance(outcome, Success):
                self._success_count += 1
                self._total_bytes += outcome.byte_count
                self._status_classes[outcome.status_class] += 1
                self._status_codes[outcome.status] += 1
            elif isinstance(outcome, Failure):
                self._failure_count += 1
                self._errors[outcome.kind] += 1

    def progress(self, in_flight: int = 0) -> ProgressSnapshot:
        """Return a running view without finalizing.

        Args:
            in_flight: Attempts currently in flight, supplied by the caller.
        """
        with self._lock:
            elapsed = time.monotonic() - self._started_at
            return ProgressSnapshot(
                elapsed_seconds=elapsed,
                total=self.total,
                counted=self._counted,
                success_count=self._success_count,
                failure_count=self._failure_count,
                in_flight=in_flight,
                requests_per_second=self._counted / max(elapsed, 0.001),
                latency_p50=self._histogram.percentile(50.0),
                latency_p99=self._histogram.percentile(99.0),
            )

    def finalize(self, duration_seconds: float | None = None) -> Summary:
        """Freeze the counters into a Summary.

        The first call builds the Summary; later calls return the same
        object and ignore ``duration_seconds``.

        Args:
            duration_seconds: Run duration used for throughput. Defaults to
                the time elapsed since the aggregator started.

        Returns:
            The immutable Summary.
        """
        with self._lock:
            if self._summary is not None:
                return self._summary

            if duration_seconds is None:
                duration_seconds = time.monotonic() - self._started_at

            self._summary = Summary(
                total_counted=self._counted,
                success_count=self._success_count,
                failure_count=self._failure_count,
                status_classes=dict(sorted(self._status_classes.items())),
                status_codes=dict(sorted(self._status_codes.items())),
                errors={kind: self._errors[kind] for kind in ErrorKind if self._errors[kind]},
                latency=self._build_distribution(),
                total_bytes=self._total_bytes,
                duration_seconds=duration_seconds,
                requests_per_second=self._counted / max(duration_seconds, 0.001),
            )
            logger.debug(
                "Summary finalized: counted=%d, successes=%d, failures=%d",
                self._counted,
                self._success_count,
                self._failure_count,
            )
            return self._summary

    def _build_distribution(self) -> LatencyDistribution:
        hist = self._histogram
        if hist.count == 0:
            return LatencyDistribution()
        return LatencyDistribution(
            min_ms=hist.min(),
            max_ms=hist.max(),
            mean_ms=hist.mean(),
            stddev_ms=hist.stddev(),
            percentiles={p: hist.percentile(p) for p in REPORTED_PERCENTILES},
            histogram=tuple(
                HistogramBucket(upper_ms=upper, count=count)
                for upper, count in hist.bucketize(self.histogram_buckets)
            ),
        )
