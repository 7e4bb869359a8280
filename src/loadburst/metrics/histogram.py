"""HDR latency histogram.

Latencies are recorded as integer microseconds in an
``hdrh.histogram.HdrHistogram`` covering 1 us to 1 hour with 3
significant digits. HDR buckets are monotonic: each bucket covers a value
range whose width grows with the magnitude of the value, keeping the
relative error of any reported value at or below 0.1%. Out-of-range
values are clamped to the nearest bound rather than dropped, so every
outcome is counted.
"""

from __future__ import annotations

import numpy as np
from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

LOWEST_TRACKABLE_US = 1
HIGHEST_TRACKABLE_US = 3_600_000_000
SIGNIFICANT_DIGITS = 3


class LatencyHistogram:
    """Streaming latency histogram with a millisecond API.

    Memory use is fixed by the trackable range, not by the number of
    recorded values. Not thread-safe on its own; the aggregator guards it.
    """

    def __init__(self) -> None:
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            LOWEST_TRACKABLE_US, HIGHEST_TRACKABLE_US, SIGNIFICANT_DIGITS
        )

    @property
    def count(self) -> int:
        """Number of recorded values."""
        return int(self._histogram.total_count)

    def record(self, latency_ms: float) -> None:
        """Record one latency, clamped to the trackable range."""
        value_us = int(latency_ms * 1000)
        value_us = max(LOWEST_TRACKABLE_US, min(value_us, HIGHEST_TRACKABLE_US))
        self._histogram.record_value(value_us)

    def percentile(self, percentile: float) -> float:
        """Return the latency at ``percentile`` (0-100) in ms, 0.0 when empty."""
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_value_at_percentile(percentile)) / 1000.0

    def min(self) -> float:
        """Return the smallest recorded latency.

        Returns:
            Minimum latency in ms, 0.0 when empty.
        """
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_min_value()) / 1000.0

    def max(self) -> float:
        """Return the largest recorded latency.

        Returns:
            Maximum latency in ms, 0.0 when empty.
        """
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_max_value()) / 1000.0

    def mean(self) -> float:
        """Return the mean recorded latency.

        Returns:
            Mean latency in ms, 0.0 when empty.
        """
        if self.count == 0:
            return 0.0
        return float(self._histogram.get_mean_value()) / 1000.0

    def recorded_values(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(values_ms, counts)`` for every non-empty HDR bucket.

        Each value is the highest value equivalent to its bucket, in
        milliseconds. Both arrays are empty when nothing was recorded.
        """
        values: list[float] = []
        counts: list[int] = []
        if self.count:
            for item in self._histogram.get_recorded_iterator():
                values.append(item.value_iterated_to / 1000.0)
                counts.append(item.count_at_value_iterated_to)
        return np.asarray(values, dtype=np.float64), np.asarray(counts, dtype=np.int64)

    def stddev(self) -> float:
        """Population standard deviation in ms, 0.0 when empty."""
        values, counts = self.recorded_values()
        if counts.sum() == 0:
            return 0.0
        mean = np.average(values, weights=counts)
        variance = np.average((values - mean) ** 2, weights=counts)
        return float(np.sqrt(variance))

    def bucketize(self, buckets: int) -> list[tuple[float, int]]:
        """Spread recorded values over ``buckets`` equal-width bins.

        Args:
            buckets: Number of bins between min and max.

        Returns:
            ``(upper_bound_ms, count)`` pairs in ascending order. A single
            pair when every value falls in one HDR bucket, empty when
            nothing was recorded.
        """
        values, counts = self.recorded_values()
        if values.size == 0:
            return []
        low, high = self.min(), self.max()
        if high <= low:
            return [(high, int(counts.sum()))]
        # Bucket representatives can sit slightly above max(); clip them in.
        clipped = np.clip(values, low, high)
        hist, edges = np.histogram(clipped, bins=buckets, range=(low, high), weights=counts)
        return [(float(edge), int(n)) for edge, n in zip(edges[1:], hist, strict=True)]
