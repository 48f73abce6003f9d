"""HDR histogram of request latencies.

Wraps ``hdrh.histogram.HdrHistogram``. Durations come in as seconds (the
unit workers measure in) and are stored as integer microseconds; all
read-outs are in milliseconds.
"""

from __future__ import annotations

from hdrh.histogram import HdrHistogram  # type: ignore[import-untyped]

from stampede.metrics.models import LatencySummary

# 1 microsecond up to 5 minutes, comfortably above any request timeout
_LOWEST_TRACKABLE_US = 1
_HIGHEST_TRACKABLE_US = 300_000_000
_SIGNIFICANT_DIGITS = 3


class HdrHistogramWrapper:
    """Latency histogram used by the report aggregator.

    Attributes:
        lowest_us: Lowest trackable value in microseconds.
        highest_us: Highest trackable value in microseconds.
    """

    def __init__(
        self,
        lowest_us: int = _LOWEST_TRACKABLE_US,
        highest_us: int = _HIGHEST_TRACKABLE_US,
        significant_digits: int = _SIGNIFICANT_DIGITS,
    ) -> None:
        self.lowest_us = lowest_us
        self.highest_us = highest_us
        self._histogram: HdrHistogram = HdrHistogram(  # type: ignore[no-any-unimported]
            lowest_us, highest_us, significant_digits
        )

    def record_seconds(self, duration: float) -> bool:
        """Record a duration given in seconds.

        Values outside the trackable range are clamped to its bounds.

        Args:
            duration: Elapsed seconds of one request.

        Returns:
            True if the value was recorded.
        """
        value_us = int(duration * 1_000_000)
        value_us = max(self.lowest_us, min(value_us, self.highest_us))
        return bool(self._histogram.record_value(value_us))

    @property
    def total_count(self) -> int:
        """Return the number of recorded values."""
        return int(self._histogram.total_count)

    def percentile_ms(self, percentile: float) -> float:
        """Return the latency at ``percentile`` (0-100) in milliseconds.

        Returns 0.0 if nothing was recorded.
        """
        if self.total_count == 0:
            return 0.0
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    def summary(self) -> LatencySummary:
        """Return min/avg/percentiles/max of everything recorded so far."""
        if self.total_count == 0:
            return LatencySummary()
        return LatencySummary(
            min=self._histogram.get_min_value() / 1000.0,
            avg=self._histogram.get_mean_value() / 1000.0,
            p50=self.percentile_ms(50.0),
            p90=self.percentile_ms(90.0),
            p95=self.percentile_ms(95.0),
            p99=self.percentile_ms(99.0),
            max=self._histogram.get_max_value() / 1000.0,
        )
