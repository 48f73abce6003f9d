"""Single-consumer aggregation of request results into a report.

The ``ReportAggregator`` is the only reader of the result sink and the only
writer of the ``Report`` it builds, so its counters need no locking.
Results arrive in completion order; every counter is order-independent.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from typing import TYPE_CHECKING

from stampede._internal.logging import get_logger
from stampede.metrics.histogram import HdrHistogramWrapper
from stampede.metrics.models import ERROR_STATUS, SUCCESS_STATUS, Report

if TYPE_CHECKING:
    from collections.abc import Callable

    from stampede.engine.cancellation import CancellationToken
    from stampede.engine.channels import ResultSink
    from stampede.metrics.models import RequestResult

logger = get_logger("metrics.aggregator")


def log_progress(completed: int, total: int) -> None:
    """Default progress callback: log a ``Progress: X/Y`` line."""
    logger.info(
        "Progress: %d/%d requests completed",
        completed,
        total,
        extra={"completed": completed, "total": total},
    )


class ReportAggregator:
    """Counts results and builds the final ``Report``.

    Attributes:
        expected: Number of results the run will produce.
        progress_interval: Notify progress every N results (and on the last).
    """

    def __init__(
        self,
        url: str,
        expected: int,
        concurrency: int,
        *,
        progress_interval: int = 100,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        """Initialize an empty aggregation.

        Args:
            url: Target URL, copied into the report.
            expected: Number of results to drain.
            concurrency: Effective worker count, copied into the report.
            progress_interval: Notify progress every N completed results.
            on_progress: Callback receiving ``(completed, expected)``.
                Defaults to logging a progress line.
        """
        self.expected = expected
        self.progress_interval = progress_interval
        self._on_progress = on_progress or log_progress
        self._histogram = HdrHistogramWrapper()
        self._status_codes: Counter[int] = Counter()
        self._errors_by_type: Counter[str] = Counter()
        self._report = Report(url=url, expected_requests=expected, concurrency=concurrency)
        self._finalized = False

    @property
    def completed(self) -> int:
        """Return the number of results recorded so far."""
        return self._report.total_requests

    def record(self, result: RequestResult) -> None:
        """Fold one result into the running counters.

        Raises:
            RuntimeError: If the report was already finalized.
        """
        if self._finalized:
            msg = "cannot record results into a finalized report"
            raise RuntimeError(msg)

        report = self._report
        report.total_requests += 1

        if result.failed:
            self._status_codes[ERROR_STATUS] += 1
            self._errors_by_type[result.error_type or "Error"] += 1
        else:
            self._status_codes[result.status_code] += 1
            if result.status_code == SUCCESS_STATUS:
                report.success_requests += 1

        self._histogram.record_seconds(result.duration)

        completed = report.total_requests
        if completed % self.progress_interval == 0 or completed == self.expected:
            self._on_progress(completed, self.expected)

    async def drain(self, sink: ResultSink, token: CancellationToken) -> bool:
        """Consume results until ``expected`` have arrived or the token fires.

        Args:
            sink: Result sink to read from.
            token: Cancellation token; cancelling it ends the drain early.

        Returns:
            True if every expected result was recorded, False if the drain
            was cut short by cancellation.
        """
        cancelled = asyncio.ensure_future(token.wait())
        try:
            while self.completed < self.expected:
                next_result = asyncio.ensure_future(sink.get())
                await asyncio.wait(
                    {next_result, cancelled},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if next_result.done():
                    self.record(next_result.result())
                    continue
                next_result.cancel()
                logger.warning(
                    "Run cancelled (%s) after %d/%d results",
                    token.reason,
                    self.completed,
                    self.expected,
                )
                return False
        finally:
            cancelled.cancel()
        return True

    def drain_pending(self, sink: ResultSink) -> int:
        """Record results already sitting in the sink without waiting.

        Returns:
            Number of results recorded.
        """
        drained = 0
        while len(sink) and self.completed < self.expected:
            self.record(sink.get_nowait())
            drained += 1
        return drained

    def finalize(self, total_time: float, *, aborted: bool = False) -> Report:
        """Freeze the counters into the report and return it.

        Args:
            total_time: Wall-clock seconds since dispatch started.
            aborted: Whether the run ended before all results arrived.

        Returns:
            The finished report. Later calls return the same object.
        """
        if self._finalized:
            return self._report

        report = self._report
        report.total_time = total_time
        report.status_codes = dict(sorted(self._status_codes.items()))
        report.errors_by_type = dict(self._errors_by_type.most_common())
        report.latency = self._histogram.summary()
        report.aborted = aborted
        self._finalized = True
        return report
