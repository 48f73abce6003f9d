"""Result and report dataclasses for Stampede."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = [
    "ERROR_STATUS",
    "SUCCESS_STATUS",
    "LatencySummary",
    "Report",
    "RequestResult",
]

# Status code recorded when no HTTP response was obtained.
ERROR_STATUS = 0
SUCCESS_STATUS = 200


@dataclass(frozen=True)
class RequestResult:
    """Outcome of one dispatched request.

    Created by a worker, handed to the result sink and consumed by the
    aggregator. Never mutated.

    Attributes:
        status_code: HTTP status code, or ``ERROR_STATUS`` (0) when the
            request could not be built or no response was received.
        duration: Elapsed seconds for this request.
        error: ``"<ExceptionType>: <message>"`` when ``status_code`` is 0,
            None otherwise.
        ticket: Index of the ticket that produced this result.
    """

    status_code: int
    duration: float
    error: str | None = None
    ticket: int = -1

    @property
    def failed(self) -> bool:
        """Return True if no HTTP response was obtained."""
        return self.error is not None

    @property
    def error_type(self) -> str | None:
        """Return the exception type name from ``error``, if any."""
        if self.error is None:
            return None
        return self.error.split(":", 1)[0].strip()


@dataclass(frozen=True)
class LatencySummary:
    """Latency distribution of a run, in milliseconds."""

    min: float = 0.0
    avg: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    max: float = 0.0


@dataclass
class Report:
    """Aggregate statistics of a load test run.

    Built incrementally by the aggregator (the only writer) and handed to
    the renderer once finalized.

    Attributes:
        url: Target URL of the run.
        expected_requests: Number of requests the run was configured for.
        concurrency: Effective worker count.
        total_time: Wall-clock seconds from dispatch start to last result.
        total_requests: Number of results processed.
        success_requests: Number of results with status 200.
        status_codes: Occurrences per status code; 0 counts errors.
        errors_by_type: Occurrences per exception type for status-0 results.
        latency: Latency distribution over all processed results.
        aborted: True if the run was cancelled before all results arrived.
    """

    url: str = ""
    expected_requests: int = 0
    concurrency: int = 0
    total_time: float = 0.0
    total_requests: int = 0
    success_requests: int = 0
    status_codes: dict[int, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)
    latency: LatencySummary = field(default_factory=LatencySummary)
    aborted: bool = False

    @property
    def error_count(self) -> int:
        """Return the number of requests that got no HTTP response."""
        return self.status_codes.get(ERROR_STATUS, 0)

    @property
    def success_rate(self) -> float:
        """Return the percentage of requests answered with status 200."""
        if self.total_requests == 0:
            return 0.0
        return self.success_requests / self.total_requests * 100

    @property
    def requests_per_second(self) -> float:
        """Return throughput over the whole run."""
        if self.total_time <= 0:
            return 0.0
        return self.total_requests / self.total_time

    def status_percentages(self) -> dict[int, float]:
        """Return each status code's share of all requests, in percent.

        Codes are sorted ascending, so errors (0) come first.
        """
        if self.total_requests == 0:
            return {}
        return {
            code: count / self.total_requests * 100
            for code, count in sorted(self.status_codes.items())
        }
