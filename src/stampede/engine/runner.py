"""Top-level load test orchestration.

``run_load_test`` wires the job source, the worker pool, the result sink and
the aggregator together for one run. The HTTP client is injected, so the
whole engine can be exercised with a fake client. ``LoadTestRunner`` is the
blocking entry point used by the CLI: it owns the event loop, logging and
signal handling.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import TYPE_CHECKING, Any

from stampede._internal.errors import EngineError
from stampede._internal.logging import get_logger, setup_logging
from stampede.client.http_client import HttpClient
from stampede.engine.cancellation import CancellationToken
from stampede.engine.channels import JobSource, ResultSink
from stampede.engine.pool import WorkerPool
from stampede.metrics.aggregator import ReportAggregator

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from stampede._internal.config import RunConfig
    from stampede.client.http_client import RequestClient
    from stampede.metrics.models import Report

logger = get_logger("engine.runner")


async def run_load_test(
    config: RunConfig,
    client: RequestClient | None = None,
    *,
    on_progress: Callable[[int, int], None] | None = None,
    token: CancellationToken | None = None,
) -> Report:
    """Send ``config.requests`` GET requests and aggregate their outcomes.

    Args:
        config: Validated run configuration.
        client: Client used by every worker. When omitted, an ``HttpClient``
            with ``config.timeout`` and a connection limit of
            ``config.concurrency`` is created for the run.
        on_progress: Callback receiving ``(completed, total)`` every
            ``config.progress_interval`` results and on the last one.
        token: Cancellation token. Cancelling it from outside aborts the
            run; the report then only counts the results collected so far.

    Returns:
        The finished report.

    Raises:
        EngineError: If the orchestration itself fails.
    """
    if client is None:
        async with HttpClient(timeout=config.timeout, limit=config.concurrency) as http:
            return await _dispatch(config, http, on_progress, token or CancellationToken())
    return await _dispatch(config, client, on_progress, token or CancellationToken())


async def _dispatch(
    config: RunConfig,
    client: RequestClient,
    on_progress: Callable[[int, int], None] | None,
    token: CancellationToken,
) -> Report:
    source = JobSource(config.requests)
    sink = ResultSink(capacity=config.requests)
    pool = WorkerPool(
        size=config.concurrency,
        url=config.url,
        client=client,
        tickets=source.channel,
        results=sink,
        token=token,
    )
    aggregator = ReportAggregator(
        url=config.url,
        expected=config.requests,
        concurrency=config.concurrency,
        progress_interval=config.progress_interval,
        on_progress=on_progress,
    )

    logger.info(
        "Starting load test: url=%s, requests=%d, concurrency=%d, timeout=%.1fs",
        config.url,
        config.requests,
        config.concurrency,
        config.timeout,
    )

    pool.start()
    start = time.monotonic()
    source.start()

    completed = False
    try:
        completed = await aggregator.drain(sink, token)
    except Exception as exc:
        logger.exception("Load test failed")
        raise EngineError("Load test failed") from exc
    finally:
        total_time = time.monotonic() - start
        # Shutdown order: cancel, stop workers, then close the sink
        token.cancel("all results collected" if completed else "aborted")
        if not completed:
            await pool.abort()
        await pool.join()
        await source.wait()
        sink.close()

    if not completed:
        aggregator.drain_pending(sink)
    report = aggregator.finalize(total_time, aborted=not completed)

    logger.info(
        "Load test %s: duration=%.2fs, requests=%d, success=%d, rps=%.1f, p95=%.1fms",
        "aborted" if report.aborted else "completed",
        report.total_time,
        report.total_requests,
        report.success_requests,
        report.requests_per_second,
        report.latency.p95,
    )
    return report


def _run_event_loop(main: Coroutine[Any, Any, Report]) -> Report:
    """Run ``main`` to completion, on uvloop except on Windows."""
    if sys.platform == "win32":
        return asyncio.run(main)

    import uvloop

    return uvloop.run(main)


class LoadTestRunner:
    """Blocking runner for a single load test.

    Sets up logging, installs SIGINT/SIGTERM handlers that cancel the run,
    and drives ``run_load_test`` on its own event loop.

    Attributes:
        config: The validated run configuration.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        client: RequestClient | None = None,
        on_progress: Callable[[int, int], None] | None = None,
        log_level: int = logging.INFO,
        json_logs: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Validated run configuration.
            client: Optional client override; see ``run_load_test``.
            on_progress: Optional progress callback.
            log_level: Logging level (default: logging.INFO).
            json_logs: Emit logs as JSON lines.
        """
        self.config = config
        self._client = client
        self._on_progress = on_progress
        self._log_level = log_level
        self._json_logs = json_logs
        self._token: CancellationToken | None = None

    @property
    def interrupted(self) -> bool:
        """Return True if the last run was stopped by a signal."""
        return self._token is not None and self._token.reason == "interrupted"

    def run(self) -> Report:
        """Execute the load test and return its report.

        Blocks until every request has completed or a stop signal
        (SIGINT/SIGTERM) is received.

        Raises:
            EngineError: If the test fails to execute.
        """
        setup_logging(level=self._log_level, json_format=self._json_logs)
        return _run_event_loop(self._run())

    async def _run(self) -> Report:
        self._token = CancellationToken()
        self._install_signal_handlers(self._token)
        try:
            return await run_load_test(
                self.config,
                self._client,
                on_progress=self._on_progress,
                token=self._token,
            )
        finally:
            self._remove_signal_handlers()

    def _install_signal_handlers(self, token: CancellationToken) -> None:
        """Route SIGINT and SIGTERM to the cancellation token."""

        def _signal_handler() -> None:
            logger.info("Signal received, stopping workers")
            token.cancel("interrupted")

        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
            signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())

    def _remove_signal_handlers(self) -> None:
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
