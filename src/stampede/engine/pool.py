"""Fixed-size pool of worker tasks sharing one job stream and one sink."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from stampede._internal.logging import get_logger
from stampede.engine.worker import run_worker

if TYPE_CHECKING:
    from stampede.client.http_client import RequestClient
    from stampede.engine.cancellation import CancellationToken
    from stampede.engine.channels import ResultSink, TicketChannel

logger = get_logger("engine.pool")


class WorkerPool:
    """Runs ``size`` workers against the same channels, client and token.

    Workers that exit are not restarted. If the last worker finishes while
    at least one worker has crashed and the token is still live, the pool
    cancels the token itself so the aggregator stops waiting for results
    that cannot arrive.

    Attributes:
        size: Number of workers started by ``start()``.
    """

    def __init__(
        self,
        size: int,
        url: str,
        client: RequestClient,
        tickets: TicketChannel,
        results: ResultSink,
        token: CancellationToken,
    ) -> None:
        if size < 1:
            msg = f"pool size must be >= 1, got {size}"
            raise ValueError(msg)
        self.size = size
        self._url = url
        self._client = client
        self._tickets = tickets
        self._results = results
        self._token = token
        self._tasks: list[asyncio.Task[int]] = []
        self._failed = 0

    @property
    def running(self) -> int:
        """Return the number of workers that have not finished yet."""
        return sum(1 for t in self._tasks if not t.done())

    @property
    def failed(self) -> int:
        """Return the number of workers that exited with an error."""
        return self._failed

    def start(self) -> None:
        """Start all workers.

        Raises:
            RuntimeError: If the pool was already started.
        """
        if self._tasks:
            msg = "WorkerPool.start() called twice"
            raise RuntimeError(msg)

        for worker_id in range(self.size):
            task = asyncio.create_task(
                run_worker(
                    worker_id=worker_id,
                    url=self._url,
                    client=self._client,
                    tickets=self._tickets,
                    results=self._results,
                    token=self._token,
                ),
                name=f"worker-{worker_id}",
            )
            task.add_done_callback(self._on_worker_done)
            self._tasks.append(task)
        logger.debug("Started %d workers", self.size)

    async def join(self) -> int:
        """Wait until every worker has returned.

        Returns:
            Total number of tickets processed by the workers that finished
            normally.
        """
        if not self._tasks:
            return 0
        outcomes = await asyncio.gather(*self._tasks, return_exceptions=True)
        handled = sum(o for o in outcomes if isinstance(o, int))
        logger.debug("All %d workers joined, %d requests handled", self.size, handled)
        return handled

    async def abort(self, grace: float = 1.0) -> None:
        """Stop workers that are still running, interrupting in-flight requests.

        Workers exit on their own once the token is cancelled, interrupting
        their in-flight request. A worker still running after ``grace``
        seconds, e.g. stuck in a client that ignores cancellation, is
        cancelled without publishing a result.

        Args:
            grace: Seconds to wait before cancelling busy workers.
        """
        pending = [t for t in self._tasks if not t.done()]
        if not pending:
            return
        _done, still_running = await asyncio.wait(pending, timeout=grace)
        for task in still_running:
            task.cancel()
        if still_running:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.wait(still_running)
            logger.info("Cancelled %d in-flight workers", len(still_running))

    def _on_worker_done(self, task: asyncio.Task[int]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failed += 1
            logger.error("%s crashed: %r", task.get_name(), exc, exc_info=exc)

        # A crashed worker loses its ticket's result; stop the wait for it
        if self._failed and self.running == 0 and not self._token.cancelled:
            self._token.cancel("workers failed")
