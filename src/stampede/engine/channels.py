"""Ticket and result channels connecting the job source, workers and aggregator.

Both channels are pre-sized to the total number of requests, so neither the
job source nor the workers ever wait for free space. The queues themselves
are the only synchronization between tasks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from stampede._internal.errors import EngineError
from stampede._internal.logging import get_logger

if TYPE_CHECKING:
    from stampede.metrics.models import RequestResult

logger = get_logger("engine.channels")


@dataclass(frozen=True)
class Ticket:
    """One request to send. Claimed by exactly one worker.

    Attributes:
        index: Position of the ticket in the job stream, starting at 0.
    """

    index: int


class _Closed:
    """Marker placed in the ticket queue when no more tickets will come."""

    def __repr__(self) -> str:
        return "<closed>"


_CLOSED: Final = _Closed()


class TicketChannel:
    """Multi-consumer queue of tickets that can be closed.

    After ``close()`` the consumers drain the remaining tickets in FIFO
    order, then every ``get()`` returns None. The close marker is handed
    from consumer to consumer, so one marker wakes any number of them.

    Attributes:
        capacity: Number of tickets the channel holds without blocking.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        # One extra slot for the close marker
        self._queue: asyncio.Queue[Ticket | _Closed] = asyncio.Queue(maxsize=capacity + 1)
        self._closed = False

    @property
    def closed(self) -> bool:
        """Return True once the producer has closed the channel."""
        return self._closed

    def __len__(self) -> int:
        """Return the number of queued tickets."""
        size = self._queue.qsize()
        if self._closed and size:
            size -= 1
        return size

    def put(self, ticket: Ticket) -> None:
        """Enqueue a ticket without waiting.

        Raises:
            EngineError: If the channel is closed or already full.
        """
        if self._closed:
            msg = f"ticket {ticket.index} sent on a closed channel"
            raise EngineError(msg)
        try:
            self._queue.put_nowait(ticket)
        except asyncio.QueueFull:
            msg = f"ticket channel full (capacity {self.capacity})"
            raise EngineError(msg) from None

    def close(self) -> None:
        """Signal that no more tickets will be produced. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Ticket | None:
        """Wait for the next ticket.

        Returns:
            The next ticket, or None once the channel is closed and drained.
        """
        item = await self._queue.get()
        if isinstance(item, _Closed):
            # Pass the marker on to the next waiting consumer
            self._queue.put_nowait(item)
            return None
        return item


class JobSource:
    """Producer that fills a ticket channel with ``total`` tickets.

    Tickets are produced in increasing index order, after which the
    channel is closed. The producer runs as its own task so that it never
    depends on the pace of the workers.

    Attributes:
        total: Number of tickets to produce.
        channel: The channel the tickets are sent to.
    """

    def __init__(self, total: int) -> None:
        self.total = total
        self.channel = TicketChannel(capacity=total)
        self.produced = 0
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        """Start producing in a background task and return that task."""
        if self._task is None:
            self._task = asyncio.create_task(self.produce(), name="job-source")
        return self._task

    async def produce(self) -> None:
        """Send all tickets, then close the channel."""
        try:
            for index in range(self.total):
                self.channel.put(Ticket(index))
                self.produced += 1
        finally:
            self.channel.close()
        logger.debug("Job source produced %d tickets", self.produced)

    async def wait(self) -> None:
        """Wait for the producer task, if one was started."""
        if self._task is not None:
            await self._task


class ResultSink:
    """Single-consumer queue of request results.

    Sized to the number of expected results so ``put`` never waits.
    Publishing after ``close()`` is an integrity violation and raises.

    Attributes:
        capacity: Number of results the sink holds.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._queue: asyncio.Queue[RequestResult] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.published = 0

    @property
    def closed(self) -> bool:
        """Return True once the sink has been closed."""
        return self._closed

    def __len__(self) -> int:
        """Return the number of results waiting to be consumed."""
        return self._queue.qsize()

    def put(self, result: RequestResult) -> None:
        """Publish a result without waiting.

        Raises:
            EngineError: If the sink is closed or full.
        """
        if self._closed:
            msg = f"result for ticket {result.ticket} published after the sink was closed"
            raise EngineError(msg)
        try:
            self._queue.put_nowait(result)
        except asyncio.QueueFull:
            msg = f"result sink full (capacity {self.capacity})"
            raise EngineError(msg) from None
        self.published += 1

    async def get(self) -> RequestResult:
        """Wait for the next result in completion order."""
        return await self._queue.get()

    def get_nowait(self) -> RequestResult:
        """Return the next result if one is queued.

        Raises:
            asyncio.QueueEmpty: If no result is waiting.
        """
        return self._queue.get_nowait()

    def close(self) -> None:
        """Refuse further results. Idempotent."""
        if not self._closed:
            self._closed = True
            logger.debug("Result sink closed after %d results", self.published)
