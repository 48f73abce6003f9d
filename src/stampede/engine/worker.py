"""Worker loop: claim a ticket, send one GET, publish one result."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from stampede._internal.errors import RequestBuildError
from stampede._internal.logging import get_logger
from stampede.client.http_client import TRANSPORT_ERRORS, build_get_request
from stampede.metrics.models import ERROR_STATUS, RequestResult

if TYPE_CHECKING:
    from stampede.client.http_client import RequestClient
    from stampede.engine.cancellation import CancellationToken
    from stampede.engine.channels import ResultSink, Ticket, TicketChannel

logger = get_logger("engine.worker")


async def run_worker(
    worker_id: int,
    url: str,
    client: RequestClient,
    tickets: TicketChannel,
    results: ResultSink,
    token: CancellationToken,
) -> int:
    """Process tickets until the channel is exhausted or the token is cancelled.

    Each claimed ticket produces exactly one result, failed and interrupted
    requests included, so the aggregator can always count on one result per
    ticket.

    Args:
        worker_id: Identifier used in logs.
        url: Target URL for every request.
        client: Shared client sending the requests.
        tickets: Channel to claim tickets from.
        results: Sink receiving one result per ticket.
        token: Shared cancellation token.

    Returns:
        Number of tickets this worker processed.
    """
    handled = 0
    while True:
        ticket = await _claim_ticket(tickets, token)
        if ticket is None:
            break
        results.put(await _send(worker_id, url, client, ticket, token))
        handled += 1

    logger.debug("Worker %d exiting after %d requests", worker_id, handled)
    return handled


async def _claim_ticket(tickets: TicketChannel, token: CancellationToken) -> Ticket | None:
    """Race the next ticket against cancellation.

    A ticket dequeued in the same loop turn the token fires is still
    returned, so that it yields a result.

    Returns:
        The claimed ticket, or None if the token was cancelled or the
        channel is closed and drained.
    """
    if token.cancelled:
        return None

    next_ticket = asyncio.ensure_future(tickets.get())
    cancelled = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({next_ticket, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # A pending Queue.get leaves its item in the queue when cancelled
        for waiter in (next_ticket, cancelled):
            if not waiter.done():
                waiter.cancel()

    if next_ticket.done() and not next_ticket.cancelled():
        return next_ticket.result()
    return None


async def _send(
    worker_id: int,
    url: str,
    client: RequestClient,
    ticket: Ticket,
    token: CancellationToken,
) -> RequestResult:
    """Send the request for one ticket and describe its outcome.

    The request is raced against the token: once the run is cancelled an
    in-flight request is interrupted and reported as a ``Cancelled`` error.
    """
    start = time.monotonic()

    try:
        target = build_get_request(url)
    except RequestBuildError as exc:
        return RequestResult(
            status_code=ERROR_STATUS,
            duration=time.monotonic() - start,
            error=_describe(exc),
            ticket=ticket.index,
        )

    request = asyncio.ensure_future(client.get(target))
    cancelled = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not request.done():
            request.cancel()
            # Let the client unwind before the result is published
            await asyncio.wait({request})

    if request.cancelled():
        logger.debug("Request %d interrupted on worker %d", ticket.index, worker_id)
        return RequestResult(
            status_code=ERROR_STATUS,
            duration=time.monotonic() - start,
            error=f"Cancelled: {token.reason or 'run cancelled'}",
            ticket=ticket.index,
        )

    exc = request.exception()
    if exc is None:
        return RequestResult(
            status_code=request.result(),
            duration=time.monotonic() - start,
            ticket=ticket.index,
        )

    if isinstance(exc, TRANSPORT_ERRORS):
        logger.debug("Request %d failed on worker %d: %r", ticket.index, worker_id, exc)
        error = _describe(exc)
    else:
        logger.debug(
            "Request %d raised on worker %d",
            ticket.index,
            worker_id,
            exc_info=exc,
        )
        error = _describe(exc)

    return RequestResult(
        status_code=ERROR_STATUS,
        duration=time.monotonic() - start,
        error=error,
        ticket=ticket.index,
    )


def _describe(exc: BaseException) -> str:
    """Format an exception as ``"<Type>: <message>"``."""
    message = str(exc) or "no details"
    return f"{type(exc).__name__}: {message}"
