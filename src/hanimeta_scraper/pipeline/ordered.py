"""Bounded, order-preserving concurrent map.

``ordered_fan_out`` runs ``worker`` over ``items`` with at most ``degree``
calls in flight.  Workers pull the next index from a shared queue and write
their result into a pre-sized list at that index, so the output follows the
input order whatever order the calls finish in.

A call that raises (or returns ``None``) leaves a hole that is dropped from
the output; the rest of the batch carries on.  Cancellation is never
swallowed: cancelling the caller cancels every worker.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


async def ordered_fan_out(
    items: Sequence[T],
    degree: int,
    worker: Callable[[T], Awaitable[R | None]],
) -> list[R]:
    """Apply ``worker`` to every item with bounded concurrency.

    Args:
        items: Inputs, in the order results should come back.
        degree: Maximum concurrent ``worker`` calls.  Values below 1 are
            treated as 1; never more workers than items are started.
        worker: Coroutine function producing a result or ``None``.

    Returns:
        Non-``None`` results in input order.
    """
    if not items:
        return []

    results: list[R | None] = [None] * len(items)
    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(items)):
        queue.put_nowait(index)

    async def drain() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await worker(items[index])
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                logger.warning("pipeline: item %d failed", index, exc_info=True)
                results[index] = None

    worker_count = min(max(degree, 1), len(items))
    async with asyncio.TaskGroup() as group:
        for _ in range(worker_count):
            group.create_task(drain())

    return [result for result in results if result is not None]
