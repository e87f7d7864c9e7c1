"""Bounded concurrent task queue."""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedTaskQueue(Generic[T, R]):
    """Runs an async worker over items with a fixed concurrency ceiling.

    ``run_all`` starts at most ``concurrency`` worker coroutines, each
    pulling the next pending item until none are left, and returns once
    every item has been processed. Completion order is not guaranteed;
    results come back in submission order.

    Workers report their own failures. An exception escaping a worker is
    logged and stored as that item's result; sibling items keep running.

    The queue can be reused: calling ``run_all`` again after it returned
    starts a new round with the same ceiling.

    Examples:
        >>> async def double(n):
        ...     return n * 2
        >>> queue = BoundedTaskQueue(double, concurrency=2)
        >>> asyncio.run(queue.run_all([1, 2, 3]))
        [2, 4, 6]
    """

    def __init__(
        self,
        worker: Callable[[T], Awaitable[R]],
        concurrency: int,
        name: str = "queue",
    ):
        """Initialize task queue.

        Args:
            worker: Coroutine function called once per item
            concurrency: Maximum number of concurrently running workers
            name: Name used in logs and status snapshots
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.worker = worker
        self.concurrency = concurrency
        self.name = name
        self.processed = 0
        self.peak_in_flight = 0
        self._in_flight: dict[int, T] = {}
        self._running = False

    @property
    def in_flight(self) -> list[T]:
        """Snapshot of the items currently being processed."""
        return list(self._in_flight.values())

    @property
    def running(self) -> bool:
        """Whether a round is in progress."""
        return self._running

    async def _run_item(self, index: int, item: T) -> Any:
        self._in_flight[index] = item
        self.peak_in_flight = max(self.peak_in_flight, len(self._in_flight))
        try:
            return await self.worker(item)
        except Exception as e:
            logger.exception("%s: worker failed for %r", self.name, item)
            return e
        finally:
            del self._in_flight[index]
            self.processed += 1

    async def run_all(self, items: Iterable[T]) -> list[Optional[R]]:
        """Process every item and wait for all of them to finish.

        Args:
            items: Finite sequence of items

        Returns:
            Worker results in submission order (an exception instance for
            items whose worker raised)

        Raises:
            RuntimeError: If a round is already running on this queue
        """
        if self._running:
            raise RuntimeError(f"{self.name}: run_all is already in progress")

        pending = list(items)
        results: list[Any] = [None] * len(pending)
        if not pending:
            return results

        self._running = True
        iterator = iter(enumerate(pending))

        async def runner() -> None:
            for index, item in iterator:
                results[index] = await self._run_item(index, item)

        workers = min(self.concurrency, len(pending))
        logger.debug(
            "%s: processing %d item(s) with %d worker(s)",
            self.name,
            len(pending),
            workers,
        )
        try:
            await asyncio.gather(*(runner() for _ in range(workers)))
        finally:
            self._running = False

        logger.debug("%s: drained", self.name)
        return results
