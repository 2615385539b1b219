"""A keyed work queue with delayed scheduling, rate limiting and retries.

The queue is driven by asyncio: ``run`` starts workers that take keys off the
queue once they are due and hand them to the handler. It is meant to be used
from a single event loop thread.
"""

from __future__ import annotations

import asyncio
import bisect
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from .log import get_logger, with_logger
from .ratelimit import RateLimiter

MAX_RETRIES = 20
"""Number of attempts after which the default policy gives up on a key."""

ItemHandler = Callable[[str], Union[Awaitable[None], None]]
ShouldRetryFunc = Callable[[str, int, float, BaseException], Optional[float]]


class RetriesExhaustedError(Exception):
    """Raised by the default retry policy once a key has failed too often."""


def default_retry_func(
    key: str, times_tried: int, originally_added: float, err: BaseException
) -> Optional[float]:
    """Retry with the rate limiter's delay until MAX_RETRIES attempts were made."""
    if times_tried < MAX_RETRIES:
        return None
    raise RetriesExhaustedError(f"maximum retries ({MAX_RETRIES}) reached: {err}") from err


@dataclass(eq=False)
class _QueueItem:
    key: str
    planned: float
    originally_added: float
    redirtied_at: Optional[float] = None
    redirtied_with_ratelimit: bool = False
    forget: bool = False
    requeues: int = 0
    added_via_redirty: bool = False
    delayed_via_rate_limit: Optional[float] = None

    def __str__(self) -> str:
        return f"<plannedToStartWorkAt:{self.planned} key: {self.key}>"


def _planned(item: _QueueItem) -> float:
    return item.planned


class Queue:
    """Work queue of string keys, ordered by the time work may start on them.

    A key is held at most once; enqueueing it again can only bring its start
    time forward. A key enqueued while being processed is queued again once
    processing finishes. Failed keys are retried as *retry_func* decides.
    """

    def __init__(
        self,
        ratelimiter: RateLimiter,
        name: str,
        handler: ItemHandler,
        retry_func: Optional[ShouldRetryFunc] = None,
    ) -> None:
        self.clock: Callable[[], float] = time.monotonic
        self.name = name
        self.ratelimiter = ratelimiter
        self.handler = handler
        self.retry_func: ShouldRetryFunc = retry_func or default_retry_func
        self._running = False
        self._items: list[_QueueItem] = []
        self._in_queue: dict[str, _QueueItem] = {}
        self._processing: dict[str, _QueueItem] = {}
        self._next_item_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()

    def enqueue(self, key: str) -> None:
        """Enqueue *key* with the delay the rate limiter asks for."""
        self._insert(key, True, None)

    def enqueue_without_rate_limit(self, key: str) -> None:
        """Enqueue *key* for immediate processing."""
        self._insert(key, False, None)

    def enqueue_without_rate_limit_with_delay(self, key: str, after: float) -> None:
        """Enqueue *key* so that work starts no sooner than *after* seconds."""
        self._insert(key, False, after)

    def forget(self, key: str) -> None:
        """Drop *key* from the queue, or stop it being retried if in progress."""
        item = self._in_queue.pop(key, None)
        if item is not None:
            self._items.remove(item)
            return
        item = self._processing.get(key)
        if item is not None:
            item.forget = True

    def _check_consistency(self) -> None:
        if len(self._items) != len(self._in_queue):
            raise RuntimeError("Internally inconsistent state")

    def empty(self) -> bool:
        """Whether nothing is queued or being processed."""
        return len(self) == 0

    def __len__(self) -> int:
        self._check_consistency()
        return len(self._items) + len(self._processing)

    def unprocessed_len(self) -> int:
        """Number of keys waiting to be processed."""
        self._check_consistency()
        return len(self._in_queue)

    def items_being_processed_len(self) -> int:
        """Number of keys a worker is currently handling."""
        return len(self._processing)

    def _place(self, item: _QueueItem) -> None:
        index = bisect.bisect_left(self._items, item.planned, key=_planned)
        self._items.insert(index, item)

    def _adjust_position(self, item: _QueueItem, when: float) -> None:
        if when > item.planned:
            return
        item.planned = when
        self._items.remove(item)
        self._place(item)

    def _insert(self, key: str, ratelimit: bool, delay: Optional[float]) -> _QueueItem:
        """Schedule *key*, bringing an existing schedule forward but never back.

        With *ratelimit*, the rate limiter's delay is used unless *delay* is
        given; without it, a missing *delay* means no delay.
        """
        try:
            item = self._processing.get(key)
            if item is not None:
                when = self.clock() + (delay or 0.0)
                if item.redirtied_at is None or when < item.redirtied_at:
                    item.redirtied_at = when
                    item.redirtied_with_ratelimit = ratelimit
                item.forget = False
                return item

            item = self._in_queue.get(key)
            if item is not None:
                self._adjust_position(item, self.clock() + (delay or 0.0))
                return item

            now = self.clock()
            item = _QueueItem(key=key, planned=now, originally_added=now)
            if ratelimit:
                actual = self.ratelimiter.when(key)
                if delay is not None:
                    actual = delay
                item.planned = now + actual
                item.delayed_via_rate_limit = actual
            else:
                item.planned = now + (delay or 0.0)
            self._place(item)
            self._in_queue[key] = item
            return item
        finally:
            self._wakeup.set()

    async def run(self, workers: int) -> None:
        """Process keys with *workers* concurrent workers until cancelled."""
        if workers <= 0:
            raise ValueError(f"Workers must be greater than 0, got: {workers}")
        if self._running:
            raise RuntimeError(f"Queue {self.name} is already running")
        self._running = True
        tasks = [asyncio.create_task(self._worker(index)) for index in range(workers)]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self._running = False

    async def _worker(self, index: int) -> None:
        logger = get_logger().with_fields({"workerId": index, "queue": self.name})
        with with_logger(logger):
            while await self.handle_queue_item():
                pass

    async def _get_next_item(self) -> _QueueItem:
        async with self._next_item_lock:
            while True:
                if not self._items:
                    await self._wakeup.wait()
                    self._wakeup.clear()
                    continue
                item = self._items[0]
                remaining = item.planned - self.clock()
                if remaining <= 0:
                    del self._items[0]
                    del self._in_queue[item.key]
                    self._processing[item.key] = item
                    return item
                try:
                    await asyncio.wait_for(self._wakeup.wait(), remaining)
                except asyncio.TimeoutError:
                    continue
                self._wakeup.clear()

    async def handle_queue_item(self) -> bool:
        """Wait for the next due key and handle it.

        Returns True once a key has been handled, whether or not the handler
        succeeded; cancellation while waiting propagates.
        """
        item = await self._get_next_item()
        logger = get_logger().with_field("key", item.key)
        with with_logger(logger):
            logger.debug("Got Queue object")
            try:
                await self._handle_item(item)
            except Exception as exc:
                logger.with_error(exc).error("Error processing Queue item")
                return True
            logger.debug("Processed Queue item")
        return True

    async def _handle_item(self, item: _QueueItem) -> None:
        failure: Optional[BaseException] = None
        cancelled: Optional[asyncio.CancelledError] = None
        try:
            result = self.handler(item.key)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError as exc:
            failure = cancelled = exc
        except Exception as exc:
            failure = exc
        try:
            self._finish(item, failure)
        finally:
            if cancelled is not None:
                raise cancelled

    def _finish(self, item: _QueueItem, failure: Optional[BaseException]) -> None:
        key = item.key
        del self._processing[key]
        logger = get_logger()

        if item.forget:
            self.ratelimiter.forget(key)
            if failure is not None:
                logger = logger.with_error(failure)
            logger.warnf('forgetting "%s" as told to forget while in progress', key)
            return

        final: Optional[Exception] = None
        if failure is not None:
            try:
                delay = self.retry_func(key, item.requeues + 1, item.originally_added, failure)
            except Exception as retry_exc:
                prefix = (
                    "temporarily (requeued) forgetting"
                    if item.redirtied_at is not None
                    else "forgetting"
                )
                final = RuntimeError(f'{prefix} "{key}" due to: {retry_exc}')
                final.__cause__ = retry_exc
            else:
                logger.with_error(failure).warnf('requeuing "%s" due to failed sync', key)
                requeued = self._insert(key, True, delay)
                requeued.requeues = item.requeues + 1
                requeued.originally_added = item.originally_added
                return

        self.ratelimiter.forget(key)
        if item.redirtied_at is not None:
            delay = item.redirtied_at - self.clock()
            redirtied = self._insert(key, item.redirtied_with_ratelimit, delay)
            redirtied.added_via_redirty = True

        if final is not None:
            raise final

    def __str__(self) -> str:
        return f"<items:[{' '.join(str(item) for item in self._items)}]>"