"""
Bounded producer/consumer channel.

A Channel connects one producer coroutine (run as its own task) to one
consumer iterating with `async for`. The queue is bounded, so a slow
consumer applies backpressure to the producer.

With acknowledge=True, send() only returns once the consumer has come
back for the next item. The producer therefore never runs ahead of what
the consumer has handled, and anything the consumer does in reaction to
an item (for example cancelling a token) is visible to the producer's
next check.

Usage:
    async def produce(channel: Channel[str]) -> None:
        await channel.send("a")
        await channel.send("b")

    channel = Channel.start(produce, maxsize=8)
    async with channel:
        async for item in channel:
            print(item)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class ChannelClosedError(Exception):
    """Raised when sending on a channel that has been closed."""

    pass


class Channel(Generic[T]):
    """Single-producer, single-consumer bounded channel."""

    def __init__(self, maxsize: int = 32, *, acknowledge: bool = False) -> None:
        if maxsize < 1:
            raise ValueError("Channel maxsize must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._acknowledge = acknowledge
        self._closed = False
        self._end_queued = False
        self._exhausted = False
        self._unacknowledged = False
        self._error: BaseException | None = None
        self._producer: asyncio.Task | None = None

    @classmethod
    def start(
        cls,
        producer: Callable[[Channel[T]], Awaitable[None]],
        *,
        maxsize: int = 32,
        acknowledge: bool = False,
        name: str | None = None,
    ) -> Channel[T]:
        """
        Create a channel and run `producer(channel)` as a task.

        The channel is closed when the producer returns or is cancelled.
        If the producer raises, the consumer sees the exception after the
        items sent so far.
        Must be called from a running event loop.
        """
        channel: Channel[T] = cls(maxsize, acknowledge=acknowledge)
        channel._producer = asyncio.create_task(channel._run(producer), name=name)
        return channel

    async def _run(self, producer: Callable[[Channel[T]], Awaitable[None]]) -> None:
        try:
            await producer(self)
        except asyncio.CancelledError:
            logger.debug("[channel] Producer cancelled")
            raise
        except Exception as e:
            logger.error(f"[channel] Producer failed: {e}", exc_info=True)
            self._error = e
        finally:
            # Even a cancelled producer ends the stream for its consumer
            self._mark_closed()

    def _mark_closed(self) -> None:
        self._closed = True
        if self._end_queued:
            return
        try:
            self._queue.put_nowait(_CLOSED)
            self._end_queued = True
        except asyncio.QueueFull:
            # Queued by the consumer once it frees a slot
            pass

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def producer(self) -> asyncio.Task | None:
        """The producer task, when the channel was created with start()."""
        return self._producer

    async def send(self, item: T) -> None:
        """
        Push an item, waiting while the channel is full.

        Raises:
            ChannelClosedError: If the channel was already closed
        """
        if self._closed:
            raise ChannelClosedError("send on closed channel")
        await self._queue.put(item)
        if self._acknowledge:
            await self._queue.join()

    async def close(self) -> None:
        """Mark the end of the stream. Idempotent."""
        self._mark_closed()

    async def aclose(self) -> None:
        """Stop consuming: cancel the producer task and discard the rest."""
        self._exhausted = True
        task = self._producer
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def __aiter__(self) -> Channel[T]:
        return self

    async def __anext__(self) -> T:
        if self._unacknowledged:
            self._unacknowledged = False
            self._queue.task_done()

        if self._exhausted:
            raise StopAsyncIteration

        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.task_done()
            self._exhausted = True
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration

        if self._closed and not self._end_queued:
            self._mark_closed()

        self._unacknowledged = True
        return item

    async def collect(self) -> list[T]:
        """Drain the channel into a list."""
        return [item async for item in self]

    async def __aenter__(self) -> Channel[T]:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
