"""
Cooperative cancellation.

A CancellationToken is created by the caller of an agent invocation and
threaded through the model gateway and the agent loop. Signalling it never
interrupts running code directly: components check it at their suspension
points, and guard() races an in-flight awaitable (such as an HTTP request)
against it.

Usage:
    token = CancellationToken()
    loop.add_signal_handler(signal.SIGINT, token.cancel)

    try:
        response = await token.guard(client.post(url, json=body))
    except OperationCancelledError:
        ...
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationCancelledError(Exception):
    """Raised when work is abandoned because its token was cancelled."""

    def __init__(self, message: str = "Operation cancelled"):
        super().__init__(message)


class CancellationToken:
    """
    Advisory abort signal.

    Once cancelled, a token stays cancelled. It may be signalled from
    any coroutine or callback running on the event loop.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason = ""

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "") -> None:
        """Signal cancellation. Idempotent."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.debug(f"[cancellation] Token cancelled{f': {reason}' if reason else ''}")

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has fired."""
        if self._event.is_set():
            raise OperationCancelledError()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the token fires first.

        If the token fires first, the awaitable is cancelled and
        OperationCancelledError is raised. If the awaitable finishes
        first its result (or exception) is returned as usual.
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
            raise OperationCancelledError()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
        raise OperationCancelledError()

    def __repr__(self) -> str:
        return f"<CancellationToken cancelled={self.cancelled}>"
