"""
Explicit cancellation handles for asynchronous generation calls.

Each in-flight call gets its own token. Cancelling the token wakes
anything awaiting through ``guard`` and cancels the wrapped task, so a
superseded call resolves to ``OperationCancelled`` instead of a result.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from lexify.domain.errors import OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    def __init__(self, label: str = ""):
        self.label = label
        self.reason: str | None = None
        self._event = asyncio.Event()

    def __repr__(self) -> str:
        status = f"cancelled:{self.reason}" if self.cancelled else "active"
        return f"CancellationToken({self.label!r}, {status})"

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Fire the token. Later calls keep the first reason."""
        if self.cancelled:
            return
        self.reason = reason
        self._event.set()
        logger.debug(f"Cancelled {self.label or 'token'}: {reason}")

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled(self.reason or "cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await *awaitable* unless the token fires first.

        Raises:
            OperationCancelled: If the token fired before or while waiting.
                A result that arrives after cancellation is discarded.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelled(self.reason or "cancelled")

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        waiter.cancel()
        if self.cancelled:
            if task.done():
                if not task.cancelled():
                    task.exception()  # mark retrieved
            else:
                task.cancel()
            raise OperationCancelled(self.reason or "cancelled")
        return task.result()
