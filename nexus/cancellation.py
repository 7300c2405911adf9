"""Per-turn cancellation token."""

import asyncio
from typing import Awaitable, Callable, TypeVar

from .errors import TurnCancelled

T = TypeVar("T")


class CancellationToken:
    """
    One-shot cancellation signal threaded through every suspend point of a turn.

    cancel() is idempotent. Callbacks registered after cancellation run
    immediately.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise TurnCancelled("Turn cancelled")


async def run_cancellable(coro: Awaitable[T], token: CancellationToken) -> T:
    """
    Await coro as a task that token.cancel() interrupts at its current await.

    Raises TurnCancelled if the token fired; the underlying task has been
    cancelled and fully unwound by then, so its context managers are closed.
    """
    task = asyncio.ensure_future(coro)
    remove = token.add_callback(task.cancel)
    try:
        return await task
    except asyncio.CancelledError:
        if not token.cancelled:
            raise
        raise TurnCancelled("Turn cancelled") from None
    finally:
        remove()
