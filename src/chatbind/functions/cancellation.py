"""Cooperative cancellation shared between callers and dispatched functions."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable


class CancellationToken:
    """Thread-safe, cooperative cancellation signal.

    A function registered for dispatch may declare a parameter annotated with
    ``CancellationToken``; the dispatcher binds the caller's token to it instead
    of looking the parameter up in the call arguments. Cancelling the token never
    stops running code by force, it only notifies whoever observes it.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a fresh token that nobody else holds, so it never cancels."""
        return cls()

    @property
    def cancelled(self) -> bool:
        """Whether ``cancel`` has been called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> bool:
        """Forget a pending *callback*; return False if it was not registered."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                return False
            return True

    def raise_if_cancelled(self) -> None:
        """Raise ``asyncio.CancelledError`` if the token has been cancelled."""
        if self.cancelled:
            raise asyncio.CancelledError("Operation was cancelled")

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            if not waiter.done():
                waiter.set_result(None)

        def _schedule_wake() -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake)

        self.add_callback(_schedule_wake)
        try:
            await waiter
        finally:
            self.remove_callback(_schedule_wake)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"
