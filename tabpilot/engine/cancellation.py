"""Cooperative cancellation tokens shared by the completion engine."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

CancelCallback = Callable[[], None]

LOG = logging.getLogger(__name__)


class CancellationToken:
    """Flag plus callbacks that fire once when the token is cancelled.

    Tokens are bound to the event loop thread; ``cancel`` runs callbacks
    synchronously in registration order.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[CancelCallback] = []

    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Trigger the token. Repeated calls are no-ops."""

        if self._cancelled:
            return
        self._cancelled = True
        callbacks = tuple(self._callbacks)
        self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOG.exception("Cancellation callback failed")

    def on_cancel(self, callback: CancelCallback) -> Callable[[], None]:
        """Register a callback; returns an unsubscribe handle."""

        if self._cancelled:
            callback()
            return _noop
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancellationToken {state}>"


async def run_until_cancelled(
    awaitable: Awaitable[T],
    token: CancellationToken,
    *,
    timeout: float | None = None,
) -> T | None:
    """Await ``awaitable`` unless the token fires first.

    The awaitable runs as a task that is cancelled as soon as the token is,
    so the underlying I/O is aborted rather than ignored. Returns ``None``
    when the token wins, raises ``asyncio.TimeoutError`` when ``timeout``
    elapses first, and re-raises whatever the awaitable raised.
    """

    task = asyncio.ensure_future(awaitable)
    unsubscribe = token.on_cancel(task.cancel)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            raise asyncio.TimeoutError()
        if task.cancelled():
            return None
        return task.result()
    finally:
        unsubscribe()
        if not task.done():
            task.cancel()


def _noop() -> None:
    return None


__all__ = ["CancelCallback", "CancellationToken", "run_until_cancelled"]
