"""Async debounce gate used before every completion request."""

from __future__ import annotations

import asyncio
import logging

from .cancellation import CancellationToken

LOG = logging.getLogger(__name__)


class Debouncer:
    """Lets only the most recent caller through once input has settled.

    Each ``wait_or_skip`` call supersedes the previous one: the earlier
    caller resolves ``True`` (skip) straight away and its timer is cleared.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._waiter: asyncio.Future[bool] | None = None
        self._timer: asyncio.TimerHandle | None = None

    async def wait_or_skip(self, delay: float, token: CancellationToken | None = None) -> bool:
        """Wait ``delay`` seconds; return ``True`` when the caller should skip."""

        if token is not None and token.is_cancelled():
            return True

        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._supersede()

        waiter: asyncio.Future[bool] = loop.create_future()
        self._waiter = waiter
        self._timer = loop.call_later(delay, self._elapsed, waiter, generation)
        unsubscribe = token.on_cancel(lambda: self._skip(waiter)) if token is not None else None
        try:
            return await waiter
        finally:
            if unsubscribe is not None:
                unsubscribe()
            if self._waiter is waiter:
                self._clear_timer()
                self._waiter = None

    def cancel(self) -> None:
        """Resolve any pending waiter as skipped."""

        self._supersede()

    def _supersede(self) -> None:
        self._clear_timer()
        waiter = self._waiter
        self._waiter = None
        if waiter is not None and not waiter.done():
            waiter.set_result(True)

    def _elapsed(self, waiter: asyncio.Future[bool], generation: int) -> None:
        if waiter.done():
            return
        skip = generation != self._generation
        if self._waiter is waiter:
            self._timer = None
        waiter.set_result(skip)

    def _skip(self, waiter: asyncio.Future[bool]) -> None:
        if self._waiter is waiter:
            self._clear_timer()
        if not waiter.done():
            LOG.debug("Debounce interrupted by cancellation")
            waiter.set_result(True)

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


__all__ = ["Debouncer"]
