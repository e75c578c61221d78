"""Cancellable deferred-call handle used to debounce search input."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional


class Debouncer:
    """Run ``callback`` once input has been quiet for ``delay`` seconds.

    Each :meth:`trigger` cancels the pending call and schedules a new one.
    After :meth:`close` nothing is ever scheduled or run again.
    """

    def __init__(self, delay: float, callback: Callable[[], None], *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def trigger(self) -> None:
        if self._closed:
            return
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        self.cancel()
        self._closed = True

    def _fire(self) -> None:
        self._handle = None
        if not self._closed:
            self._callback()
