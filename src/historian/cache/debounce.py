"""Timer-reset debouncing on the asyncio event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from historian.logging import get_logger

logger = get_logger(__name__)

__all__ = ["Debouncer"]


class Debouncer:
    """Coalesces bursts of notifications into one delayed callback.

    Every :meth:`notify` cancels the pending call (if any) and schedules a new
    one ``delay`` seconds later with the latest arguments, so the callback
    runs once per quiet period, timed from the last notification. The
    callback never runs inside :meth:`notify`.

    Must be used from the event loop thread.

    Example:
        ```python
        debouncer = Debouncer(lambda root: print("refill", root), delay=1.0)
        for _ in range(3):
            debouncer.notify("/repo")  # prints once, ~1s after the last call
        ```
    """

    def __init__(self, callback: Callable[..., Any], delay: float) -> None:
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        self._callback = callback
        self._delay = delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """True while a callback is scheduled and has not fired yet."""
        return self._handle is not None

    def notify(self, *args: Any) -> None:
        """Restart the quiet period; the callback receives ``args``."""
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire, args)

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, args: tuple[Any, ...]) -> None:
        self._handle = None
        try:
            self._callback(*args)
        except Exception:
            logger.exception("debounced_callback_failed")
