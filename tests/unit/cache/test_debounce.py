"""Unit tests for Debouncer."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from historian.cache.debounce import Debouncer

DELAY = 0.05


class TestDebouncer:
    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError, match="delay"):
            Debouncer(MagicMock(), -1)

    @pytest.mark.asyncio
    async def test_never_fires_inside_notify(self) -> None:
        callback = MagicMock()
        debouncer = Debouncer(callback, 0)

        debouncer.notify()

        callback.assert_not_called()
        assert debouncer.pending
        await asyncio.sleep(0.01)
        callback.assert_called_once_with()
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_burst_fires_once_with_latest_args(self) -> None:
        callback = MagicMock()
        debouncer = Debouncer(callback, DELAY)

        for i in range(5):
            debouncer.notify(i)
            await asyncio.sleep(DELAY / 5)

        callback.assert_not_called()
        await asyncio.sleep(DELAY * 3)
        callback.assert_called_once_with(4)

    @pytest.mark.asyncio
    async def test_timed_from_last_notify(self) -> None:
        loop = asyncio.get_running_loop()
        fired_at: list[float] = []
        debouncer = Debouncer(lambda: fired_at.append(loop.time()), DELAY)

        debouncer.notify()
        await asyncio.sleep(DELAY * 0.6)
        last = loop.time()
        debouncer.notify()
        await asyncio.sleep(DELAY * 3)

        assert len(fired_at) == 1
        assert fired_at[0] - last >= DELAY * 0.9

    @pytest.mark.asyncio
    async def test_separate_quiet_periods_fire_separately(self) -> None:
        callback = MagicMock()
        debouncer = Debouncer(callback, 0.01)

        debouncer.notify()
        await asyncio.sleep(0.05)
        debouncer.notify()
        await asyncio.sleep(0.05)

        assert callback.call_count == 2

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_call(self) -> None:
        callback = MagicMock()
        debouncer = Debouncer(callback, 0.01)

        debouncer.notify()
        debouncer.cancel()
        await asyncio.sleep(0.05)

        callback.assert_not_called()
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_callback_error_is_logged_not_raised(self) -> None:
        callback = MagicMock(side_effect=RuntimeError("boom"))
        debouncer = Debouncer(callback, 0)

        debouncer.notify()
        await asyncio.sleep(0.01)

        callback.assert_called_once()
        # a later burst still works
        callback.side_effect = None
        debouncer.notify()
        await asyncio.sleep(0.01)
        assert callback.call_count == 2

    def test_notify_requires_running_loop(self) -> None:
        debouncer = Debouncer(MagicMock(), 0)
        with pytest.raises(RuntimeError):
            debouncer.notify()
