"""Unit tests for the DebounceScheduler."""

import asyncio

import pytest
from docserve.core import DebounceScheduler


class TestDebounceScheduler:
    """Test cases for DebounceScheduler."""

    def test_negative_delay(self):
        """Test delay validation."""
        with pytest.raises(ValueError):
            DebounceScheduler(-1, lambda: None)

    @pytest.mark.asyncio
    async def test_burst_runs_once(self):
        """Test that a burst of schedule() calls arms one timer."""
        calls = []
        scheduler = DebounceScheduler(0.05, lambda: calls.append(1))

        assert scheduler.schedule() is True
        assert scheduler.schedule() is False
        assert scheduler.schedule() is False
        assert scheduler.is_armed

        await scheduler.wait_idle()

        assert calls == [1]
        assert scheduler.runs == 1
        assert not scheduler.is_armed

    @pytest.mark.asyncio
    async def test_rearms_after_firing(self):
        """Test that events after the window arm a new timer."""
        calls = []
        scheduler = DebounceScheduler(0.01, lambda: calls.append(1))

        scheduler.schedule()
        await scheduler.wait_idle()
        assert scheduler.schedule() is True
        await scheduler.wait_idle()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_async_callback(self):
        """Test that coroutine callbacks are awaited."""
        done = asyncio.Event()

        async def callback():
            done.set()

        scheduler = DebounceScheduler(0.01, callback)
        scheduler.schedule()
        await scheduler.wait_idle()

        assert done.is_set()

    @pytest.mark.asyncio
    async def test_callback_error_is_logged(self, caplog):
        """Test a failing pass does not break the scheduler."""

        def callback():
            raise RuntimeError("boom")

        scheduler = DebounceScheduler(0.01, callback)
        scheduler.schedule()
        await scheduler.wait_idle()

        assert "Scheduled rescan failed" in caplog.text
        assert scheduler.schedule() is True
        scheduler.cancel()

    @pytest.mark.asyncio
    async def test_cancel(self):
        """Test cancelling a pending timer."""
        calls = []
        scheduler = DebounceScheduler(10, lambda: calls.append(1))

        scheduler.schedule()
        scheduler.cancel()
        await scheduler.wait_idle()

        assert calls == []
        assert not scheduler.is_armed

    def test_schedule_requires_running_loop(self):
        """Test that scheduling outside the loop fails."""
        scheduler = DebounceScheduler(0.01, lambda: None)

        with pytest.raises(RuntimeError):
            scheduler.schedule()
