"""
Tests for the daily scrape schedule.
"""
import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from voucher_finder.errors import CycleInProgressError
from voucher_finder.models import RecordStore
from voucher_finder.services.scheduler import run_scheduled_cycle, scheduler_loop, seconds_until


class TestSecondsUntil:
    """Tests for seconds_until."""

    def test_later_today(self):
        assert seconds_until(2, 0, datetime(2026, 1, 22, 1, 0)) == 3600.0

    def test_exact_time_waits_a_full_day(self):
        assert seconds_until(2, 0, datetime(2026, 1, 22, 2, 0)) == 86400.0

    def test_past_time_rolls_over_to_tomorrow(self):
        assert seconds_until(2, 0, datetime(2026, 1, 22, 23, 30)) == 2.5 * 3600

    def test_ignores_seconds_of_now(self):
        assert seconds_until(2, 30, datetime(2026, 1, 22, 2, 29, 30)) == 30.0


class TestRunScheduledCycle:
    """Tests for run_scheduled_cycle error handling."""

    @pytest.mark.asyncio
    async def test_returns_published_store(self):
        store = RecordStore()
        with patch("voucher_finder.services.scheduler.run_cycle", AsyncMock(return_value=store)) as mock_run:
            assert await run_scheduled_cycle("schedule") is store
        mock_run.assert_awaited_once_with(trigger="schedule")

    @pytest.mark.asyncio
    async def test_skips_when_cycle_in_progress(self, caplog):
        mock_run = AsyncMock(side_effect=CycleInProgressError("PID 1 (cli)"))
        with patch("voucher_finder.services.scheduler.run_cycle", mock_run):
            assert await run_scheduled_cycle("schedule") is None
        assert "Skipped" in caplog.text

    @pytest.mark.asyncio
    async def test_swallows_unexpected_errors(self, caplog):
        mock_run = AsyncMock(side_effect=RuntimeError("disk on fire"))
        with patch("voucher_finder.services.scheduler.run_cycle", mock_run):
            assert await run_scheduled_cycle("startup") is None
        assert "Scrape cycle failed" in caplog.text


class TestSchedulerLoop:
    """Tests for scheduler_loop."""

    @pytest.mark.asyncio
    async def test_runs_startup_cycle_then_waits(self):
        mock_cycle = AsyncMock(return_value=None)
        mock_sleep = AsyncMock(side_effect=asyncio.CancelledError)

        with patch("voucher_finder.services.scheduler.run_scheduled_cycle", mock_cycle), \
                patch("voucher_finder.services.scheduler.asyncio.sleep", mock_sleep):
            with pytest.raises(asyncio.CancelledError):
                await scheduler_loop(run_on_startup=True, hour=2, minute=0)

        mock_cycle.assert_awaited_once_with("startup")
        mock_sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_runs_daily_cycle_after_sleep(self):
        mock_cycle = AsyncMock(return_value=None)
        # First sleep returns, second one stops the loop
        mock_sleep = AsyncMock(side_effect=[None, asyncio.CancelledError])

        with patch("voucher_finder.services.scheduler.run_scheduled_cycle", mock_cycle), \
                patch("voucher_finder.services.scheduler.asyncio.sleep", mock_sleep):
            with pytest.raises(asyncio.CancelledError):
                await scheduler_loop(run_on_startup=False, hour=2, minute=0)

        mock_cycle.assert_awaited_once_with("schedule")
