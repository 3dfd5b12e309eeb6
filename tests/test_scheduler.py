# tests/test_scheduler.py
"""Unit tests for the recurring rollup trigger."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from cam_alarm.services.scheduler import RecurringTrigger, next_fire_time


class TestNextFireTime:
    def test_daily_is_next_midnight(self):
        assert next_fire_time(datetime(2026, 10, 19, 13, 45, 7), "daily") == datetime(2026, 10, 20)

    def test_daily_at_midnight_moves_a_full_day(self):
        assert next_fire_time(datetime(2026, 10, 19), "daily") == datetime(2026, 10, 20)

    def test_daily_crosses_month_end(self):
        assert next_fire_time(datetime(2026, 12, 31, 23, 59, 59), "daily") == datetime(2027, 1, 1)

    def test_hourly_is_next_top_of_hour(self):
        assert next_fire_time(datetime(2026, 10, 19, 13, 45), "hourly") == datetime(2026, 10, 19, 14)

    def test_hourly_rolls_over_day(self):
        assert next_fire_time(datetime(2026, 10, 19, 23, 30), "hourly") == datetime(2026, 10, 20, 0)

    def test_unknown_cadence(self):
        with pytest.raises(ValueError):
            next_fire_time(datetime(2026, 10, 19), "weekly")


class TestRecurringTrigger:
    def test_invalid_cadence_rejected_at_construction(self):
        with pytest.raises(ValueError):
            RecurringTrigger(AsyncMock(), cadence="minutely")

    @pytest.mark.asyncio
    async def test_fire_swallows_callback_failure(self):
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        trigger = RecurringTrigger(callback)
        await trigger.fire()
        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_loop_fires_at_boundary_and_keeps_running(self):
        fired = asyncio.Event()
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 2:
                fired.set()
            raise RuntimeError("first cycle fails, second still runs")

        # a clock sitting 1ms before each top of hour
        ticks = iter([
            datetime(2026, 10, 19, 12, 59, 59, 999000),
            datetime(2026, 10, 19, 12, 59, 59, 999000),
            datetime(2026, 10, 19, 13, 0, 0),
            datetime(2026, 10, 19, 13, 59, 59, 999000),
            datetime(2026, 10, 19, 13, 59, 59, 999000),
            datetime(2026, 10, 19, 14, 0, 0),
        ])
        last = [datetime(2026, 10, 19, 14, 59)]

        def clock():
            try:
                last[0] = next(ticks)
            except StopIteration:
                pass
            return last[0]

        trigger = RecurringTrigger(callback, cadence="hourly", clock=clock)
        trigger.start()
        await asyncio.wait_for(fired.wait(), timeout=2)
        await trigger.stop()

        assert len(calls) == 2
        assert trigger.running is False
