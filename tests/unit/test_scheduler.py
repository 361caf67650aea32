"""Tests for price_table.runtime.scheduler."""

import asyncio

import pytest

from price_table.runtime.scheduler import (
    Scheduler,
    SchedulerPhase,
    SchedulerState,
    next_tick_delay,
)


class TestNextTickDelay:
    @pytest.mark.parametrize(
        "current, expected_gap",
        [
            (45, 45),  # past the interval: wait for the next minute plus interval
            (10, 20),  # before the interval: wait until it
            (30, 60),  # exactly at the interval: a full minute
            (0, 30),  # on the minute boundary
        ],
    )
    def test_alignment_interval_30(self, current, expected_gap):
        assert next_tick_delay(0, 30, current, first_run=False) == expected_gap * 1000

    def test_skip_minutes_added(self):
        assert next_tick_delay(2, 30, 45, first_run=False) == 45_000 + 120_000

    def test_skip_ignored_on_first_run(self):
        assert next_tick_delay(2, 30, 45, first_run=True) == 45_000

    def test_skip_ignored_on_first_run_on_boundary(self):
        assert next_tick_delay(1, 0, 0, first_run=True) == 0

    def test_interval_zero_every_minute(self):
        assert next_tick_delay(0, 0, 15, first_run=False) == 45_000
        assert next_tick_delay(1, 0, 0, first_run=False) == 60_000


class FakeSleep:
    """Records requested delays and stops the scheduler after N waits."""

    def __init__(self, scheduler, stop_after):
        self.scheduler = scheduler
        self.stop_after = stop_after
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)
        if len(self.delays) >= self.stop_after:
            self.scheduler.stop()
        # let fired callbacks run
        await asyncio.sleep(0)


class TestSchedulerArm:
    def test_counter_and_first_run(self):
        scheduler = Scheduler(clock=lambda: 45)
        assert scheduler.state == SchedulerState(counter=0, is_first_run=True, is_request_active=False)

        first = scheduler.arm(skip_minutes=1, interval_seconds=30)
        second = scheduler.arm(skip_minutes=1, interval_seconds=30)

        assert first == 45_000
        assert second == 45_000 + 60_000
        assert scheduler.state.counter == 2
        assert scheduler.state.is_first_run is False


class TestSchedulerFire:
    async def test_overlap_is_skipped(self):
        scheduler = Scheduler(clock=lambda: 0)
        release = asyncio.Event()
        runs = []

        async def slow():
            runs.append(1)
            await release.wait()

        first = scheduler.fire(slow)
        await asyncio.sleep(0)
        assert scheduler.phase == SchedulerPhase.RUNNING

        second = scheduler.fire(slow)
        assert second is None
        assert runs == [1]

        release.set()
        await first
        assert scheduler.state.is_request_active is False
        assert scheduler.phase == SchedulerPhase.IDLE

    async def test_flag_cleared_after_failure(self):
        scheduler = Scheduler(clock=lambda: 0)

        async def broken():
            raise RuntimeError("boom")

        task = scheduler.fire(broken)
        await task
        assert scheduler.state.is_request_active is False


class TestSchedulerRun:
    async def test_runs_until_stopped(self):
        scheduler = Scheduler(clock=lambda: 10)
        sleep = FakeSleep(scheduler, stop_after=4)
        scheduler._sleep = sleep
        runs = []

        async def callback():
            runs.append(1)

        await scheduler.run(skip_minutes=0, interval_seconds=30, callback=callback)
        await scheduler.drain()

        assert sleep.delays == [20.0, 20.0, 20.0, 20.0]
        assert len(runs) == 3
        assert scheduler.phase == SchedulerPhase.IDLE

    async def test_overlapping_tick_skipped_and_rearmed(self):
        scheduler = Scheduler(clock=lambda: 0)
        scheduler._sleep = FakeSleep(scheduler, stop_after=4)
        release = asyncio.Event()
        started = []

        async def slow():
            started.append(1)
            await release.wait()

        await scheduler.run(skip_minutes=1, interval_seconds=0, callback=slow)

        # first tick starts the callback, the next two are skipped while it runs
        assert len(started) == 1
        assert scheduler.state.counter == 4
        release.set()
        await scheduler.drain()
        assert scheduler.state.is_request_active is False

    async def test_failing_callback_keeps_schedule(self):
        scheduler = Scheduler(clock=lambda: 0)
        scheduler._sleep = FakeSleep(scheduler, stop_after=3)
        calls = []

        async def broken():
            calls.append(1)
            raise RuntimeError("boom")

        await scheduler.run(skip_minutes=0, interval_seconds=0, callback=broken)
        await scheduler.drain()
        assert len(calls) == 2

    async def test_stop_with_real_wait(self):
        scheduler = Scheduler(clock=lambda: 1)

        async def callback():
            pass

        task = asyncio.create_task(scheduler.run(0, 0, callback))
        await asyncio.sleep(0.01)
        assert scheduler.phase == SchedulerPhase.ARMED
        scheduler.stop()
        await asyncio.wait_for(task, timeout=1)
        assert scheduler.phase == SchedulerPhase.IDLE
