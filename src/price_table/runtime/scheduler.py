"""Self-realigning periodic trigger with overlap suppression."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

logger = logging.getLogger(__name__)


class SchedulerPhase(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"


@dataclass
class SchedulerState:
    counter: int = 0
    is_first_run: bool = True
    is_request_active: bool = False


def next_tick_delay(
    skip_minutes: int,
    interval_seconds: int,
    current_seconds: int,
    first_run: bool,
) -> int:
    """Milliseconds until the next tick.

    Ticks land ``interval_seconds`` past a minute boundary. On top of the
    gap, ``skip_minutes`` whole minutes are skipped, except on the first
    run so the first update happens as soon as the clock is aligned.
    """
    if first_run:
        skip_minutes = 0

    if current_seconds % 60 == 0:
        gap = interval_seconds
    elif current_seconds == interval_seconds:
        gap = 60
    elif current_seconds <= interval_seconds:
        gap = interval_seconds - current_seconds
    else:
        gap = (60 - current_seconds) + interval_seconds

    return gap * 1000 + skip_minutes * 60 * 1000


def _wall_clock_seconds() -> int:
    return datetime.now().second


class Scheduler:
    """Fires ``callback`` on wall-clock aligned ticks until stopped.

    A tick that arrives while the previous callback is still running is
    skipped, never queued. The loop re-arms after every tick, so a slow or
    failing callback never stops the schedule.
    """

    def __init__(
        self,
        name: str = "default",
        *,
        clock: Callable[[], int] = _wall_clock_seconds,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self.state = SchedulerState()
        self._clock = clock
        self._sleep = sleep
        self._stop = asyncio.Event()
        self._looping = False
        self._active: asyncio.Task | None = None

    @property
    def phase(self) -> SchedulerPhase:
        if self.state.is_request_active:
            return SchedulerPhase.RUNNING
        if self._looping:
            return SchedulerPhase.ARMED
        return SchedulerPhase.IDLE

    def arm(self, skip_minutes: int, interval_seconds: int) -> int:
        """Compute the delay to the next tick and advance the counter."""
        current = self._clock()
        delay = next_tick_delay(skip_minutes, interval_seconds, current, self.state.is_first_run)
        self.state.counter += 1
        self.state.is_first_run = False
        logger.debug(
            "[%s] tick #%d armed: entry second %d, next in %d ms",
            self.name, self.state.counter, current, delay,
        )
        return delay

    def fire(self, callback: Callable[[], Awaitable[object]]) -> asyncio.Task | None:
        """Start ``callback`` unless a previous run is still active."""
        if self.state.is_request_active:
            logger.warning(
                "[%s] tick #%d skipped: previous update still running",
                self.name, self.state.counter,
            )
            return None
        self.state.is_request_active = True
        self._active = asyncio.create_task(self._guarded(callback))
        return self._active

    async def _guarded(self, callback: Callable[[], Awaitable[object]]) -> None:
        try:
            await callback()
        except Exception:
            logger.exception("[%s] tick #%d failed", self.name, self.state.counter)
        finally:
            self.state.is_request_active = False

    async def run(
        self,
        skip_minutes: int,
        interval_seconds: int,
        callback: Callable[[], Awaitable[object]],
    ) -> None:
        """Arm, wait, fire, repeat until ``stop()`` is called.

        A stopped scheduler stays stopped; ``run`` returns at once.
        """
        self._looping = True
        logger.info(
            "[%s] scheduler started: skip %d min, interval %d s",
            self.name, skip_minutes, interval_seconds,
        )
        try:
            while not self._stop.is_set():
                delay_ms = self.arm(skip_minutes, interval_seconds)
                if await self._wait(delay_ms / 1000):
                    break
                self.fire(callback)
        finally:
            self._looping = False
            logger.info("[%s] scheduler stopped after %d ticks", self.name, self.state.counter)

    async def _wait(self, seconds: float) -> bool:
        """Wait for the next tick. Returns True if stopped meanwhile."""
        if self._sleep is not None:
            await self._sleep(seconds)
            return self._stop.is_set()
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    def stop(self) -> None:
        self._stop.set()

    async def drain(self) -> None:
        """Wait for an in-flight callback to finish."""
        if self._active is not None and not self._active.done():
            await self._active
