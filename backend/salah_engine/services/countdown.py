"""Countdown Ticker — live time-remaining stream toward the next prayer.

Invariants:
    - ticks() is a fresh, restartable sequence per call (no shared iterator state)
    - The target is re-resolved through get_next_prayer once it has passed
    - stop() is observed within one interval; the task is cancelled and released
    - Holds no locks: the schedule service owns all shared state

Design Decisions:
    - stop_event.wait() raced against the interval via asyncio.wait_for: wakes immediately
      on stop instead of sleeping the whole interval
    - Remaining time clamps at zero: the last tick before re-resolution reads 00:00:00
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable

from salah_engine.core.domain_types import NextPrayer, ObserverLocation, PrayerKind
from salah_engine.services.schedule_service import PrayerScheduleService

logger = logging.getLogger(__name__)

TickCallback = Callable[["CountdownTick"], Awaitable[None] | None]


@dataclass(frozen=True)
class CountdownTick:
    kind: PrayerKind
    hours: int
    minutes: int
    seconds: int
    target: datetime

    @property
    def formatted(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"

    @property
    def total_seconds(self) -> int:
        return self.hours * 3600 + self.minutes * 60 + self.seconds


def build_tick(target: NextPrayer, now: datetime) -> CountdownTick:
    remaining = max(0, int((target.instant - now).total_seconds()))
    hours, rest = divmod(remaining, 3600)
    minutes, seconds = divmod(rest, 60)
    return CountdownTick(target.kind, hours, minutes, seconds, target.instant)


class CountdownTicker:
    """Emits a CountdownTick every `interval` seconds for one location."""

    def __init__(
        self,
        service: PrayerScheduleService,
        location: ObserverLocation,
        interval: float = 1.0,
        method: str | None = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be > 0 seconds")
        self.service = service
        self.location = location
        self.interval = interval
        self.method = method
        self._stop = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def ticks(self) -> AsyncIterator[CountdownTick]:
        """Yield ticks until stop() is called."""
        self._stop.clear()
        target = await self._resolve(None)
        while not self._stop.is_set():
            now = self.service.clock.now()
            if now >= target.instant:
                target = await self._resolve(now)
            yield build_tick(target, now)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)

    def start(self, on_tick: TickCallback) -> asyncio.Task:
        """Run ticks() in a background task, calling on_tick for each one."""
        if self.running:
            raise RuntimeError("ticker already running")
        self._stop.clear()
        self._task = asyncio.create_task(self._run(on_tick))
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> "CountdownTicker":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    async def _run(self, on_tick: TickCallback) -> None:
        async for tick in self.ticks():
            result = on_tick(tick)
            if asyncio.iscoroutine(result):
                await result

    async def _resolve(self, now: datetime | None) -> NextPrayer:
        target = await self.service.get_next_prayer(self.location, now, self.method)
        logger.debug(
            f"Countdown target {target.kind.value} at {target.instant.isoformat()}",
        )
        return target
