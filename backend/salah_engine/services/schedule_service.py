"""Prayer Schedule Service — cache, coalesced remote fetch, and local-calculation fallback.

Invariants:
    - Cache hit returns the stored (immutable) schedule by reference
    - At most one in-flight fetch per cache key: concurrent callers await the same task
    - Remote failure of ANY kind → exactly one local calculation, cached with degraded=True
    - No remote provider configured → local calculation with degraded=False
    - Only contract violations (InvalidCoordinateError, UnknownMethodError) reach the caller
    - Single writer: cache mutations happen under one asyncio.Lock; reads never take it
    - Next/current prayer look at yesterday and today (tomorrow only when both are past)

Design Decisions:
    - OrderedDict LRU bounded by cache_max_entries (ADR: long-running process, unbounded growth)
    - In-flight tasks are shielded: a cancelled caller does not cancel the shared fetch
    - Collaborators injected (remote, clock, calculator, resolver, timezones): tests pass fakes
    - Timezone lookups run in a worker thread: timezonefinder is blocking
    - Cache key is (rounded coordinate, date, method); name hints and Asr convention are
      service-level, so callers needing different conventions use separate services
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable

import pytz

from salah_engine.core.calculation_methods import (
    CUSTOM_METHOD_ID,
    CalculationMethodProfile,
    get_method,
)
from salah_engine.core.domain_types import (
    AdjustmentTable,
    AsrConvention,
    AsrFormula,
    CurrentPrayer,
    DstWindow,
    HighLatitudeStrategy,
    NextPrayer,
    ObserverLocation,
    PrayerSchedule,
    ScheduleCacheKey,
)
from salah_engine.core.errors import InvalidCoordinateError
from salah_engine.core.location_profiles import LocationProfile, apply_profile, resolve
from salah_engine.core.next_prayer import select_current_prayer, select_next_prayer
from salah_engine.core.prayer_calculator import calculate
from salah_engine.core.protocols import Clock, RemoteTimingsProvider, TimezoneResolver
from salah_engine.core.remote_payload import parse_timings
from salah_engine.infrastructure.timezones import TimezoneFinderResolver

logger = logging.getLogger(__name__)

Calculator = Callable[..., PrayerSchedule]
LocationResolver = Callable[..., LocationProfile]


class SystemClock:
    """Clock backed by the wall clock, always UTC-aware."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def method_cache_id(method: CalculationMethodProfile) -> str:
    """Registry id, or the angles themselves for custom profiles (two customs never collide)."""
    if method.id != CUSTOM_METHOD_ID:
        return method.id
    isha = (
        f"{method.isha_interval_minutes}MIN" if method.isha_is_interval
        else f"{method.isha_angle_deg:g}"
    )
    return (
        f"{CUSTOM_METHOD_ID}({method.fajr_angle_deg:g},{isha},"
        f"{method.maghrib_angle_deg:g},{method.maghrib_interval_minutes})"
    )


class PrayerScheduleService:
    """Single entry point for schedules and next/current-prayer queries."""

    def __init__(
        self,
        remote: RemoteTimingsProvider | None = None,
        *,
        clock: Clock | None = None,
        calculator: Calculator = calculate,
        resolver: LocationResolver = resolve,
        timezones: TimezoneResolver | None = None,
        default_method: CalculationMethodProfile | None = None,
        asr_convention: AsrConvention = AsrConvention.STANDARD,
        asr_formula: AsrFormula = AsrFormula.CLOSED_FORM,
        high_latitude_strategy: HighLatitudeStrategy | None = None,
        adjustments: AdjustmentTable | None = None,
        dst_window: DstWindow | None = None,
        apply_location_tuning: bool = True,
        remote_timeout_seconds: float = 5.0,
        cache_precision: int = 2,
        cache_max_entries: int = 512,
    ):
        self._remote = remote
        self._clock = clock or SystemClock()
        self._calculator = calculator
        self._resolver = resolver
        self._timezones = timezones or TimezoneFinderResolver()
        self.default_method = default_method or get_method("MWL")
        self.asr_convention = asr_convention
        self.asr_formula = asr_formula
        self.high_latitude_strategy = high_latitude_strategy
        self.adjustments = adjustments
        self.dst_window = dst_window
        self.apply_location_tuning = apply_location_tuning
        self.remote_timeout_seconds = remote_timeout_seconds
        self.cache_precision = cache_precision
        self.cache_max_entries = cache_max_entries

        self._cache: OrderedDict[ScheduleCacheKey, PrayerSchedule] = OrderedDict()
        self._in_flight: dict[ScheduleCacheKey, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    # ─── Queries ─────────────────────────────────────────────────

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def clock(self) -> Clock:
        return self._clock

    async def get_schedule(
        self,
        location: ObserverLocation,
        day: date,
        method: CalculationMethodProfile | str | None = None,
    ) -> PrayerSchedule:
        """Schedule for `day` at `location`. Never raises for remote failures."""
        profile = self._resolve_method(method)
        key = ScheduleCacheKey.build(
            location.coordinate, day, method_cache_id(profile), self.cache_precision,
        )

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key, location, day, profile))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._in_flight.pop(k, None))
        return await asyncio.shield(task)

    async def get_next_prayer(
        self,
        location: ObserverLocation,
        reference: datetime | None = None,
        method: CalculationMethodProfile | str | None = None,
    ) -> NextPrayer:
        """Earliest prayer strictly after `reference` (default: now).

        "Today" is the reference's calendar date in the location's own timezone.
        Yesterday is consulted too: its Isha can fall after midnight.
        """
        location, reference, today = await self._localize(location, reference)
        schedules = await self._schedules(location, today, method, days=(-1, 0))
        found = select_next_prayer(schedules, reference)
        if found is not None:
            return found
        tomorrow = await self.get_schedule(location, today + timedelta(days=1), method)
        return select_next_prayer([tomorrow], reference) or NextPrayer(*next(tomorrow.ordered()))

    async def get_current_prayer(
        self,
        location: ObserverLocation,
        reference: datetime | None = None,
        method: CalculationMethodProfile | str | None = None,
    ) -> CurrentPrayer:
        """Prayer period in effect at `reference` (default: now) and the one that ends it.

        Before today's Fajr the period is yesterday's Isha.
        """
        location, reference, today = await self._localize(location, reference)
        schedules = await self._schedules(location, today, method, days=(-1, 0))
        if select_next_prayer(schedules, reference) is None:
            schedules += await self._schedules(location, today, method, days=(1,))
        current = select_current_prayer(schedules, reference)
        if current is None:
            raise ValueError(f"No prayer period covers {reference.isoformat()}")
        return current

    async def invalidate(self) -> None:
        """Drop every cached schedule (e.g. after a settings change)."""
        async with self._lock:
            self._cache.clear()

    # ─── Loading ─────────────────────────────────────────────────

    async def _load(
        self,
        key: ScheduleCacheKey,
        location: ObserverLocation,
        day: date,
        method: CalculationMethodProfile,
    ) -> PrayerSchedule:
        location = await self.with_timezone(location)
        offset = self._timezones.standard_offset_hours(location.timezone_name, day)

        if self._remote is None:
            schedule = self._calculate_local(location, day, method, offset, degraded=False)
        else:
            schedule = await self._fetch_or_fallback(key, location, day, method, offset)

        async with self._lock:
            self._store(key, schedule)
        return schedule

    async def _fetch_or_fallback(
        self,
        key: ScheduleCacheKey,
        location: ObserverLocation,
        day: date,
        method: CalculationMethodProfile,
        offset: float,
    ) -> PrayerSchedule:
        coordinate = location.coordinate
        try:
            timings = await asyncio.wait_for(
                self._remote.fetch_timings(
                    coordinate.latitude, coordinate.longitude, day,
                    method, location.timezone_name,
                ),
                timeout=self.remote_timeout_seconds,
            )
            return parse_timings(
                timings, day, coordinate, method.id,
                timezone_name=location.timezone_name, utc_offset_hours=offset,
            )
        except InvalidCoordinateError:
            raise
        except Exception as e:
            logger.warning(
                f"Remote schedule unavailable for {key}, using local calculation: {e!r}",
                extra={
                    "error_code": getattr(e, "code", type(e).__name__),
                    "cache_key": str(key),
                    "method_id": method.id,
                    "degraded": True,
                },
            )
            return self._calculate_local(location, day, method, offset, degraded=True)

    def _calculate_local(
        self,
        location: ObserverLocation,
        day: date,
        method: CalculationMethodProfile,
        offset: float,
        degraded: bool,
    ) -> PrayerSchedule:
        coordinate = location.coordinate
        location_profile = self._resolver(coordinate, location.name)

        effective = method
        if self.apply_location_tuning:
            effective = apply_profile(method, location_profile, coordinate.latitude)
        adjustments = location_profile.adjustments
        if self.adjustments is not None:
            adjustments = adjustments.merged(self.adjustments)
        strategy = self.high_latitude_strategy or location_profile.high_latitude_strategy

        schedule = self._calculator(
            day, coordinate, offset, effective, self.asr_convention, strategy, adjustments,
            timezone_name=location.timezone_name, dst_window=self.dst_window,
            asr_formula=self.asr_formula,
        )
        return replace(schedule, method_id=method.id, degraded=degraded)

    # ─── Helpers ─────────────────────────────────────────────────

    def _store(self, key: ScheduleCacheKey, schedule: PrayerSchedule) -> None:
        self._cache[key] = schedule
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_max_entries:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Evicted schedule {evicted}", extra={"cache_key": str(evicted)})

    def _resolve_method(
        self, method: CalculationMethodProfile | str | None,
    ) -> CalculationMethodProfile:
        if method is None:
            return self.default_method
        if isinstance(method, CalculationMethodProfile):
            return method
        return get_method(method)

    async def _localize(
        self, location: ObserverLocation, reference: datetime | None,
    ) -> tuple[ObserverLocation, datetime, date]:
        """Location with its timezone, an aware reference, and the local calendar date."""
        location = await self.with_timezone(location)
        tz = pytz.timezone(location.timezone_name)
        reference = reference or self._clock.now()
        if reference.tzinfo is None:
            reference = tz.localize(reference)
        return location, reference, reference.astimezone(tz).date()

    async def _schedules(
        self,
        location: ObserverLocation,
        today: date,
        method: CalculationMethodProfile | str | None,
        days: tuple[int, ...],
    ) -> list[PrayerSchedule]:
        return list(await asyncio.gather(*(
            self.get_schedule(location, today + timedelta(days=d), method) for d in days
        )))

    async def with_timezone(self, location: ObserverLocation) -> ObserverLocation:
        """Fill in a missing timezone from the coordinate.

        The timezonefinder lookup is blocking, so it runs in a worker thread.
        """
        if location.timezone_name:
            return location
        coordinate = location.coordinate
        name = await asyncio.to_thread(
            self._timezones.timezone_for, coordinate.latitude, coordinate.longitude,
        )
        return replace(location, timezone_name=name)
