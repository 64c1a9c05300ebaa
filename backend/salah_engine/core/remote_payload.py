"""Remote Payload Parsing — provider HH:mm strings → PrayerSchedule.

Invariants:
    - The six canonical fields are mandatory; a missing or unparseable one raises
      RemoteMalformedResponseError (the service falls back on it)
    - Extra fields (Sunset, Imsak, Midnight, ...) are ignored
    - "05:12 (+03)" and "05:12" parse identically: only the leading HH:MM counts
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

import pytz

from salah_engine.core.domain_types import (
    EVENING_KINDS,
    PRAYER_ORDER,
    GeoCoordinate,
    PrayerKind,
    PrayerSchedule,
)
from salah_engine.core.errors import RemoteMalformedResponseError

_HH_MM = re.compile(r"^\s*(\d{1,2}):(\d{2})")


def parse_clock_time(value: object) -> time:
    if not isinstance(value, str):
        raise RemoteMalformedResponseError(f"expected 'HH:MM' string, got {value!r}")
    match = _HH_MM.match(value)
    if match is None:
        raise RemoteMalformedResponseError(f"unparseable time {value!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise RemoteMalformedResponseError(f"time out of range {value!r}")
    return time(hour, minute)


def _field(timings: dict, kind: PrayerKind) -> object:
    # Provider keys are capitalized ("Fajr"); accept any casing
    for key, value in timings.items():
        if isinstance(key, str) and key.lower() == kind.value:
            return value
    raise RemoteMalformedResponseError(f"missing '{kind.display_name}'")


def _localize(day: date, clock: time, tz: tzinfo) -> datetime:
    naive = datetime.combine(day, clock)
    if isinstance(tz, pytz.BaseTzInfo):
        return tz.normalize(tz.localize(naive))
    return naive.replace(tzinfo=tz)


def parse_timings(
    timings: dict,
    day: date,
    coordinate: GeoCoordinate,
    method_id: str,
    timezone_name: str | None = None,
    utc_offset_hours: float = 0.0,
) -> PrayerSchedule:
    """Build a non-degraded schedule from a provider payload.

    Times are wall-clock in `timezone_name` when given, otherwise in the fixed offset.
    """
    if not isinstance(timings, dict):
        raise RemoteMalformedResponseError("timings is not an object")

    tz: tzinfo = (
        pytz.timezone(timezone_name) if timezone_name
        else timezone(timedelta(hours=utc_offset_hours))
    )
    clocks = {kind: parse_clock_time(_field(timings, kind)) for kind in PRAYER_ORDER}
    dhuhr = clocks[PrayerKind.DHUHR]

    times: dict[PrayerKind, datetime] = {}
    for kind, clock in clocks.items():
        day_for_kind = day
        if kind in EVENING_KINDS and clock < dhuhr:
            day_for_kind = day + timedelta(days=1)
        times[kind] = _localize(day_for_kind, clock, tz)

    return PrayerSchedule(
        date=day,
        coordinate=coordinate,
        method_id=method_id,
        times=times,
        degraded=False,
        timezone_name=timezone_name,
    )
