"""Next & Current Prayer — selection by instant across consecutive schedules.

Tests:
    - Mid-day reference selects the next remaining prayer
    - Reference equal to a prayer instant skips it (strictly after) and makes it current
    - After Isha, tomorrow's Fajr is selected
    - Yesterday's Isha rolled past midnight is still the next prayer
    - Current prayer covers the Isha→Fajr night and the period after a rolled Isha
"""

from datetime import date, datetime, timedelta, timezone

from salah_engine.core.domain_types import (
    PRAYER_ORDER,
    GeoCoordinate,
    PrayerKind,
    PrayerSchedule,
)
from salah_engine.core.next_prayer import (
    current_in_schedule,
    next_in_schedule,
    select_current_prayer,
    select_next_prayer,
)

TZ = timezone(timedelta(hours=3))
HOURS = (4, 5, 12, 16, 20, 22)


def _schedule(day: date) -> PrayerSchedule:
    times = {
        kind: datetime(day.year, day.month, day.day, hour, 0, tzinfo=TZ)
        for kind, hour in zip(PRAYER_ORDER, HOURS)
    }
    return PrayerSchedule(
        date=day, coordinate=GeoCoordinate(41.0, 29.0), method_id="MWL", times=times,
    )


def _rolled_isha(day: date) -> PrayerSchedule:
    """Summer night at high latitude: Isha lands at 00:35 on the following day."""
    schedule = _schedule(day)
    times = dict(schedule.times)
    midnight = datetime(day.year, day.month, day.day, tzinfo=TZ)
    times[PrayerKind.ISHA] = midnight + timedelta(days=1, minutes=35)
    times[PrayerKind.FAJR] = midnight + timedelta(hours=2, minutes=10)
    return PrayerSchedule(
        date=day, coordinate=schedule.coordinate, method_id="MWL", times=times,
    )


YESTERDAY = _schedule(date(2025, 6, 20))
TODAY = _schedule(date(2025, 6, 21))
TOMORROW = _schedule(date(2025, 6, 22))


# ==============================================================================
# Next prayer
# ==============================================================================


def test_mid_day_selects_asr():
    nxt = select_next_prayer([TODAY, TOMORROW], datetime(2025, 6, 21, 13, 0, tzinfo=TZ))
    assert nxt.kind is PrayerKind.ASR
    assert nxt.instant.hour == 16


def test_reference_on_prayer_instant_moves_past_it():
    nxt = next_in_schedule(TODAY, datetime(2025, 6, 21, 12, 0, tzinfo=TZ))
    assert nxt is not None
    assert nxt.kind is PrayerKind.ASR


def test_after_isha_selects_tomorrow_fajr():
    nxt = select_next_prayer(
        [YESTERDAY, TODAY, TOMORROW], datetime(2025, 6, 21, 23, 59, 59, tzinfo=TZ),
    )
    assert nxt.kind is PrayerKind.FAJR
    assert nxt.instant == datetime(2025, 6, 22, 4, 0, tzinfo=TZ)


def test_whole_day_past_returns_none():
    assert next_in_schedule(TODAY, datetime(2025, 6, 21, 23, 0, tzinfo=TZ)) is None
    assert select_next_prayer([TODAY], datetime(2025, 6, 21, 23, 0, tzinfo=TZ)) is None


def test_reference_in_other_zone_compares_by_instant():
    # 09:30 UTC is 12:30 at +03:00
    reference = datetime(2025, 6, 21, 9, 30, tzinfo=timezone.utc)
    assert select_next_prayer([TODAY, TOMORROW], reference).kind is PrayerKind.ASR


def test_yesterday_isha_after_midnight_comes_before_today_fajr():
    yesterday = _rolled_isha(date(2025, 6, 20))
    today = _rolled_isha(date(2025, 6, 21))
    reference = datetime(2025, 6, 21, 0, 10, tzinfo=TZ)

    nxt = select_next_prayer([yesterday, today], reference)

    assert nxt.kind is PrayerKind.ISHA
    assert nxt.instant == datetime(2025, 6, 21, 0, 35, tzinfo=TZ)


def test_schedule_order_does_not_matter():
    reference = datetime(2025, 6, 21, 13, 0, tzinfo=TZ)
    forward = select_next_prayer([YESTERDAY, TODAY, TOMORROW], reference)
    backward = select_next_prayer([TOMORROW, TODAY, YESTERDAY], reference)
    assert forward == backward


# ==============================================================================
# Current prayer
# ==============================================================================


def test_current_in_schedule_is_latest_reached():
    current = current_in_schedule(TODAY, datetime(2025, 6, 21, 13, 0, tzinfo=TZ))
    assert current.kind is PrayerKind.DHUHR
    assert current_in_schedule(TODAY, datetime(2025, 6, 21, 3, 0, tzinfo=TZ)) is None


def test_current_between_dhuhr_and_asr():
    reference = datetime(2025, 6, 21, 13, 0, tzinfo=TZ)
    current = select_current_prayer([YESTERDAY, TODAY, TOMORROW], reference)
    assert current.kind is PrayerKind.DHUHR
    assert current.started == datetime(2025, 6, 21, 12, 0, tzinfo=TZ)
    assert current.next.kind is PrayerKind.ASR
    assert current.next.minutes_remaining(reference) == 180


def test_current_before_fajr_is_yesterdays_isha():
    reference = datetime(2025, 6, 21, 2, 0, tzinfo=TZ)
    current = select_current_prayer([YESTERDAY, TODAY, TOMORROW], reference)
    assert current.kind is PrayerKind.ISHA
    assert current.started == datetime(2025, 6, 20, 22, 0, tzinfo=TZ)
    assert current.next.kind is PrayerKind.FAJR
    assert current.next.instant == datetime(2025, 6, 21, 4, 0, tzinfo=TZ)


def test_current_starts_on_the_prayer_instant():
    reference = datetime(2025, 6, 21, 16, 0, tzinfo=TZ)
    current = select_current_prayer([TODAY, TOMORROW], reference)
    assert current.kind is PrayerKind.ASR
    assert current.next.kind is PrayerKind.MAGHRIB


def test_current_before_rolled_isha_is_maghrib():
    yesterday = _rolled_isha(date(2025, 6, 20))
    today = _rolled_isha(date(2025, 6, 21))
    reference = datetime(2025, 6, 21, 0, 10, tzinfo=TZ)

    current = select_current_prayer([yesterday, today], reference)

    assert current.kind is PrayerKind.MAGHRIB
    assert current.next.kind is PrayerKind.ISHA
    assert current.next.minutes_remaining(reference) == 25


def test_current_needs_both_sides_of_the_reference():
    assert select_current_prayer([TODAY], datetime(2025, 6, 21, 3, 0, tzinfo=TZ)) is None
    assert select_current_prayer([TODAY], datetime(2025, 6, 21, 23, 0, tzinfo=TZ)) is None


def test_minutes_remaining_never_negative():
    nxt = next_in_schedule(TODAY, datetime(2025, 6, 21, 13, 0, tzinfo=TZ))
    assert nxt.minutes_remaining(datetime(2025, 6, 21, 17, 0, tzinfo=TZ)) == 0
    assert nxt.minutes_remaining(datetime(2025, 6, 21, 15, 59, 30, tzinfo=TZ)) == 0
    assert nxt.minutes_remaining(datetime(2025, 6, 21, 15, 58, 59, tzinfo=TZ)) == 1
