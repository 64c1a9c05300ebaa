"""Domain Types — coordinate validation, schedule immutability, cache keys.

Tests:
    - GeoCoordinate rejects out-of-range, NaN, and non-numeric values
    - PrayerSchedule requires all six kinds and exposes a read-only mapping
    - ScheduleCacheKey rounds coordinates and upper-cases the method id
    - AdjustmentTable seasonal entries override static offsets per prayer
    - Enums serialize to string; Asr shadow factors
"""

import math
from datetime import date, datetime, timedelta, timezone

import pytest

from salah_engine.core.domain_types import (
    PRAYER_ORDER,
    AdjustmentTable,
    AsrConvention,
    DstWindow,
    GeoCoordinate,
    PrayerKind,
    PrayerSchedule,
    ScheduleCacheKey,
)
from salah_engine.core.errors import InvalidCoordinateError

UTC = timezone.utc


def _times(start: datetime) -> dict[PrayerKind, datetime]:
    return {kind: start + timedelta(hours=3 * i) for i, kind in enumerate(PRAYER_ORDER)}


def _schedule(**kwargs) -> PrayerSchedule:
    defaults = dict(
        date=date(2025, 6, 21),
        coordinate=GeoCoordinate(41.0, 29.0),
        method_id="MWL",
        times=_times(datetime(2025, 6, 21, 3, 0, tzinfo=UTC)),
    )
    defaults.update(kwargs)
    return PrayerSchedule(**defaults)


@pytest.mark.parametrize("latitude, longitude, field", [
    (90.5, 0.0, "latitude"),
    (-91.0, 0.0, "latitude"),
    (0.0, 180.01, "longitude"),
    (math.nan, 0.0, "latitude"),
    (0.0, math.inf, "longitude"),
    ("41", 0.0, "latitude"),
    (True, 0.0, "latitude"),
])
def test_invalid_coordinates_rejected(latitude, longitude, field):
    with pytest.raises(InvalidCoordinateError) as exc:
        GeoCoordinate(latitude, longitude)
    assert exc.value.field == field
    assert exc.value.http_status == 400


def test_boundary_coordinates_accepted():
    assert GeoCoordinate(90.0, -180.0).latitude == 90.0
    assert GeoCoordinate(-90.0, 180.0).longitude == 180.0


def test_prayer_kind_order_is_chronological():
    assert [k.value for k in PRAYER_ORDER] == [
        "fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha",
    ]
    assert PrayerKind.ISHA.display_name == "Isha"


def test_schedule_requires_all_six_kinds():
    times = _times(datetime(2025, 6, 21, 3, 0, tzinfo=UTC))
    del times[PrayerKind.ASR]
    with pytest.raises(ValueError, match="asr"):
        _schedule(times=times)


def test_schedule_times_are_read_only():
    schedule = _schedule()
    with pytest.raises(TypeError):
        schedule.times[PrayerKind.FAJR] = datetime(2025, 6, 21, tzinfo=UTC)  # type: ignore[index]


def test_schedule_not_affected_by_source_dict_mutation():
    times = _times(datetime(2025, 6, 21, 3, 0, tzinfo=UTC))
    schedule = _schedule(times=times)
    times[PrayerKind.FAJR] = datetime(2000, 1, 1, tzinfo=UTC)
    assert schedule[PrayerKind.FAJR].year == 2025


def test_schedule_ordering_helpers():
    schedule = _schedule()
    assert [k for k, _ in schedule.ordered()] == list(PRAYER_ORDER)
    assert schedule.is_strictly_increasing()

    times = _times(datetime(2025, 6, 21, 3, 0, tzinfo=UTC))
    times[PrayerKind.ISHA] = times[PrayerKind.MAGHRIB]
    assert not _schedule(times=times).is_strictly_increasing()


def test_schedule_equality_ignores_mapping_identity():
    assert _schedule() == _schedule()
    assert _schedule() != _schedule(degraded=True)
    assert hash(_schedule()) == hash(_schedule())


def test_cache_key_rounds_and_normalizes():
    key = ScheduleCacheKey.build(
        GeoCoordinate(41.00821, 28.97839), date(2025, 6, 21), "turkey", precision=2,
    )
    assert (key.latitude, key.longitude, key.method_id) == (41.01, 28.98, "TURKEY")
    assert str(key) == "41.01,28.98@2025-06-21/TURKEY"


def test_cache_key_collapses_nearby_coordinates():
    day = date(2025, 6, 21)
    a = ScheduleCacheKey.build(GeoCoordinate(41.0081, 28.9781), day, "MWL", 2)
    b = ScheduleCacheKey.build(GeoCoordinate(41.0079, 28.9779), day, "mwl", 2)
    c = ScheduleCacheKey.build(GeoCoordinate(41.0081, 28.9781), day, "MWL", 3)
    assert a == b
    assert a != c


def test_adjustment_table_seasonal_overrides_per_prayer():
    table = AdjustmentTable(
        offsets={PrayerKind.DHUHR: 2, PrayerKind.MAGHRIB: 1},
        seasonal={6: {PrayerKind.MAGHRIB: 3}},
    )
    assert table.minutes_for(PrayerKind.MAGHRIB, 6) == 3
    assert table.minutes_for(PrayerKind.DHUHR, 6) == 2
    assert table.minutes_for(PrayerKind.MAGHRIB, 1) == 1
    assert table.minutes_for(PrayerKind.ISHA, 1) == 0


def test_adjustment_table_merge_prefers_override():
    base = AdjustmentTable(offsets={PrayerKind.DHUHR: 2}, seasonal={1: {PrayerKind.DHUHR: 3}})
    merged = base.merged(AdjustmentTable(offsets={PrayerKind.DHUHR: 5}))
    assert merged.minutes_for(PrayerKind.DHUHR, 2) == 5
    assert merged.minutes_for(PrayerKind.DHUHR, 1) == 3
    assert base.minutes_for(PrayerKind.DHUHR, 2) == 2


def test_dst_window_is_inclusive():
    window = DstWindow(date(2025, 3, 30), date(2025, 10, 26))
    assert window.contains(date(2025, 3, 30))
    assert window.contains(date(2025, 10, 26))
    assert not window.contains(date(2025, 10, 27))


def test_asr_shadow_factors():
    assert AsrConvention.STANDARD.shadow_factor == 1.0
    assert AsrConvention.HANAFI.shadow_factor == 2.0
    assert AsrConvention("hanafi") is AsrConvention.HANAFI
