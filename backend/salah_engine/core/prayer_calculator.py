"""Prayer Time Calculator — six daily instants from sun position, method angles, and corrections.

Invariants:
    - Pure: no IO, no clock reads; identical inputs → identical PrayerSchedule
    - Never raises for astronomically degenerate input (polar day/night); such prayers are
      returned as tagged approximations, never NaN
    - For |latitude| < 48° and any built-in profile: Fajr < Sunrise < Dhuhr < Asr < Maghrib < Isha
    - Interval-based Isha (Maghrib + N min) is never replaced by the high-latitude strategy
    - utc_offset_hours is the STANDARD offset; DST is added separately (window or timezone rule)

Design Decisions:
    - Times are carried as float hours until the last step, then truncated to whole seconds
    - Seasonal rules use the month of the requested date, never the current month
    - Sun position evaluated once at local noon (good to a fraction of a minute for every prayer)
    - Asr defaults to midday + altitude/15 (AsrFormula.CLOSED_FORM); AsrFormula.HOUR_ANGLE
      instead solves for the moment the sun descends to the shadow altitude
    - Approximations are logged as PolarConditionApproximated at INFO, never raised
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

import pytz

from salah_engine.core.calculation_methods import (
    STANDARD_REFRACTION_DEG,
    CalculationMethodProfile,
)
from salah_engine.core.domain_types import (
    EMPTY_ADJUSTMENTS,
    EVENING_KINDS,
    MORNING_KINDS,
    AdjustmentTable,
    AsrConvention,
    AsrFormula,
    DstWindow,
    GeoCoordinate,
    HighLatitudeStrategy,
    PrayerKind,
    PrayerSchedule,
)
from salah_engine.core.errors import PolarConditionApproximated
from salah_engine.core.solar_ephemeris import (
    compute_sun_position,
    dcos,
    dsin,
    dtan,
    fix_hour,
    julian_day,
)

logger = logging.getLogger(__name__)

HIGH_LATITUDE_THRESHOLD_DEG = 48.0
DEFAULT_DST_HOURS = 1.0

_NORTH_SUMMER = frozenset({5, 6, 7, 8})
_NORTH_WINTER = frozenset({11, 12, 1, 2})


@dataclass
class _RawTimes:
    """Float hours in local mean solar time, before corrections."""
    fajr: float | None
    sunrise: float
    dhuhr: float
    asr: float
    maghrib: float
    isha: float | None


# ─── Hour-angle Geometry ─────────────────────────────────────────

def hour_angle_hours(altitude_deg: float, latitude: float, declination: float) -> float | None:
    """Hours between solar noon and the sun crossing `altitude_deg`.

    Negative altitudes are below the horizon (sunrise = -0.833°, Fajr = -18°).
    Returns None when the sun never reaches that altitude on this day.
    """
    denominator = dcos(latitude) * dcos(declination)
    if denominator == 0.0:
        return None
    cos_h = (dsin(altitude_deg) - dsin(latitude) * dsin(declination)) / denominator
    if abs(cos_h) > 1.0:
        return None
    return math.degrees(math.acos(cos_h)) / 15.0


def _clamped_hour_angle(altitude_deg: float, latitude: float, declination: float) -> float:
    """Polar fallback: 0 h when the sun stays below, 12 h when it stays above."""
    denominator = dcos(latitude) * dcos(declination)
    if denominator == 0.0:
        above = dsin(latitude) * dsin(declination) > dsin(altitude_deg)
        return 12.0 if above else 0.0
    cos_h = (dsin(altitude_deg) - dsin(latitude) * dsin(declination)) / denominator
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_h)))) / 15.0


def asr_altitude(latitude: float, declination: float, shadow_factor: float) -> float:
    """Sun altitude at which an object's shadow is shadow_factor × its length + noon shadow."""
    zenith_distance = math.degrees(math.acos(
        max(-1.0, min(1.0,
            dsin(latitude) * dsin(declination) + dcos(latitude) * dcos(declination)
        ))
    ))
    return math.degrees(math.atan(1.0 / (shadow_factor + dtan(zenith_distance))))


def approximate_night_duration(sunrise: float, maghrib: float) -> float:
    """Hours from Maghrib to the next sunrise.

    Raw (unwrapped) inputs: equal values mean polar night (24 h), a 24 h gap means
    polar day (0 h). Wrapped inputs are brought back into a single day first.
    """
    day_length = maghrib - sunrise
    if not 0.0 <= day_length <= 24.0:
        day_length %= 24.0
    return 24.0 - day_length


# ─── High-latitude Strategy ──────────────────────────────────────

def high_latitude_offset(
    strategy: HighLatitudeStrategy,
    angle_deg: float,
    night: float,
    latitude: float,
    month: int,
) -> float | None:
    """Hours to subtract from sunrise (Fajr) or add to Maghrib (Isha).

    None means "keep the angle-based time" (only NONE and REGIONAL below 48° return it).
    """
    abs_lat = abs(latitude)
    angle_fraction = angle_deg / 60.0

    if strategy is HighLatitudeStrategy.NONE:
        return None
    if strategy is HighLatitudeStrategy.MIDDLE_OF_NIGHT:
        return night / 2.0
    if strategy is HighLatitudeStrategy.SEVENTH_OF_NIGHT:
        return night / 7.0
    if strategy is HighLatitudeStrategy.ANGLE_BASED:
        return angle_fraction * night

    if strategy is HighLatitudeStrategy.REGIONAL:
        if abs_lat >= 55.0:
            return max(night / 7.0, 1.5)
        if abs_lat >= HIGH_LATITUDE_THRESHOLD_DEG:
            return (0.6 * angle_fraction + 0.4) * night / 7.0
        return None

    # ENHANCED_REGIONAL
    northern = latitude >= 0.0
    summer = month in (_NORTH_SUMMER if northern else _NORTH_WINTER)
    winter = month in (_NORTH_WINTER if northern else _NORTH_SUMMER)
    if summer and abs_lat >= 55.0:
        return max(night / 6.0, 1.75)
    if summer and abs_lat >= HIGH_LATITUDE_THRESHOLD_DEG:
        return max(night / 7.0, 1.5)
    if winter and abs_lat >= 55.0:
        return night / 7.0
    return (0.65 * angle_fraction + 0.35) * night / 7.0


# ─── Calculation ─────────────────────────────────────────────────

def _raw_times(
    latitude: float,
    declination: float,
    midday: float,
    profile: CalculationMethodProfile,
    asr_convention: AsrConvention,
    asr_formula: AsrFormula,
    approximated: set[PrayerKind],
) -> _RawTimes:
    sunrise_h = hour_angle_hours(-STANDARD_REFRACTION_DEG, latitude, declination)
    if sunrise_h is None:
        sunrise_h = _clamped_hour_angle(-STANDARD_REFRACTION_DEG, latitude, declination)
        approximated.add(PrayerKind.SUNRISE)

    maghrib_h = hour_angle_hours(-profile.maghrib_angle_deg, latitude, declination)
    if maghrib_h is None:
        maghrib_h = _clamped_hour_angle(-profile.maghrib_angle_deg, latitude, declination)
        approximated.add(PrayerKind.MAGHRIB)

    altitude = asr_altitude(latitude, declination, asr_convention.shadow_factor)
    if altitude <= 0.0:
        # Noon sun at or below the horizon: no shadow rule applies
        asr_h = 0.0
        approximated.add(PrayerKind.ASR)
    elif asr_formula is AsrFormula.HOUR_ANGLE:
        solved = hour_angle_hours(altitude, latitude, declination)
        if solved is None:
            approximated.add(PrayerKind.ASR)
        asr_h = altitude / 15.0 if solved is None else solved
    else:
        asr_h = altitude / 15.0

    fajr_h = hour_angle_hours(-profile.fajr_angle_deg, latitude, declination)
    maghrib = midday + maghrib_h + profile.maghrib_interval_minutes / 60.0

    if profile.isha_is_interval:
        isha = maghrib + profile.isha_interval_minutes / 60.0
    else:
        isha_h = hour_angle_hours(-profile.isha_angle_deg, latitude, declination)
        isha = None if isha_h is None else midday + isha_h

    return _RawTimes(
        fajr=None if fajr_h is None else midday - fajr_h,
        sunrise=midday - sunrise_h,
        dhuhr=midday,
        asr=midday + asr_h,
        maghrib=maghrib,
        isha=isha,
    )


def _apply_high_latitude(
    raw: _RawTimes,
    latitude: float,
    month: int,
    profile: CalculationMethodProfile,
    strategy: HighLatitudeStrategy,
    approximated: set[PrayerKind],
) -> None:
    unresolved = (
        raw.fajr is None or raw.isha is None
        or PrayerKind.SUNRISE in approximated or PrayerKind.MAGHRIB in approximated
    )
    if not unresolved and abs(latitude) < HIGH_LATITUDE_THRESHOLD_DEG:
        return

    night = approximate_night_duration(raw.sunrise, raw.maghrib)

    # Angle never reached: whatever replaces it is an approximation
    if raw.fajr is None:
        approximated.add(PrayerKind.FAJR)
    fajr_offset = high_latitude_offset(
        strategy, profile.fajr_angle_deg, night, latitude, month,
    )
    if fajr_offset is not None:
        raw.fajr = raw.sunrise - fajr_offset
    if raw.fajr is None or not math.isfinite(raw.fajr):
        raw.fajr = raw.sunrise - night / 7.0
        approximated.add(PrayerKind.FAJR)

    if profile.isha_is_interval:
        return
    if raw.isha is None:
        approximated.add(PrayerKind.ISHA)
    isha_offset = high_latitude_offset(
        strategy, profile.isha_angle_deg, night, latitude, month,
    )
    if isha_offset is not None:
        raw.isha = raw.maghrib + isha_offset
    if raw.isha is None or not math.isfinite(raw.isha):
        raw.isha = raw.maghrib + night / 7.0
        approximated.add(PrayerKind.ISHA)


def dst_hours_for(
    day: date,
    timezone_name: str | None = None,
    dst_window: DstWindow | None = None,
) -> float:
    """DST shift in hours for `day`: the manual window wins over the timezone rule."""
    if dst_window is not None:
        return DEFAULT_DST_HOURS if dst_window.contains(day) else 0.0
    if timezone_name is None:
        return 0.0
    tz = pytz.timezone(timezone_name)
    local_noon = tz.localize(datetime.combine(day, time(12, 0)))
    delta = local_noon.dst()
    return 0.0 if delta is None else delta.total_seconds() / 3600.0


def _to_datetime(day: date, hours: float, tz: timezone) -> datetime:
    seconds = int(math.floor(hours * 3600.0))
    return datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(seconds=seconds)


def calculate(
    day: date,
    coordinate: GeoCoordinate,
    utc_offset_hours: float,
    profile: CalculationMethodProfile,
    asr_convention: AsrConvention = AsrConvention.STANDARD,
    high_latitude_strategy: HighLatitudeStrategy = HighLatitudeStrategy.NONE,
    adjustments: AdjustmentTable = EMPTY_ADJUSTMENTS,
    *,
    timezone_name: str | None = None,
    dst_window: DstWindow | None = None,
    asr_formula: AsrFormula = AsrFormula.CLOSED_FORM,
) -> PrayerSchedule:
    """Compute one day's schedule. Instants are aware datetimes on `day`.

    Evening prayers that fall past local midnight land on the next calendar day,
    morning prayers that fall before it on the previous one.
    """
    lat, lon = coordinate.latitude, coordinate.longitude
    jd = julian_day(day.year, day.month, day.day) + 0.5 - lon / 360.0
    sun = compute_sun_position(jd)
    midday = 12.0 - sun.equation_of_time_minutes / 60.0

    approximated: set[PrayerKind] = set()
    raw = _raw_times(
        lat, sun.declination_deg, midday, profile, asr_convention, asr_formula, approximated,
    )
    _apply_high_latitude(raw, lat, day.month, profile, high_latitude_strategy, approximated)

    solar = {
        PrayerKind.FAJR: raw.fajr,
        PrayerKind.SUNRISE: raw.sunrise,
        PrayerKind.DHUHR: raw.dhuhr,
        PrayerKind.ASR: raw.asr,
        PrayerKind.MAGHRIB: raw.maghrib,
        PrayerKind.ISHA: raw.isha,
    }

    dst = dst_hours_for(day, timezone_name, dst_window)
    longitude_correction = (utc_offset_hours * 15.0 - lon) / 15.0
    local: dict[PrayerKind, float] = {}
    for kind, hours in solar.items():
        hours += adjustments.minutes_for(kind, day.month) / 60.0
        hours = fix_hour(hours + longitude_correction)
        local[kind] = fix_hour(hours + dst)

    fixed_tz = timezone(timedelta(hours=utc_offset_hours + dst))
    target_tz = pytz.timezone(timezone_name) if timezone_name else None
    dhuhr = local[PrayerKind.DHUHR]
    times: dict[PrayerKind, datetime] = {}
    for kind, hours in local.items():
        day_for_kind = day
        if kind in EVENING_KINDS and hours < dhuhr:
            day_for_kind = day + timedelta(days=1)
        elif kind in MORNING_KINDS and hours > dhuhr:
            day_for_kind = day - timedelta(days=1)
        instant = _to_datetime(day_for_kind, hours, fixed_tz)
        times[kind] = instant.astimezone(target_tz) if target_tz else instant

    if approximated:
        event = PolarConditionApproximated(
            sorted(k.value for k in approximated), lat,
        )
        logger.info(
            f"{event.message} on {day.isoformat()} ({high_latitude_strategy.value})",
            extra={"error_code": event.code, "method_id": profile.id},
        )

    return PrayerSchedule(
        date=day,
        coordinate=coordinate,
        method_id=profile.id,
        times=times,
        degraded=False,
        high_latitude_strategy=high_latitude_strategy,
        approximated=frozenset(approximated),
        timezone_name=timezone_name,
    )
