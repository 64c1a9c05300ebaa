"""Location Adjustment Profiles — declarative per-city and per-latitude-band corrections.

Invariants:
    - resolve() is PURE: same (coordinate, name hint) → same LocationProfile, no global state
    - Resolution order: name hint → nearest known city (≤0.5° both axes) → latitude band
    - Every |latitude| falls in exactly one band: <30, 30–40, 40–50, 50–60, ≥60
    - apply_profile() never mutates the method profile; it returns a new one

Design Decisions:
    - One lookup table instead of a branch per city: adding a city is a data change
      (ADR: per-city functions drifted apart and were untestable in isolation)
    - Angle overrides were tuned against the Diyanet tables, so they only apply on top of
      the TURKEY profile; minute vectors and the strategy apply to every method
    - |latitude| ≥ 45 gets the seasonal Dhuhr/Maghrib table; city seasonal months win per month
"""

import re
from dataclasses import dataclass, field, replace
from typing import Mapping

from salah_engine.core.calculation_methods import CalculationMethodProfile
from salah_engine.core.domain_types import (
    AdjustmentTable,
    GeoCoordinate,
    HighLatitudeStrategy,
    PrayerKind,
)

PROXIMITY_THRESHOLD_DEG = 0.5
SEASONAL_LATITUDE_DEG = 45.0
TUNED_METHOD_ID = "TURKEY"

_F, _S, _D, _A, _M, _I = (
    PrayerKind.FAJR, PrayerKind.SUNRISE, PrayerKind.DHUHR,
    PrayerKind.ASR, PrayerKind.MAGHRIB, PrayerKind.ISHA,
)


@dataclass(frozen=True)
class KnownLocation:
    """Reference city with fine-tuned angles and minute corrections."""
    key: str
    label: str
    latitude: float
    longitude: float
    offsets: Mapping[PrayerKind, int]
    seasonal: Mapping[int, Mapping[PrayerKind, int]] = field(default_factory=dict)
    fajr_angle_deg: float | None = None
    isha_angle_deg: float | None = None
    isha_interval_minutes: int | None = None
    maghrib_angle_deg: float | None = None
    strategy: HighLatitudeStrategy | None = None


@dataclass(frozen=True)
class LatitudeBand:
    label: str
    min_abs_latitude: float
    offsets: Mapping[PrayerKind, int]
    strategy: HighLatitudeStrategy


@dataclass(frozen=True)
class LocationProfile:
    """Resolution result: where it came from and what to apply."""
    source: str                 # "name" | "proximity" | "latitude_band"
    label: str
    adjustments: AdjustmentTable
    high_latitude_strategy: HighLatitudeStrategy
    fajr_angle_deg: float | None = None
    isha_angle_deg: float | None = None
    isha_interval_minutes: int | None = None
    maghrib_angle_deg: float | None = None

    @property
    def has_angle_override(self) -> bool:
        return any(
            v is not None for v in (
                self.fajr_angle_deg, self.isha_angle_deg,
                self.isha_interval_minutes, self.maghrib_angle_deg,
            )
        )


def _months(months, values) -> dict[int, dict[PrayerKind, int]]:
    return {m: dict(values) for m in months}


# ─── Known Locations (Diyanet 2025 reference tables) ─────────────

KNOWN_LOCATIONS: tuple[KnownLocation, ...] = (
    KnownLocation(
        "berlin", "Berlin", 52.52, 13.41, {_D: 3, _M: 2},
        seasonal=_months(range(3, 11), {_M: 3}),
        fajr_angle_deg=16.0, isha_angle_deg=15.0,
        strategy=HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    KnownLocation(
        "athens", "Athens", 37.98, 23.73, {_D: 3},
        fajr_angle_deg=18.0, isha_angle_deg=17.0,
    ),
    KnownLocation(
        "hongkong", "Hong Kong", 22.32, 114.17, {_D: 2},
        fajr_angle_deg=19.0, isha_angle_deg=18.0,
    ),
    KnownLocation(
        "bala", "Bala", 39.68, 33.11, {_D: 3},
        fajr_angle_deg=18.0, isha_angle_deg=17.0,
    ),
    KnownLocation(
        "london", "London", 51.51, -0.13, {_D: 3, _M: 2},
        seasonal=_months((6, 7), {_M: 3}),
        fajr_angle_deg=15.0, isha_angle_deg=14.0,
        strategy=HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    KnownLocation(
        "madrid", "Madrid", 40.42, -3.70, {_F: 1, _D: 4, _M: 2},
        seasonal=_months(range(3, 11), {_M: 3}),
        fajr_angle_deg=18.0, isha_angle_deg=17.0,
    ),
    KnownLocation(
        "bucharest", "Bucharest", 44.43, 26.10, {_D: 4, _M: 2},
        fajr_angle_deg=17.5, isha_angle_deg=16.5,
    ),
    KnownLocation(
        "bern", "Bern", 46.95, 7.44, {_D: 3, _M: 3},
        fajr_angle_deg=16.0, isha_angle_deg=15.0,
        strategy=HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    KnownLocation("tokyo", "Tokyo", 35.69, 139.69, {_D: 2}),
    KnownLocation(
        "tehran", "Tehran", 35.69, 51.39, {_D: 5},
        fajr_angle_deg=17.7, isha_angle_deg=14.0, maghrib_angle_deg=4.5,
    ),
    KnownLocation("rome", "Rome", 41.90, 12.50, {_D: 4}),
    KnownLocation("istanbul", "Istanbul", 41.01, 28.97, {_D: 3}),
    KnownLocation("ankara", "Ankara", 39.93, 32.86, {_D: 3}),
    KnownLocation(
        "dubai", "Dubai", 25.20, 55.27, {_D: 3},
        fajr_angle_deg=19.0, isha_angle_deg=18.0,
    ),
    KnownLocation(
        "riyadh", "Riyadh", 24.71, 46.67, {_D: 3},
        fajr_angle_deg=18.5, isha_interval_minutes=90,
    ),
    KnownLocation(
        "cairo", "Cairo", 30.04, 31.24, {_D: 3},
        fajr_angle_deg=19.5, isha_angle_deg=17.5,
    ),
    KnownLocation(
        "moscow", "Moscow", 55.75, 37.62, {_F: -5, _D: 3, _A: 3, _M: 3},
        fajr_angle_deg=16.0, isha_angle_deg=15.0,
        strategy=HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
)

# Highest band first so the first match wins
LATITUDE_BANDS: tuple[LatitudeBand, ...] = (
    LatitudeBand(
        "≥60", 60.0, {_D: 3, _A: 2, _M: 2},
        HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    LatitudeBand(
        "50–60", 50.0, {_D: 3, _M: 2}, HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    LatitudeBand(
        "40–50", 40.0, {_D: 3, _M: 2}, HighLatitudeStrategy.ENHANCED_REGIONAL,
    ),
    LatitudeBand("30–40", 30.0, {_D: 2}, HighLatitudeStrategy.ANGLE_BASED),
    LatitudeBand("<30", 0.0, {_D: 2}, HighLatitudeStrategy.ANGLE_BASED),
)

_SEASONAL_HIGH_LATITUDE: Mapping[int, Mapping[PrayerKind, int]] = {
    **_months((12, 1, 2), {_D: 3}),
    **_months((3, 4), {_D: 3, _M: 2}),
    **_months((5, 6, 7, 8), {_D: 3, _M: 3}),
    9: {_D: 3, _M: 2},
    **_months((10, 11), {_D: 3}),
}


# ─── Resolution ──────────────────────────────────────────────────

def normalize_name(name: str) -> str:
    """'Hong-Kong, SAR' → 'hongkongsar'."""
    return re.sub(r"[^a-z]", "", name.casefold())


def seasonal_table_for_latitude(latitude: float) -> dict[int, dict[PrayerKind, int]]:
    """Month → minute overrides for |latitude| ≥ 45, empty otherwise."""
    if abs(latitude) < SEASONAL_LATITUDE_DEG:
        return {}
    return {m: dict(v) for m, v in _SEASONAL_HIGH_LATITUDE.items()}


def fajr_angle_for_latitude(latitude: float) -> float | None:
    """Diyanet's reduced Fajr angle between 45° and 66°, None elsewhere."""
    lat = abs(latitude)
    if lat <= 45.0 or lat >= 66.0:
        return None
    if lat < 50.0:
        return 16.0
    if lat < 55.0:
        return 15.0
    if lat < 60.0:
        return 14.0
    return 13.0


def latitude_band(latitude: float) -> LatitudeBand:
    lat = abs(latitude)
    for band in LATITUDE_BANDS:
        if lat >= band.min_abs_latitude:
            return band
    return LATITUDE_BANDS[-1]


def match_by_name(name_hint: str | None) -> KnownLocation | None:
    if not name_hint:
        return None
    needle = normalize_name(name_hint)
    if not needle:
        return None
    for city in KNOWN_LOCATIONS:
        if city.key in needle:
            return city
    return None


def match_by_proximity(
    coordinate: GeoCoordinate, threshold: float = PROXIMITY_THRESHOLD_DEG,
) -> KnownLocation | None:
    best, best_distance = None, None
    for city in KNOWN_LOCATIONS:
        dlat = abs(coordinate.latitude - city.latitude)
        dlon = abs(coordinate.longitude - city.longitude)
        if dlat > threshold or dlon > threshold:
            continue
        distance = max(dlat, dlon)
        if best_distance is None or distance < best_distance:
            best, best_distance = city, distance
    return best


def resolve(coordinate: GeoCoordinate, name_hint: str | None = None) -> LocationProfile:
    """Pick the correction profile for a coordinate (and optional place name)."""
    band = latitude_band(coordinate.latitude)
    base_seasonal = seasonal_table_for_latitude(coordinate.latitude)

    city = match_by_name(name_hint)
    source = "name"
    if city is None:
        city = match_by_proximity(coordinate)
        source = "proximity"

    if city is None:
        return LocationProfile(
            source="latitude_band",
            label=band.label,
            adjustments=AdjustmentTable(dict(band.offsets), base_seasonal),
            high_latitude_strategy=band.strategy,
        )

    seasonal = dict(base_seasonal)
    for month, values in city.seasonal.items():
        seasonal[month] = {**seasonal.get(month, {}), **values}
    return LocationProfile(
        source=source,
        label=city.label,
        adjustments=AdjustmentTable(dict(city.offsets), seasonal),
        high_latitude_strategy=city.strategy or band.strategy,
        fajr_angle_deg=city.fajr_angle_deg,
        isha_angle_deg=city.isha_angle_deg,
        isha_interval_minutes=city.isha_interval_minutes,
        maghrib_angle_deg=city.maghrib_angle_deg,
    )


def apply_profile(
    method: CalculationMethodProfile,
    profile: LocationProfile,
    latitude: float,
) -> CalculationMethodProfile:
    """Effective method for a location. Returns a new profile, never mutates `method`."""
    if method.id != TUNED_METHOD_ID:
        return method

    if not profile.has_angle_override:
        fajr = fajr_angle_for_latitude(latitude)
        return method if fajr is None else method.with_angles(fajr_angle_deg=fajr)

    changes: dict = {}
    if profile.fajr_angle_deg is not None:
        changes["fajr_angle_deg"] = profile.fajr_angle_deg
    if profile.isha_interval_minutes is not None:
        changes["isha_interval_minutes"] = profile.isha_interval_minutes
        changes["isha_angle_deg"] = 0.0
    elif profile.isha_angle_deg is not None:
        changes["isha_angle_deg"] = profile.isha_angle_deg
        changes["isha_interval_minutes"] = 0
    if profile.maghrib_angle_deg is not None:
        changes["maghrib_angle_deg"] = profile.maghrib_angle_deg
    return replace(method, **changes)
