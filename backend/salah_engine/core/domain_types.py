"""Domain Types — value objects shared by the calculator, resolver, and service.

Invariants:
    - GeoCoordinate is validated on construction — never clamped, never NaN
    - PrayerKind order IS chronological order (Fajr first, Isha last)
    - PrayerSchedule always holds all six kinds and is never mutated after construction
    - AdjustmentTable seasonal entries override static offsets per prayer, not wholesale

Design Decisions:
    - Frozen dataclasses over pydantic models in core: zero IO, cheap to hash (ADR: core stays dependency-free)
    - str Enums: serialize to JSON without custom encoders (ADR: API returns these values verbatim)
    - times stored as MappingProxyType: read-only view handed to every consumer
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from salah_engine.core.errors import InvalidCoordinateError


# ─── Enums ───────────────────────────────────────────────────────

class PrayerKind(str, Enum):
    """The six daily markers, declared in chronological order."""
    FAJR = "fajr"
    SUNRISE = "sunrise"
    DHUHR = "dhuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


PRAYER_ORDER: tuple[PrayerKind, ...] = tuple(PrayerKind)
MORNING_KINDS = frozenset({PrayerKind.FAJR, PrayerKind.SUNRISE})
EVENING_KINDS = frozenset({PrayerKind.ASR, PrayerKind.MAGHRIB, PrayerKind.ISHA})


class AsrConvention(str, Enum):
    """Juristic rule for the Asr shadow length."""
    STANDARD = "standard"   # Shafi'i, Maliki, Hanbali
    HANAFI = "hanafi"

    @property
    def shadow_factor(self) -> float:
        return 2.0 if self is AsrConvention.HANAFI else 1.0


class AsrFormula(str, Enum):
    """How the Asr shadow altitude becomes a clock time.

    CLOSED_FORM adds altitude/15 hours to midday (default).
    HOUR_ANGLE solves for the instant the sun descends to that altitude.
    """
    CLOSED_FORM = "closed_form"
    HOUR_ANGLE = "hour_angle"


class HighLatitudeStrategy(str, Enum):
    """Fallback policy for Fajr/Isha where the sun never reaches the twilight angle."""
    NONE = "none"
    MIDDLE_OF_NIGHT = "middle_of_night"
    SEVENTH_OF_NIGHT = "seventh_of_night"
    ANGLE_BASED = "angle_based"
    REGIONAL = "regional"
    ENHANCED_REGIONAL = "enhanced_regional"


# ─── Value Objects ───────────────────────────────────────────────

@dataclass(frozen=True)
class GeoCoordinate:
    """Latitude/longitude in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self):
        validate_coordinate(self.latitude, self.longitude)

    def rounded(self, precision: int) -> tuple[float, float]:
        return round(self.latitude, precision), round(self.longitude, precision)


def validate_coordinate(latitude: float, longitude: float) -> None:
    """Reject NaN/inf and out-of-range values. Raises InvalidCoordinateError."""
    for name, value, bound in (
        ("latitude", latitude, 90.0), ("longitude", longitude, 180.0),
    ):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCoordinateError(name, value)
        if not math.isfinite(value) or abs(value) > bound:
            raise InvalidCoordinateError(name, value)


@dataclass(frozen=True)
class ObserverLocation:
    """What callers hand to the schedule service."""
    coordinate: GeoCoordinate
    timezone_name: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class DstWindow:
    """Manual daylight-saving window (inclusive), overrides the timezone's own rule."""
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class AdjustmentTable:
    """Per-prayer minute offsets, optionally overridden per month."""
    offsets: Mapping[PrayerKind, int] = field(default_factory=dict)
    seasonal: Mapping[int, Mapping[PrayerKind, int]] = field(default_factory=dict)

    def minutes_for(self, kind: PrayerKind, month: int) -> int:
        season = self.seasonal.get(month)
        if season is not None and kind in season:
            return season[kind]
        return self.offsets.get(kind, 0)

    def merged(self, override: "AdjustmentTable") -> "AdjustmentTable":
        """New table: override's offsets win per prayer, seasonal months win per month."""
        offsets = {**self.offsets, **override.offsets}
        seasonal = {**self.seasonal, **override.seasonal}
        return AdjustmentTable(offsets=offsets, seasonal=seasonal)


EMPTY_ADJUSTMENTS = AdjustmentTable()


@dataclass(frozen=True)
class PrayerSchedule:
    """One day's six prayer instants. Created by the calculator or the remote parser only."""
    date: date
    coordinate: GeoCoordinate
    method_id: str
    times: Mapping[PrayerKind, datetime]
    degraded: bool = False
    high_latitude_strategy: HighLatitudeStrategy = HighLatitudeStrategy.NONE
    approximated: frozenset[PrayerKind] = frozenset()
    timezone_name: str | None = None

    def __post_init__(self):
        missing = [k for k in PRAYER_ORDER if k not in self.times]
        if missing:
            raise ValueError(
                f"PrayerSchedule requires all six prayers, missing: "
                f"{', '.join(k.value for k in missing)}"
            )
        # ADR: freeze the mapping so cached schedules can be shared by reference
        object.__setattr__(
            self, "times",
            MappingProxyType({k: self.times[k] for k in PRAYER_ORDER}),
        )

    def __getitem__(self, kind: PrayerKind) -> datetime:
        return self.times[kind]

    def ordered(self) -> Iterator[tuple[PrayerKind, datetime]]:
        for kind in PRAYER_ORDER:
            yield kind, self.times[kind]

    def is_strictly_increasing(self) -> bool:
        instants = [t for _, t in self.ordered()]
        return all(a < b for a, b in zip(instants, instants[1:]))

    def __eq__(self, other):
        if not isinstance(other, PrayerSchedule):
            return NotImplemented
        return (
            self.date == other.date
            and self.coordinate == other.coordinate
            and self.method_id == other.method_id
            and dict(self.times) == dict(other.times)
            and self.degraded == other.degraded
            and self.high_latitude_strategy == other.high_latitude_strategy
            and self.approximated == other.approximated
        )

    def __hash__(self):
        return hash((self.date, self.coordinate, self.method_id, self.degraded))


@dataclass(frozen=True)
class ScheduleCacheKey:
    """Coordinate rounded to a fixed precision + calendar date + method id."""
    latitude: float
    longitude: float
    date: date
    method_id: str

    @classmethod
    def build(
        cls, coordinate: GeoCoordinate, day: date, method_id: str, precision: int,
    ) -> "ScheduleCacheKey":
        lat, lng = coordinate.rounded(precision)
        return cls(lat, lng, day, method_id.upper())

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}@{self.date.isoformat()}/{self.method_id}"


@dataclass(frozen=True)
class NextPrayer:
    """Result of the next-prayer query."""
    kind: PrayerKind
    instant: datetime

    def minutes_remaining(self, reference: datetime) -> int:
        """Whole minutes from `reference` until the prayer, never negative."""
        return max(0, int((self.instant - reference).total_seconds() // 60))


@dataclass(frozen=True)
class CurrentPrayer:
    """Prayer period in effect: the last marker reached and the one that ends it."""
    kind: PrayerKind
    started: datetime
    next: NextPrayer
