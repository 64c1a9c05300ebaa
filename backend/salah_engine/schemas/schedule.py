"""Schedule Schemas — Pydantic response models for the HTTP surface.

Invariants:
    - Schemas mirror core value objects; they never compute prayer times themselves
    - Instants serialize as ISO-8601 with offset (absolute, consumable by notification schedulers)

Design Decisions:
    - from_domain() classmethods keep the core free of pydantic
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from salah_engine.core.calculation_methods import CalculationMethodProfile
from salah_engine.core.domain_types import CurrentPrayer, NextPrayer, PrayerSchedule


class ScheduleResponse(BaseModel):
    """One day's six prayer instants."""
    day: date
    latitude: float
    longitude: float
    method_id: str
    timezone: str | None
    degraded: bool
    high_latitude_strategy: str
    approximated: list[str]
    times: dict[str, datetime]

    @classmethod
    def from_domain(cls, schedule: PrayerSchedule) -> "ScheduleResponse":
        return cls(
            day=schedule.date,
            latitude=schedule.coordinate.latitude,
            longitude=schedule.coordinate.longitude,
            method_id=schedule.method_id,
            timezone=schedule.timezone_name,
            degraded=schedule.degraded,
            high_latitude_strategy=schedule.high_latitude_strategy.value,
            approximated=sorted(k.value for k in schedule.approximated),
            times={kind.value: instant for kind, instant in schedule.ordered()},
        )


class NextPrayerResponse(BaseModel):
    kind: str
    name: str
    instant: datetime
    seconds_remaining: int = Field(ge=0)
    minutes_remaining: int = Field(ge=0)

    @classmethod
    def from_domain(cls, nxt: NextPrayer, now: datetime) -> "NextPrayerResponse":
        return cls(
            kind=nxt.kind.value,
            name=nxt.kind.display_name,
            instant=nxt.instant,
            seconds_remaining=max(0, int((nxt.instant - now).total_seconds())),
            minutes_remaining=nxt.minutes_remaining(now),
        )


class CurrentPrayerResponse(BaseModel):
    """Prayer period in effect and the prayer that ends it."""
    kind: str
    name: str
    started: datetime
    next: NextPrayerResponse

    @classmethod
    def from_domain(cls, current: CurrentPrayer, now: datetime) -> "CurrentPrayerResponse":
        return cls(
            kind=current.kind.value,
            name=current.kind.display_name,
            started=current.started,
            next=NextPrayerResponse.from_domain(current.next, now),
        )


class QiblaResponse(BaseModel):
    latitude: float
    longitude: float
    bearing_deg: float = Field(ge=0, lt=360)
    distance_km: float = Field(ge=0)


class MethodResponse(BaseModel):
    """Built-in calculation method as exposed by GET /methods."""
    id: str
    name: str
    fajr_angle_deg: float
    isha_angle_deg: float | None
    isha_interval_minutes: int | None
    maghrib_angle_deg: float
    maghrib_interval_minutes: int

    @classmethod
    def from_domain(cls, profile: CalculationMethodProfile) -> "MethodResponse":
        return cls(
            id=profile.id,
            name=profile.name,
            fajr_angle_deg=profile.fajr_angle_deg,
            isha_angle_deg=None if profile.isha_is_interval else profile.isha_angle_deg,
            isha_interval_minutes=(
                profile.isha_interval_minutes if profile.isha_is_interval else None
            ),
            maghrib_angle_deg=profile.maghrib_angle_deg,
            maghrib_interval_minutes=profile.maghrib_interval_minutes,
        )
