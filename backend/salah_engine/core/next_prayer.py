"""Next- and current-prayer selection over consecutive daily schedules.

Invariants:
    - Schedules are compared by instant, not by calendar date: yesterday's Isha can fall
      after midnight and today's Fajr can fall on the previous day
    - The next prayer is strictly after the reference; the current one is at or before it

Design Decisions:
    - Callers pass yesterday, today and tomorrow; selection takes the earliest/latest instant
      across all of them, so the same code covers rolled prayers and the Isha→Fajr night
"""

from datetime import datetime
from typing import Iterable

from salah_engine.core.domain_types import CurrentPrayer, NextPrayer, PrayerSchedule


def next_in_schedule(schedule: PrayerSchedule, reference: datetime) -> NextPrayer | None:
    """Earliest instant strictly after `reference`, None when the whole day is past."""
    upcoming = [(instant, kind) for kind, instant in schedule.ordered() if instant > reference]
    if not upcoming:
        return None
    instant, kind = min(upcoming)
    return NextPrayer(kind, instant)


def current_in_schedule(schedule: PrayerSchedule, reference: datetime) -> NextPrayer | None:
    """Latest instant at or before `reference`, None when the day has not started."""
    reached = [(instant, kind) for kind, instant in schedule.ordered() if instant <= reference]
    if not reached:
        return None
    instant, kind = max(reached)
    return NextPrayer(kind, instant)


def select_next_prayer(
    schedules: Iterable[PrayerSchedule],
    reference: datetime,
) -> NextPrayer | None:
    """Earliest instant after `reference` across every schedule given."""
    found = [n for n in (next_in_schedule(s, reference) for s in schedules) if n is not None]
    if not found:
        return None
    return min(found, key=lambda n: n.instant)


def select_current_prayer(
    schedules: Iterable[PrayerSchedule],
    reference: datetime,
) -> CurrentPrayer | None:
    """Period in effect at `reference`: last marker reached and the next one.

    None when the schedules cover no instant before or none after the reference.
    """
    schedules = list(schedules)
    reached = [c for c in (current_in_schedule(s, reference) for s in schedules) if c is not None]
    upcoming = select_next_prayer(schedules, reference)
    if not reached or upcoming is None:
        return None
    latest = max(reached, key=lambda c: c.instant)
    return CurrentPrayer(kind=latest.kind, started=latest.instant, next=upcoming)
