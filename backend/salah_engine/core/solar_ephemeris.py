"""Solar Ephemeris — Julian day, solar declination, and equation of time.

Invariants:
    - Pure and deterministic: identical Julian day → bit-identical output (no caching, no globals)
    - Angles in degrees at the boundary; radians only inside trig calls
    - equation_of_time_minutes stays in roughly ±17 min (wrap handled at the 0°/360° seam)

Design Decisions:
    - Low-precision USNO almanac series (~1 arc-minute until 2100): enough for minute-level
      prayer times, no ephemeris files to ship (ADR: core stays dependency-free)
    - Equation of center uses three terms (1.915, 0.020, 0.0003)
"""

import math
from dataclasses import dataclass

J2000 = 2451545.0


@dataclass(frozen=True)
class SunPosition:
    declination_deg: float
    equation_of_time_minutes: float


def fix_angle(angle: float) -> float:
    """Normalize degrees into [0, 360)."""
    return angle % 360.0


def fix_hour(hours: float) -> float:
    """Normalize hours into [0, 24)."""
    return hours % 24.0


def dsin(deg: float) -> float:
    return math.sin(math.radians(deg))


def dcos(deg: float) -> float:
    return math.cos(math.radians(deg))


def dtan(deg: float) -> float:
    return math.tan(math.radians(deg))


def julian_day(year: int, month: int, day: int) -> float:
    """Gregorian calendar date at 0h UT → Julian day."""
    if month <= 2:
        year -= 1
        month += 12
    a = math.floor(year / 100)
    b = 2 - a + math.floor(a / 4)
    return (
        math.floor(365.25 * (year + 4716))
        + math.floor(30.6001 * (month + 1))
        + day + b - 1524.5
    )


def compute_sun_position(jd: float) -> SunPosition:
    """Declination (deg) and equation of time (min) for a Julian day."""
    d = jd - J2000

    g = fix_angle(357.529 + 0.98560028 * d)   # mean anomaly
    q = fix_angle(280.459 + 0.98564736 * d)   # mean longitude
    l = fix_angle(
        q + 1.915 * dsin(g) + 0.020 * dsin(2 * g) + 0.0003 * dsin(3 * g)
    )
    e = 23.439 - 0.00000036 * d               # obliquity of the ecliptic

    ra = math.degrees(math.atan2(dcos(e) * dsin(l), dcos(l)))
    declination = math.degrees(math.asin(dsin(e) * dsin(l)))

    # q and RA sit on opposite sides of 0° for a few hours around the equinox
    delta = (q - fix_angle(ra) + 180.0) % 360.0 - 180.0
    return SunPosition(declination, 4.0 * delta)
