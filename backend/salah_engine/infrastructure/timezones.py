"""Timezone Resolution — coordinate → IANA name and standard UTC offset.

Invariants:
    - timezone_for() always returns a name pytz accepts; oceans/unknown fall back to Etc/GMT±N
    - standard_offset_hours() excludes DST (the calculator adds DST separately)
    - Unknown names raise pytz.UnknownTimeZoneError (caller error, not absorbed)

Design Decisions:
    - TimezoneFinder is built lazily on first lookup: its data files are large and most
      requests carry an explicit tz
    - Fallback offset = round(longitude / 15), clamped to the Etc/GMT range
"""

import logging
from datetime import date, datetime, time, timedelta

import pytz
from timezonefinder import TimezoneFinder

logger = logging.getLogger(__name__)


def fallback_timezone_name(longitude: float) -> str:
    """Nautical zone for a longitude. Etc/GMT signs are inverted (Etc/GMT-3 is UTC+3)."""
    offset = max(-12, min(14, round(longitude / 15.0)))
    if offset == 0:
        return "Etc/GMT"
    return f"Etc/GMT{-offset:+d}"


class TimezoneFinderResolver:
    """TimezoneResolver backed by timezonefinder + pytz."""

    def __init__(self, finder: TimezoneFinder | None = None):
        self._finder = finder

    @property
    def finder(self) -> TimezoneFinder:
        if self._finder is None:
            self._finder = TimezoneFinder()
        return self._finder

    def timezone_for(self, latitude: float, longitude: float) -> str:
        name = self.finder.timezone_at(lat=latitude, lng=longitude)
        if name:
            return name
        fallback = fallback_timezone_name(longitude)
        logger.info(
            f"No timezone at ({latitude:.4f}, {longitude:.4f}), using {fallback}",
        )
        return fallback

    def standard_offset_hours(self, timezone_name: str, day: date) -> float:
        tz = pytz.timezone(timezone_name)
        local_noon = tz.localize(datetime.combine(day, time(12, 0)))
        offset = local_noon.utcoffset() - (local_noon.dst() or timedelta(0))
        return offset.total_seconds() / 3600.0
