"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Remote fetch, wall-clock reads, and timezone lookups are accessed through Protocol types
    - Implementations provided by shell via dependency injection (tests pass fakes)

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Only the remote provider is async: it is the single awaitable IO in the engine;
      clock and timezone lookups are sync and cheap
"""

from datetime import date, datetime
from typing import Protocol

from salah_engine.core.calculation_methods import CalculationMethodProfile


class RemoteTimingsProvider(Protocol):
    """Authoritative time source returning local HH:mm strings keyed by prayer name."""
    async def fetch_timings(
        self,
        latitude: float,
        longitude: float,
        day: date,
        method: CalculationMethodProfile,
        timezone_name: str | None,
    ) -> dict[str, str]: ...


class Clock(Protocol):
    """Current instant as an aware datetime."""
    def now(self) -> datetime: ...


class TimezoneResolver(Protocol):
    """Timezone name for a coordinate and its standard UTC offset on a date."""
    def timezone_for(self, latitude: float, longitude: float) -> str: ...
    def standard_offset_hours(self, timezone_name: str, day: date) -> float: ...
