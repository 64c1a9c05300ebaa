"""Request-scoped wiring: the shared schedule service and location parsing."""

import pytz
from fastapi import Request

from salah_engine.core.domain_types import GeoCoordinate, ObserverLocation
from salah_engine.core.errors import InvalidTimezoneError
from salah_engine.services.schedule_service import PrayerScheduleService


def get_schedule_service(request: Request) -> PrayerScheduleService:
    """Service built once in the lifespan. Tests override this dependency."""
    return request.app.state.schedule_service


def build_location(
    lat: float, lng: float, tz: str | None = None, name: str | None = None,
) -> ObserverLocation:
    """Raises InvalidCoordinateError / InvalidTimezoneError (both 400)."""
    coordinate = GeoCoordinate(lat, lng)
    if tz is not None:
        try:
            pytz.timezone(tz)
        except pytz.UnknownTimeZoneError:
            raise InvalidTimezoneError(tz)
    return ObserverLocation(coordinate, timezone_name=tz, name=name)
