"""Schedule Routes — daily schedule, next-prayer and current-prayer queries.

Invariants:
    - Coordinates validated by GeoCoordinate (NaN/out-of-range → 400 INVALID_COORDINATE)
    - Remote failures never surface here: a degraded schedule is still a 200
    - Missing `date` means today in the location's timezone
"""

import logging
from datetime import date

import pytz
from fastapi import APIRouter, Depends, Query

from salah_engine.api.dependencies import build_location, get_schedule_service
from salah_engine.schemas.schedule import (
    CurrentPrayerResponse,
    NextPrayerResponse,
    ScheduleResponse,
)
from salah_engine.services.schedule_service import PrayerScheduleService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/schedule", tags=["schedule"])


@router.get("", response_model=ScheduleResponse)
async def get_schedule(
    lat: float,
    lng: float,
    day: date | None = Query(None, alias="date"),
    tz: str | None = None,
    name: str | None = Query(None, max_length=200),
    method: str | None = Query(None, max_length=32),
    service: PrayerScheduleService = Depends(get_schedule_service),
):
    location = build_location(lat, lng, tz, name)
    if day is None:
        location = await service.with_timezone(location)
        now = service.clock.now()
        day = now.astimezone(pytz.timezone(location.timezone_name)).date()
    schedule = await service.get_schedule(location, day, method)
    return ScheduleResponse.from_domain(schedule)


@router.get("/next", response_model=NextPrayerResponse)
async def get_next_prayer(
    lat: float,
    lng: float,
    tz: str | None = None,
    name: str | None = Query(None, max_length=200),
    method: str | None = Query(None, max_length=32),
    service: PrayerScheduleService = Depends(get_schedule_service),
):
    location = build_location(lat, lng, tz, name)
    now = service.clock.now()
    nxt = await service.get_next_prayer(location, now, method)
    return NextPrayerResponse.from_domain(nxt, now)


@router.get("/current", response_model=CurrentPrayerResponse)
async def get_current_prayer(
    lat: float,
    lng: float,
    tz: str | None = None,
    name: str | None = Query(None, max_length=200),
    method: str | None = Query(None, max_length=32),
    service: PrayerScheduleService = Depends(get_schedule_service),
):
    location = build_location(lat, lng, tz, name)
    now = service.clock.now()
    current = await service.get_current_prayer(location, now, method)
    return CurrentPrayerResponse.from_domain(current, now)
