"""Qibla Route — bearing and distance to the Kaaba."""

from fastapi import APIRouter

from salah_engine.core.domain_types import GeoCoordinate
from salah_engine.core.qibla import bearing_to_kaaba, great_circle_distance_km
from salah_engine.schemas.schedule import QiblaResponse

router = APIRouter(prefix="/api/v1/qibla", tags=["qibla"])


@router.get("", response_model=QiblaResponse)
async def get_qibla(lat: float, lng: float):
    observer = GeoCoordinate(lat, lng)
    return QiblaResponse(
        latitude=observer.latitude,
        longitude=observer.longitude,
        bearing_deg=round(bearing_to_kaaba(observer), 4) % 360.0,
        distance_km=round(great_circle_distance_km(observer), 3),
    )
