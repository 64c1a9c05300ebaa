"""Qibla — initial great-circle bearing and distance to the Kaaba."""

import math

from salah_engine.core.domain_types import GeoCoordinate

KAABA = GeoCoordinate(21.4225, 39.8262)
EARTH_RADIUS_KM = 6371.0088


def bearing_to_kaaba(observer: GeoCoordinate) -> float:
    """Degrees clockwise from true north, in [0, 360).

    At the Kaaba itself the direction is undefined; atan2(0, 0) yields 0.0 and we return it.
    """
    lat1 = math.radians(observer.latitude)
    lat2 = math.radians(KAABA.latitude)
    d_lon = math.radians(KAABA.longitude - observer.longitude)

    y = math.sin(d_lon)
    x = math.cos(lat1) * math.tan(lat2) - math.sin(lat1) * math.cos(d_lon)
    bearing = math.degrees(math.atan2(y, x)) % 360.0
    # -0.0 % 360 and tiny negatives can round up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def great_circle_distance_km(a: GeoCoordinate, b: GeoCoordinate = KAABA) -> float:
    """Haversine distance."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))
