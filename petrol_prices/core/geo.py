"""Small geometry helpers for coordinate-based lookups."""

import math
from typing import Optional

from shapely.geometry import Point, Polygon, box

EARTH_RADIUS_KM = 6371.0


def is_valid_coordinate(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """A coordinate pair is usable when both parts are present, in range and not (0, 0)."""
    if latitude is None or longitude is None:
        return False
    if math.isnan(latitude) or math.isnan(longitude):
        return False
    if latitude == 0 and longitude == 0:
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    # Great-circle distance between two lat/lon points in km
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def bbox_polygon(lat_min: float, lat_max: float, lng_min: float, lng_max: float) -> Polygon:
    """Rectangular region shape. Shapely works in (x, y), i.e. (lng, lat)."""
    return box(lng_min, lat_min, lng_max, lat_max)


def point_in_polygon(latitude: float, longitude: float, polygon: Polygon) -> bool:
    """Points on an edge or vertex count as inside."""
    return polygon.covers(Point(longitude, latitude))
