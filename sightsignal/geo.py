"""Geometry primitives: point-in-polygon, haversine distance, centroid."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from sightsignal.models import LatLng, Polygon

EARTH_RADIUS_KM = 6371.0


def point_in_polygon(polygon: Polygon, point: LatLng) -> bool:
    """Ray-casting test with lng as x and lat as y.

    Polygons with fewer than 3 vertices never contain anything.
    """
    points = polygon.points
    if len(points) < 3:
        return False

    inside = False
    j = len(points) - 1
    for i in range(len(points)):
        xi, yi = points[i].lng, points[i].lat
        xj, yj = points[j].lng, points[j].lat
        # (yi > lat) != (yj > lat) guarantees yj != yi below
        if (yi > point.lat) != (yj > point.lat):
            x_cross = (xj - xi) * (point.lat - yi) / (yj - yi) + xi
            if point.lng < x_cross:
                inside = not inside
        j = i
    return inside


def distance_km(p1: LatLng, p2: LatLng) -> float:
    """Great-circle distance in kilometres (haversine)."""
    d_lat = math.radians(p2.lat - p1.lat)
    d_lng = math.radians(p2.lng - p1.lng)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(p1.lat))
        * math.cos(math.radians(p2.lat))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def polygon_centroid(points: Sequence[LatLng]) -> Optional[LatLng]:
    """Vertex mean, not an area-weighted centroid. None for no points."""
    if not points:
        return None
    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return LatLng(lat=lat, lng=lng)


def validate_lat_lng(point: LatLng) -> LatLng:
    """Raise ValueError unless lat ∈ [-90, 90] and lng ∈ [-180, 180]."""
    if not math.isfinite(point.lat) or not -90 <= point.lat <= 90:
        raise ValueError(f"Latitude is invalid: {point.lat!r}")
    if not math.isfinite(point.lng) or not -180 <= point.lng <= 180:
        raise ValueError(f"Longitude is invalid: {point.lng!r}")
    return point


def validate_polygon(polygon: Polygon) -> Polygon:
    """Raise ValueError for polygons with <3 points or invalid vertices."""
    if len(polygon.points) < 3:
        raise ValueError("Polygon must have at least 3 points.")
    for point in polygon.points:
        validate_lat_lng(point)
    return polygon
