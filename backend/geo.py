"""Spherical geometry helpers shared by the route engine.

Coordinates are ``(lat, lng)`` tuples in degrees throughout the backend.
Distances are great-circle distances on a sphere of Earth's mean radius.
"""

import math

Coordinate = tuple[float, float]
"""A ``(lat, lng)`` pair in degrees."""

BoundingBox = tuple[float, float, float, float]
"""``(min_lat, min_lng, max_lat, max_lng)`` in degrees."""

EARTH_RADIUS_KM: float = 6371.0

# Kilometres per degree of latitude (and of longitude at the equator).
KM_PER_DEGREE: float = 111.32


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Returns the haversine distance in kilometres between two points."""
    lat1, lat2 = math.radians(a[0]), math.radians(b[0])
    dlat = lat2 - lat1
    dlng = math.radians(b[1] - a[1])
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    )
    # Rounding can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, h)))


def destination(
    origin: Coordinate, bearing_deg: float, distance: float
) -> Coordinate:
    """Returns the point reached travelling ``distance`` km from ``origin``.

    Solves the direct problem on the sphere: start at ``origin`` and follow
    the great circle leaving on the initial ``bearing_deg`` (clockwise from
    north). The resulting longitude is normalised to [-180, 180).
    """
    bearing = math.radians(bearing_deg % 360.0)
    delta = distance / EARTH_RADIUS_KM
    lat1 = math.radians(origin[0])
    lng1 = math.radians(origin[1])

    sin_lat2 = (
        math.sin(lat1) * math.cos(delta)
        + math.cos(lat1) * math.sin(delta) * math.cos(bearing)
    )
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lng2 = lng1 + math.atan2(
        math.sin(bearing) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * sin_lat2,
    )
    lng_deg = (math.degrees(lng2) + 540.0) % 360.0 - 180.0
    return math.degrees(lat2), lng_deg


def cumulative_km(points: list[Coordinate]) -> list[float]:
    """Returns the running distance at each point, starting at 0."""
    totals = [0.0] * len(points)
    for i in range(1, len(points)):
        totals[i] = totals[i - 1] + distance_km(points[i - 1], points[i])
    return totals


def path_length_km(points: list[Coordinate]) -> float:
    """Returns the summed segment length of a polyline in kilometres."""
    return sum(
        distance_km(points[i - 1], points[i]) for i in range(1, len(points))
    )


def bounding_box(
    center: Coordinate, margin_lat_deg: float, margin_lng_deg: float
) -> BoundingBox:
    """Returns a box of the given half-widths around ``center``.

    Latitude is clamped to the poles; longitude is not wrapped, so boxes
    straddling the antimeridian extend past ±180.
    """
    lat, lng = center
    return (
        max(-90.0, lat - margin_lat_deg),
        lng - margin_lng_deg,
        min(90.0, lat + margin_lat_deg),
        lng + margin_lng_deg,
    )


def in_box(point: Coordinate, box: BoundingBox) -> bool:
    """Returns True if ``point`` lies inside ``box`` (edges included)."""
    min_lat, min_lng, max_lat, max_lng = box
    lat, lng = point
    if not min_lat <= lat <= max_lat:
        return False
    # Try the point's longitude shifted by a full turn for boxes that
    # cross the antimeridian.
    return any(min_lng <= candidate <= max_lng for candidate in (lng, lng - 360, lng + 360))
