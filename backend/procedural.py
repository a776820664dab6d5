"""Procedural route geometry.

Builds a route from pure geometry around a center point with no network
access. Used as the primary generator for the procedural endpoint and as the
fallback whenever AI waypoints or road snapping don't produce a usable route.

Hikes are closed rings around the center; bike routes are open, gently
curving paths leaving the center.
"""

import math

import geo
from geo import Coordinate
from models import ActivityType

# ---------------------------------------------------------------------------
# Distance bands: per-day kilometre ranges for each activity.
# ---------------------------------------------------------------------------

DISTANCE_BANDS_KM: dict[str, tuple[float, float]] = {
    "hike": (5.0, 15.0),
    "bike": (30.0, 60.0),
}

# -- Ring (hike) shape ----------------------------------------------------
MIN_RING_POINTS: int = 8
RING_POINTS_PER_DAY: int = 8

# -- Open path (bike) shape -----------------------------------------------
MIN_PATH_SEGMENTS: int = 8
PATH_SEGMENTS_PER_DAY: int = 8
BIKE_START_HEADING: float = 45.0    # degrees clockwise from north
BIKE_TOTAL_TURN_DEG: float = 90.0   # total heading change start to finish


def band_for(activity: ActivityType) -> tuple[float, float]:
    """Returns the (min, max) km/day band for ``activity``."""
    return DISTANCE_BANDS_KM[activity]


def target_distance_km(activity: ActivityType, day_count: int) -> float:
    """Returns the band midpoint multiplied by the number of days."""
    low, high = band_for(activity)
    return day_count * (low + high) / 2


def build_route(
    center: Coordinate,
    target_km: float,
    activity: ActivityType,
    day_count: int = 1,
) -> list[Coordinate]:
    """Returns a polyline of roughly ``target_km`` built around ``center``.

    A non-positive target is clamped to the bottom of the band for
    ``day_count`` days so the route is never degenerate.
    """
    if not target_km > 0:
        target_km = day_count * band_for(activity)[0]

    if activity == "hike":
        return _ring(center, target_km, max(MIN_RING_POINTS, RING_POINTS_PER_DAY * day_count))
    return _open_path(
        center, target_km, max(MIN_PATH_SEGMENTS, PATH_SEGMENTS_PER_DAY * day_count)
    )


def _ring(center: Coordinate, perimeter_km: float, n_points: int) -> list[Coordinate]:
    """Returns a closed N-gon around ``center`` with the given perimeter."""
    # Side of an inscribed regular N-gon is 2 r sin(pi / N).
    radius_km = perimeter_km / (2 * n_points * math.sin(math.pi / n_points))
    step = 360.0 / n_points
    points = [geo.destination(center, i * step, radius_km) for i in range(n_points)]
    points.append(points[0])
    return points


def _open_path(center: Coordinate, length_km: float, n_segments: int) -> list[Coordinate]:
    """Returns an open path of ``n_segments`` equal legs starting at ``center``."""
    segment_km = length_km / n_segments
    turn = BIKE_TOTAL_TURN_DEG / n_segments
    points = [center]
    heading = BIKE_START_HEADING
    for _ in range(n_segments):
        points.append(geo.destination(points[-1], heading, segment_km))
        heading += turn
    return points
