"""Splits a finished route into day segments by cumulative distance."""

import geo
from geo import Coordinate


def split_days(polyline: list[Coordinate], day_count: int) -> list[int]:
    """Returns ``day_count - 1`` break indices.

    Boundary k is placed at the point whose cumulative distance is closest to
    ``k / day_count`` of the route's length. Breaks never land on the first
    point, and when the polyline has at least ``day_count + 1`` points they
    never land on the last one either, so every day covers at least one
    segment and the indices are strictly increasing. Sparser polylines clamp
    the remaining breaks to the last index, so the tail repeats it.
    """
    if day_count <= 1 or len(polyline) < 2:
        return []

    cumulative = geo.cumulative_km(polyline)
    total = cumulative[-1]
    last = len(polyline) - 1
    roomy = len(polyline) >= day_count + 1

    breaks: list[int] = []
    previous = 0
    for k in range(1, day_count):
        target = total * k / day_count
        idx = min(range(len(cumulative)), key=lambda i: abs(cumulative[i] - target))
        idx = max(idx, previous + 1)
        # Leave one index per remaining boundary. Without room, later breaks
        # pile up on the last index and stop strictly increasing.
        upper = last - (day_count - k) if roomy else last
        idx = min(idx, upper)
        breaks.append(idx)
        previous = idx
    return breaks


def day_distances(
    polyline: list[Coordinate], breaks: list[int], total_km: float
) -> list[float]:
    """Returns per-day distances in km, scaled so they sum to ``total_km``.

    Scaling keeps the figures consistent with a total reported by a routing
    service, which can differ slightly from the great-circle length.
    """
    cumulative = geo.cumulative_km(polyline)
    if not cumulative or cumulative[-1] <= 0:
        return [0.0 for _ in range(len(breaks) + 1)]

    scale = total_km / cumulative[-1]
    edges = [0, *breaks, len(polyline) - 1]
    return [
        round((cumulative[edges[i + 1]] - cumulative[edges[i]]) * scale, 2)
        for i in range(len(edges) - 1)
    ]
