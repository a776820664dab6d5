"""Road/trail snapping.

Turns a coarse waypoint sequence into a path that follows real roads and
trails using an external routing service. Two backends are available:

  GoogleDirectionsSnapper: Google Directions API via the googlemaps client
                            (``walking`` / ``bicycling`` travel modes).
  OsrmSnapper:             an OSRM server's ``/route/v1`` HTTP endpoint
                            (``foot`` / ``bike`` profiles).

Every failure (network error, timeout, empty or malformed response, no route
between waypoints) surfaces as a single ``SnapFailed``. Snappers make exactly
one request per call and never retry; the caller decides what to fall back to.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import googlemaps
import googlemaps.convert
import httpx

from geo import Coordinate
from models import ActivityType

logger = logging.getLogger(__name__)

# Google Directions accepts an origin, a destination and at most 23
# intermediate waypoints on standard plans.
MAX_SNAP_WAYPOINTS: int = 25

GOOGLE_TRAVEL_MODES: dict[str, str] = {"hike": "walking", "bike": "bicycling"}
OSRM_PROFILES: dict[str, str] = {"hike": "foot", "bike": "bike"}

DEFAULT_OSRM_BASE_URL = "https://router.project-osrm.org"


class SnapFailed(Exception):
    """The routing service could not produce a usable path."""


@dataclass(frozen=True)
class SnappedRoute:
    """A road/trail-following path and the distance reported for it."""

    polyline: list[Coordinate]
    distance_km: float


class RouteSnapper(Protocol):
    """Anything that can snap waypoints onto real infrastructure."""

    async def snap(
        self, waypoints: list[Coordinate], activity: ActivityType
    ) -> SnappedRoute:
        ...


def downsample(waypoints: list[Coordinate], limit: int = MAX_SNAP_WAYPOINTS) -> list[Coordinate]:
    """Returns at most ``limit`` evenly spaced waypoints, keeping both ends."""
    n = len(waypoints)
    if n <= limit:
        return list(waypoints)
    idxs = sorted({round(i * (n - 1) / (limit - 1)) for i in range(limit)})
    return [waypoints[i] for i in idxs]


def _merge_segments(segments: list[list[Coordinate]]) -> list[Coordinate]:
    """Concatenates path segments, dropping the shared point at each joint."""
    points: list[Coordinate] = []
    for segment in segments:
        if points and segment and segment[0] == points[-1]:
            segment = segment[1:]
        points.extend(segment)
    return points


# ---------------------------------------------------------------------------
# Google Directions
# ---------------------------------------------------------------------------


class GoogleDirectionsSnapper:
    """Snaps waypoints with the Google Directions API."""

    def __init__(self, maps_client: googlemaps.Client, *, timeout_s: float = 10.0):
        self._maps = maps_client
        self._timeout_s = timeout_s

    async def snap(
        self, waypoints: list[Coordinate], activity: ActivityType
    ) -> SnappedRoute:
        if len(waypoints) < 2:
            raise SnapFailed("At least two waypoints are required.")

        points = downsample(waypoints)
        as_str = [f"{lat},{lng}" for lat, lng in points]
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    self._maps.directions,
                    origin=as_str[0],
                    destination=as_str[-1],
                    waypoints=as_str[1:-1],
                    mode=GOOGLE_TRAVEL_MODES[activity],
                    optimize_waypoints=False,
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise SnapFailed("Directions API timed out.") from exc
        except Exception as exc:  # noqa: BLE001
            raise SnapFailed(f"Directions API error: {exc}") from exc

        if not result:
            raise SnapFailed("Directions API returned no routes.")
        return _parse_directions(result[0])


def _parse_directions(route: dict[str, Any]) -> SnappedRoute:
    """Builds a dense path from step-level polylines of a Directions route.

    The overview polyline is heavily simplified, so each step's own polyline
    is decoded instead. Falls back to the overview if steps carry none.
    """
    try:
        legs = route["legs"]
        distance_m = sum(leg["distance"]["value"] for leg in legs)
        segments = [
            _decode(step["polyline"]["points"])
            for leg in legs
            for step in leg.get("steps", [])
            if step.get("polyline", {}).get("points")
        ]
        points = _merge_segments(segments)
        if not points:
            points = _decode(route.get("overview_polyline", {}).get("points", ""))
    except (KeyError, TypeError, ValueError, IndexError) as exc:
        raise SnapFailed(f"Malformed Directions response: {exc}") from exc

    if len(points) < 2 or distance_m <= 0:
        raise SnapFailed("Directions route has no usable geometry.")
    return SnappedRoute(polyline=points, distance_km=distance_m / 1000)


def _decode(encoded: str) -> list[Coordinate]:
    if not encoded:
        return []
    return [
        (float(p["lat"]), float(p["lng"]))
        for p in googlemaps.convert.decode_polyline(encoded)
    ]


# ---------------------------------------------------------------------------
# OSRM
# ---------------------------------------------------------------------------


class OsrmSnapper:
    """Snaps waypoints with an OSRM routing server.

    OSRM takes and returns coordinates in ``lng,lat`` order; the translation
    happens here and nowhere else.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OSRM_BASE_URL,
        *,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._client = client

    async def snap(
        self, waypoints: list[Coordinate], activity: ActivityType
    ) -> SnappedRoute:
        if len(waypoints) < 2:
            raise SnapFailed("At least two waypoints are required.")

        coords = ";".join(f"{lng},{lat}" for lat, lng in downsample(waypoints))
        url = f"{self._base_url}/route/v1/{OSRM_PROFILES[activity]}/{coords}"
        params = {"overview": "full", "geometries": "geojson"}

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self._timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    response = await client.get(url, params=params)
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise SnapFailed("OSRM request timed out.") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise SnapFailed(f"OSRM request failed: {exc}") from exc

        return _parse_osrm(payload)


def _parse_osrm(payload: Any) -> SnappedRoute:
    """Extracts the first route of an OSRM response as (lat, lng) points."""
    if not isinstance(payload, dict) or payload.get("code") != "Ok":
        code = payload.get("code") if isinstance(payload, dict) else None
        raise SnapFailed(f"OSRM returned no route (code={code!r}).")
    try:
        route = payload["routes"][0]
        points = [(float(lat), float(lng)) for lng, lat in route["geometry"]["coordinates"]]
        distance_km = float(route["distance"]) / 1000
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise SnapFailed(f"Malformed OSRM response: {exc}") from exc

    if len(points) < 2 or distance_km <= 0:
        raise SnapFailed("OSRM route has no usable geometry.")
    return SnappedRoute(polyline=points, distance_km=distance_km)
