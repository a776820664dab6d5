"""Hike and bike route generation pipeline.

Routes are produced by a small state machine so each fallback decision is a
single, testable transition:

  PROPOSE_WAYPOINTS    Claude names places near the center; they are geocoded.
                       >= 2 usable points -> SNAP, else PROCEDURAL_FALLBACK.
  SNAP                 Snap center + waypoints onto roads/trails.
                       Success -> VALIDATE, failure -> PROCEDURAL_FALLBACK.
  VALIDATE             Check the distance against the activity's band.
                       In band -> DONE. Out of band: an AI route falls back to
                       PROCEDURAL_FALLBACK, a re-snapped procedural route is
                       replaced by the raw procedural polyline -> DONE.
  PROCEDURAL_FALLBACK  Build ring/path geometry at the band midpoint.
                       -> OPTIONAL_RESNAP when snapping is enabled, else DONE.
  OPTIONAL_RESNAP      Snap the procedural waypoints once.
                       Success -> VALIDATE, failure -> DONE (raw geometry).

Resolving the center is the only step that can fail a request; after that
the pipeline always yields a route. Hikes are closed loops whichever branch
produced them. The finished polyline is split into days by distance.
"""

import enum
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import googlemaps
import googlemaps.convert
from anthropic import AsyncAnthropic

import day_split
import geo
import procedural
import waypoints
from geo import Coordinate
from models import (
    ActivityType,
    ProceduralRouteRequest,
    RouteCenter,
    RouteMeta,
    RouteRequest,
    RouteResult,
    RouteSource,
)
from snapping import (
    DEFAULT_OSRM_BASE_URL,
    GoogleDirectionsSnapper,
    OsrmSnapper,
    RouteSnapper,
    SnapFailed,
    SnappedRoute,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Route-generation rules, tuneable constants in one place.
# ---------------------------------------------------------------------------

# A route is in band if its distance lies within the day-scaled band widened
# by this fraction on both ends.
BAND_TOLERANCE: float = 0.10
# Fewer AI waypoints than this skips straight to procedural geometry.
MIN_SNAP_WAYPOINTS: int = 2
# Upper bound on any single geocoding, Claude or routing call.
DEFAULT_EXTERNAL_CALL_TIMEOUT_S: float = 10.0


class Stage(enum.Enum):
    PROPOSE_WAYPOINTS = "propose_waypoints"
    SNAP = "snap"
    VALIDATE = "validate"
    PROCEDURAL_FALLBACK = "procedural_fallback"
    OPTIONAL_RESNAP = "optional_resnap"
    DONE = "done"


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


async def generate(
    request: RouteRequest,
    *,
    maps_client: googlemaps.Client | None = None,
    claude_client: AsyncAnthropic | None = None,
    snapper: RouteSnapper | None = None,
) -> RouteResult:
    """Generates an AI-assisted route for [request].

    Args:
        request: Location (or explicit center), day count and activity.
        maps_client: Optional pre-constructed Google Maps client. Created from
            ``GOOGLE_MAPS_API_KEY`` if omitted.
        claude_client: Optional pre-constructed Anthropic client. Created from
            ``ANTHROPIC_API_KEY`` if omitted; without a key, proposals are
            skipped.
        snapper: Optional road/trail snapper. Chosen by ``ROUTING_PROVIDER``
            if omitted.

    Raises:
        waypoints.LocationNotFound: If the location can't be geocoded.
    """
    timeout_s = external_call_timeout_s()
    _maps = maps_client or default_maps_client(timeout_s)
    _claude = claude_client or _default_claude_client(timeout_s)
    _snapper = snapper or _default_snapper(_maps, timeout_s)

    logger.info(
        "Route generation started: %s, %d day(s), %s",
        request.location or request.center,
        request.day_count,
        request.activity_type,
    )
    center, center_name = await _resolve_center(_maps, request, timeout_s)
    context = (request.location or "").strip() or center_name or ""

    async def propose() -> list[Coordinate]:
        proposal = await waypoints.propose_waypoints(
            context,
            request.day_count,
            request.activity_type,
            maps_client=_maps,
            claude_client=_claude,
            center=center,
            timeout_s=timeout_s,
        )
        return proposal.waypoints

    pipeline = RoutePipeline(
        center,
        request.day_count,
        request.activity_type,
        snapper=_snapper,
        propose=propose,
        resnap=True,
    )
    await pipeline.run(Stage.PROPOSE_WAYPOINTS)
    return _build_result(pipeline, center_name)


async def generate_procedural(
    request: ProceduralRouteRequest,
    *,
    maps_client: googlemaps.Client | None = None,
    snapper: RouteSnapper | None = None,
) -> RouteResult:
    """Generates a route from procedural geometry without AI proposals.

    The procedural waypoints are snapped once when ``snap_to_roads`` is set
    and a snapper is available.

    Raises:
        waypoints.LocationNotFound: If the location can't be geocoded.
    """
    timeout_s = external_call_timeout_s()
    _maps = maps_client
    if _maps is None and request.center is None:
        _maps = default_maps_client(timeout_s)
    _snapper = None
    if request.snap_to_roads:
        _snapper = snapper or _default_snapper(
            _maps or default_maps_client(timeout_s), timeout_s
        )

    center, center_name = await _resolve_center(_maps, request, timeout_s)
    pipeline = RoutePipeline(
        center,
        request.day_count,
        request.activity_type,
        snapper=_snapper,
        resnap=request.snap_to_roads,
    )
    await pipeline.run(Stage.PROCEDURAL_FALLBACK)
    return _build_result(pipeline, center_name)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


@dataclass
class RoutePipeline:
    """Runs the generation stages for one request.

    ``propose`` returns geocoded AI waypoints; it is only needed when the
    pipeline starts at PROPOSE_WAYPOINTS.
    """

    center: Coordinate
    day_count: int
    activity: ActivityType
    snapper: RouteSnapper | None = None
    propose: Callable[[], Awaitable[list[Coordinate]]] | None = None
    resnap: bool = True

    waypoints: list[Coordinate] = field(default_factory=list)
    candidate: SnappedRoute | None = None
    candidate_source: RouteSource = "ai_snapped"
    procedural_route: list[Coordinate] = field(default_factory=list)
    polyline: list[Coordinate] = field(default_factory=list)
    distance_km: float = 0.0
    source: RouteSource = "procedural"
    stages: list[Stage] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    async def run(self, start: Stage) -> None:
        handlers = {
            Stage.PROPOSE_WAYPOINTS: self._propose_waypoints,
            Stage.SNAP: self._snap,
            Stage.VALIDATE: self._validate,
            Stage.PROCEDURAL_FALLBACK: self._procedural_fallback,
            Stage.OPTIONAL_RESNAP: self._optional_resnap,
        }
        stage = start
        while stage is not Stage.DONE:
            self.stages.append(stage)
            stage = await handlers[stage]()
            logger.info("Pipeline: %s -> %s", self.stages[-1].value, stage.value)
        self.stages.append(Stage.DONE)

    async def _propose_waypoints(self) -> Stage:
        if self.propose is not None:
            self.waypoints = await self.propose()
        if len(self.waypoints) >= MIN_SNAP_WAYPOINTS:
            return Stage.SNAP
        self.issues.append(f"Only {len(self.waypoints)} AI waypoint(s) available.")
        return Stage.PROCEDURAL_FALLBACK

    async def _snap(self) -> Stage:
        sequence = [self.center, *self.waypoints]
        if self.activity == "hike":
            sequence.append(self.center)
        snapped = await self._try_snap(sequence)
        if snapped is None:
            return Stage.PROCEDURAL_FALLBACK
        self.candidate = snapped
        self.candidate_source = "ai_snapped"
        return Stage.VALIDATE

    async def _validate(self) -> Stage:
        polyline, distance = _close_loop(
            self.candidate.polyline, self.candidate.distance_km, self.activity
        )
        issues = _check_band(distance, self.activity, self.day_count)
        if not issues:
            self.polyline, self.distance_km = polyline, distance
            self.source = self.candidate_source
            return Stage.DONE

        logger.warning("%s route rejected: %s", self.candidate_source, issues)
        self.issues.extend(issues)
        if self.candidate_source == "ai_snapped":
            return Stage.PROCEDURAL_FALLBACK
        # The raw procedural geometry is already in place.
        return Stage.DONE

    async def _procedural_fallback(self) -> Stage:
        target = procedural.target_distance_km(self.activity, self.day_count)
        self.procedural_route = procedural.build_route(
            self.center, target, self.activity, self.day_count
        )
        self.polyline = self.procedural_route
        self.distance_km = geo.path_length_km(self.procedural_route)
        self.source = "procedural"
        if self.resnap and self.snapper is not None:
            return Stage.OPTIONAL_RESNAP
        return Stage.DONE

    async def _optional_resnap(self) -> Stage:
        snapped = await self._try_snap(self.procedural_route)
        if snapped is None:
            return Stage.DONE
        self.candidate = snapped
        self.candidate_source = "procedural_snapped"
        return Stage.VALIDATE

    async def _try_snap(self, sequence: list[Coordinate]) -> SnappedRoute | None:
        if self.snapper is None:
            self.issues.append("No routing service configured.")
            return None
        try:
            return await self.snapper.snap(sequence, self.activity)
        except SnapFailed as exc:
            logger.warning("Snapping failed: %s", exc)
            self.issues.append(str(exc))
            return None


def _check_band(distance_km: float, activity: ActivityType, day_count: int) -> list[str]:
    """Returns the distance issue for a route, or [] when it is in band."""
    low, high = procedural.band_for(activity)
    min_km = day_count * low * (1 - BAND_TOLERANCE)
    max_km = day_count * high * (1 + BAND_TOLERANCE)
    if min_km <= distance_km <= max_km:
        return []
    return [
        f"Route is {distance_km:.1f} km; {day_count} day(s) of {activity} "
        f"needs {min_km:.1f}–{max_km:.1f} km."
    ]


def _close_loop(
    polyline: list[Coordinate], distance_km: float, activity: ActivityType
) -> tuple[list[Coordinate], float]:
    """Appends the start point to a hike that doesn't already end there."""
    if activity != "hike" or polyline[0] == polyline[-1]:
        return polyline, distance_km
    closing = geo.distance_km(polyline[-1], polyline[0])
    return [*polyline, polyline[0]], distance_km + closing


def _build_result(pipeline: RoutePipeline, center_name: str | None) -> RouteResult:
    polyline, distance = _close_loop(
        pipeline.polyline, pipeline.distance_km, pipeline.activity
    )
    breaks = day_split.split_days(polyline, pipeline.day_count)

    logger.info(
        "Route generation complete: %s, %.1fkm, %d points",
        pipeline.source,
        distance,
        len(polyline),
    )
    if pipeline.issues:
        logger.info("Issues along the way: %s", "; ".join(pipeline.issues))
    return RouteResult(
        center=RouteCenter(
            lat=pipeline.center[0], lng=pipeline.center[1], name=center_name
        ),
        polyline=polyline,
        encoded_polyline=googlemaps.convert.encode_polyline(polyline),
        meta=RouteMeta(
            day_count=pipeline.day_count,
            activity_type=pipeline.activity,
            total_distance_km=round(distance, 2),
            break_indices=breaks,
            day_distances_km=day_split.day_distances(polyline, breaks, distance),
            source=pipeline.source,
            stages=[stage.value for stage in pipeline.stages],
            issues=list(pipeline.issues),
        ),
    )


# ---------------------------------------------------------------------------
# Center resolution and client configuration
# ---------------------------------------------------------------------------


async def _resolve_center(
    maps_client: googlemaps.Client | None,
    request: RouteRequest,
    timeout_s: float,
) -> tuple[Coordinate, str | None]:
    if request.center is not None:
        return (request.center.lat, request.center.lng), None
    return await waypoints.resolve_center(
        maps_client, request.location or "", timeout_s=timeout_s
    )


def external_call_timeout_s() -> float:
    raw = os.environ.get("EXTERNAL_CALL_TIMEOUT_S", "")
    try:
        return float(raw) if raw else DEFAULT_EXTERNAL_CALL_TIMEOUT_S
    except ValueError:
        logger.warning("Ignoring invalid EXTERNAL_CALL_TIMEOUT_S=%r", raw)
        return DEFAULT_EXTERNAL_CALL_TIMEOUT_S


def default_maps_client(timeout_s: float) -> googlemaps.Client | None:
    api_key = os.environ.get("GOOGLE_MAPS_API_KEY", "")
    if not api_key:
        return None
    return googlemaps.Client(
        key=api_key, timeout=timeout_s, retry_over_query_limit=False
    )


def _default_claude_client(timeout_s: float) -> AsyncAnthropic | None:
    api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    if not api_key:
        return None
    return AsyncAnthropic(api_key=api_key, timeout=timeout_s, max_retries=0)


def _default_snapper(
    maps_client: googlemaps.Client | None, timeout_s: float
) -> RouteSnapper | None:
    """Returns the snapper selected by ``ROUTING_PROVIDER``, if usable."""
    provider = os.environ.get("ROUTING_PROVIDER", "google").strip().lower()
    if provider == "osrm":
        return OsrmSnapper(
            os.environ.get("OSRM_BASE_URL", DEFAULT_OSRM_BASE_URL),
            timeout_s=timeout_s,
        )
    if provider == "google":
        if maps_client is None:
            return None
        return GoogleDirectionsSnapper(maps_client, timeout_s=timeout_s)
    if provider != "none":
        logger.warning("Unknown ROUTING_PROVIDER %r; snapping disabled", provider)
    return None
