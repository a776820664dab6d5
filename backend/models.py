"""Pydantic request and response models for the trail route backend."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

ActivityType = Literal["hike", "bike"]
"""Supported activities. Hikes are loops; bike routes are open paths."""

RouteSource = Literal["ai_snapped", "procedural_snapped", "procedural"]

MAX_DAY_COUNT = 30


class LatLng(BaseModel):
    """A single coordinate on the HTTP surface."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


# ---------------------------------------------------------------------------
# Route generation models
# ---------------------------------------------------------------------------


class RouteRequest(BaseModel):
    """Trip parameters for AI-assisted route generation."""

    location: str | None = None
    """Place name, address, or 'lat,lng' string."""

    center: LatLng | None = None
    """Explicit center; when given, geocoding of ``location`` is skipped."""

    day_count: int = Field(default=1, ge=1, le=MAX_DAY_COUNT)
    """Number of days the trip is split into."""

    activity_type: ActivityType = "hike"

    @model_validator(mode="after")
    def _require_location_or_center(self):
        if self.center is None and not (self.location or "").strip():
            raise ValueError("Either location or center must be provided.")
        return self


class ProceduralRouteRequest(RouteRequest):
    """Trip parameters for the procedural-only endpoint."""

    snap_to_roads: bool = False
    """Attempt a single road/trail snap of the procedural waypoints."""


class RouteCenter(BaseModel):
    """The resolved trip center."""

    lat: float
    lng: float
    name: str | None = None


class RouteMeta(BaseModel):
    """Route statistics and day breaks."""

    day_count: int
    activity_type: ActivityType
    total_distance_km: float
    break_indices: list[int]
    """Polyline indices where one day ends and the next begins."""

    day_distances_km: list[float] = Field(default_factory=list)
    source: RouteSource = "procedural"
    """Which branch of the generation pipeline produced the polyline."""

    stages: list[str] = Field(default_factory=list)
    """Pipeline stages visited, in order."""

    issues: list[str] = Field(default_factory=list)
    """Why earlier stages were rejected (failed snaps, out-of-band distances)."""


class RouteResult(BaseModel):
    """The complete result of a route generation request."""

    center: RouteCenter
    polyline: list[tuple[float, float]]
    """Ordered (lat, lng) points; first == last for hikes."""

    encoded_polyline: str
    """Google-encoded polyline string for rendering on the map."""

    meta: RouteMeta


# ---------------------------------------------------------------------------
# Geocoding models
# ---------------------------------------------------------------------------


class GeocodeRequest(BaseModel):
    """Request body for the /geocode-address endpoint."""

    address: str


class GeocodeResponse(BaseModel):
    """Resolved coordinates for an address."""

    lat: float
    lng: float
    formatted_address: str
