"""Trail route backend service.

Exposes endpoints for AI-assisted and procedural hike/bike route generation
and for address geocoding. Trip storage, authentication and weather are
handled by other services.
"""

import logging

from fastapi import FastAPI, HTTPException

import route_generation
import waypoints
from models import (
    GeocodeRequest,
    GeocodeResponse,
    ProceduralRouteRequest,
    RouteRequest,
    RouteResult,
)

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="Trail Route Backend",
    description="Multi-day hiking and cycling route generation.",
    version="0.1.0",
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint used to verify the service is live."""
    return {"status": "ok"}


@app.post("/generate-route", response_model=RouteResult)
async def generate_route(request: RouteRequest) -> RouteResult:
    """Generates a route with AI-proposed waypoints.

    Claude proposes named places near the location, which are geocoded and
    snapped onto real roads or trails. If any of that fails, or the result
    doesn't fit the day-count distance band, a procedural route is returned
    instead.

    Args:
        request: ``RouteRequest`` with location or explicit center, day
            count, and activity type.

    Returns:
        ``RouteResult`` with the center, polyline, and day breaks.

    Raises:
        HTTPException 404: If the location could not be geocoded.
        HTTPException 502: If the service is misconfigured or an upstream
            call fails unexpectedly.
    """
    try:
        return await route_generation.generate(request)
    except waypoints.LocationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("route_generation.generate failed")
        raise HTTPException(
            status_code=502,
            detail="Failed to generate a route. Please try again.",
        ) from exc


@app.post("/generate-route/procedural", response_model=RouteResult)
async def generate_procedural_route(request: ProceduralRouteRequest) -> RouteResult:
    """Generates a route from procedural geometry alone.

    Hikes are loops around the center; bike routes are open paths leaving
    it. Set ``snap_to_roads`` to try fitting the geometry onto real roads.

    Raises:
        HTTPException 404: If the location could not be geocoded.
        HTTPException 502: If the service is misconfigured or an upstream
            call fails unexpectedly.
    """
    try:
        return await route_generation.generate_procedural(request)
    except waypoints.LocationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("route_generation.generate_procedural failed")
        raise HTTPException(
            status_code=502,
            detail="Failed to generate a route. Please try again.",
        ) from exc


@app.post("/geocode-address", response_model=GeocodeResponse)
async def geocode_address(request: GeocodeRequest) -> GeocodeResponse:
    """Geocodes a human-readable address to lat/lng coordinates.

    Raises:
        HTTPException 400: If address is empty.
        HTTPException 404: If the address could not be geocoded.
        HTTPException 502: If the upstream Google Maps API call fails.
    """
    if not request.address.strip():
        raise HTTPException(
            status_code=400,
            detail="address must not be empty.",
        )
    timeout_s = route_generation.external_call_timeout_s()
    try:
        (lat, lng), name = await waypoints.resolve_center(
            route_generation.default_maps_client(timeout_s),
            request.address,
            timeout_s=timeout_s,
        )
    except waypoints.LocationNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001
        logging.exception("geocode_address failed")
        raise HTTPException(
            status_code=502,
            detail="Failed to geocode the address. Please try again.",
        ) from exc
    return GeocodeResponse(
        lat=lat, lng=lng, formatted_address=name or request.address.strip()
    )
