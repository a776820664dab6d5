"""AI-assisted waypoint proposal.

Three steps:
  1.  Resolve the trip location to a center coordinate (geocoding). Failure
      here is fatal and raised as ``LocationNotFound``.
  2.  Ask Claude for a short list of named points of interest suited to the
      activity and trip length. Best effort: any failure yields no names.
  3.  Geocode each name concurrently, keeping only results that land inside
      a box around the center so mis-geocoded or invented places are dropped.
"""

import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass, field

import googlemaps
from anthropic import AsyncAnthropic

import geo
from geo import Coordinate
from models import ActivityType
from procedural import band_for

logger = logging.getLogger(__name__)

# Claude model used for point-of-interest proposals.
PROPOSAL_MODEL: str = "claude-sonnet-4-6"

# -- Proposal size ----------------------------------------------------------
MIN_PROPOSED_POIS: int = 3
POIS_PER_DAY: int = 2
MAX_PROPOSED_POIS: int = 12

# -- Vicinity filter --------------------------------------------------------
# Smallest half-width of the box geocoded names must fall inside.
MIN_BBOX_MARGIN_DEG: float = 0.2

_JSON_SYSTEM_PROMPT = (
    "You are a trip planning API. You respond with ONLY valid JSON — no "
    "markdown, no explanation, no commentary. Your entire response must be "
    "a single JSON array of strings."
)

_PROPOSAL_PROMPT = """\
Plan a {day_count}-day {activity} trip around {location}.

Suggest exactly {n_pois} real, named points of interest a {activity_noun} \
would pass on this trip, in travel order: trailheads, viewpoints, parks, \
villages, passes. Each must be reachable {reach} and lie within about \
{radius_km:.0f} km of {location}.

Return ONLY a JSON array of place names: ["...", "..."]
"""


class LocationNotFound(ValueError):
    """The requested location could not be resolved to a coordinate."""


class ProposalUnavailable(Exception):
    """Claude is unavailable or returned nothing usable."""


@dataclass(frozen=True)
class Proposal:
    """The resolved center plus any AI-derived waypoints near it."""

    center: Coordinate
    center_name: str | None = None
    waypoints: list[Coordinate] = field(default_factory=list)
    names: list[str] = field(default_factory=list)


async def propose_waypoints(
    location: str,
    day_count: int,
    activity: ActivityType,
    *,
    maps_client: googlemaps.Client | None,
    claude_client: AsyncAnthropic | None,
    center: Coordinate | None = None,
    timeout_s: float = 10.0,
) -> Proposal:
    """Runs all three proposal steps.

    When ``center`` is given the location is not geocoded; ``location`` is
    then only used as context for Claude and may be empty.

    Raises:
        LocationNotFound: If ``center`` is absent and geocoding fails.
    """
    center_name = None
    if center is None:
        center, center_name = await resolve_center(
            maps_client, location, timeout_s=timeout_s
        )
    context = location.strip() or center_name or ""
    place = context or f"{center[0]:.4f},{center[1]:.4f}"

    names = await propose_names(
        claude_client, place, day_count, activity, timeout_s=timeout_s
    )
    if not names or maps_client is None:
        return Proposal(center=center, center_name=center_name, names=names)

    coords = await geocode_names(
        maps_client, names, center, day_count, activity,
        context=context, timeout_s=timeout_s,
    )
    logger.info("Proposal: %d of %d names geocoded nearby", len(coords), len(names))
    return Proposal(
        center=center, center_name=center_name, waypoints=coords, names=names
    )


# ---------------------------------------------------------------------------
# Step 1: Center resolution
# ---------------------------------------------------------------------------


async def resolve_center(
    maps_client: googlemaps.Client | None,
    location: str,
    *,
    timeout_s: float = 10.0,
) -> tuple[Coordinate, str | None]:
    """Returns ((lat, lng), formatted_name) for an address or coordinate string.

    A ``lat,lng`` string is parsed directly without a network call. For
    anything else the first geocoding result is used.

    Raises:
        LocationNotFound: On an empty location, a geocoding API, transport
            or timeout error, or when the geocoder has no match.
    """
    location = (location or "").strip()
    if not location:
        raise LocationNotFound("location must not be empty.")

    parts = location.split(",")
    if len(parts) == 2:
        try:
            lat, lng = float(parts[0].strip()), float(parts[1].strip())
        except ValueError:
            pass
        else:
            if -90 <= lat <= 90 and -180 <= lng <= 180:
                return (lat, lng), None

    if maps_client is None:
        raise RuntimeError("GOOGLE_MAPS_API_KEY is not configured.")

    try:
        results = await asyncio.wait_for(
            asyncio.to_thread(maps_client.geocode, location), timeout=timeout_s
        )
    except asyncio.TimeoutError as exc:
        raise LocationNotFound(f"Geocoding timed out for {location!r}") from exc
    except googlemaps.exceptions.ApiError as exc:
        # ZERO_RESULTS and friends come back as ApiError.
        raise LocationNotFound(f"Could not geocode location: {location!r}") from exc
    except googlemaps.exceptions.Timeout as exc:
        raise LocationNotFound(f"Geocoding timed out for {location!r}") from exc
    except googlemaps.exceptions.TransportError as exc:
        # HTTPError is a TransportError too.
        raise LocationNotFound(f"Could not geocode location: {location!r}") from exc

    if not results:
        raise LocationNotFound(f"Could not geocode location: {location!r}")
    try:
        loc = results[0]["geometry"]["location"]
        coord = (float(loc["lat"]), float(loc["lng"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise LocationNotFound(f"Could not geocode location: {location!r}") from exc
    return coord, results[0].get("formatted_address", location)


# ---------------------------------------------------------------------------
# Step 2: Claude point-of-interest proposal
# ---------------------------------------------------------------------------


def _extract_json_array(text: str) -> list | None:
    """Returns the first JSON array found in ``text``, or None.

    Claude occasionally wraps the array in commentary despite the prefill.
    """
    text = text.strip()
    try:
        parsed = json.loads(text)
        if isinstance(parsed, list):
            return parsed
    except ValueError:
        pass

    match = re.search(r"\[.*\]", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group())
            if isinstance(parsed, list):
                return parsed
        except ValueError:
            pass
    return None


def proposal_count(day_count: int) -> int:
    return max(MIN_PROPOSED_POIS, min(MAX_PROPOSED_POIS, POIS_PER_DAY * day_count))


async def propose_names(
    claude_client: AsyncAnthropic | None,
    location: str,
    day_count: int,
    activity: ActivityType,
    *,
    timeout_s: float = 10.0,
) -> list[str]:
    """Returns Claude's suggested place names, or [] if none are usable."""
    try:
        return await _request_names(
            claude_client, location, day_count, activity, timeout_s
        )
    except ProposalUnavailable as exc:
        logger.info("No AI waypoints: %s", exc)
        return []


async def _request_names(
    claude_client: AsyncAnthropic | None,
    location: str,
    day_count: int,
    activity: ActivityType,
    timeout_s: float,
) -> list[str]:
    if claude_client is None:
        raise ProposalUnavailable("no Claude client configured")

    n_pois = proposal_count(day_count)
    prompt = _PROPOSAL_PROMPT.format(
        day_count=day_count,
        activity="hiking" if activity == "hike" else "cycling",
        activity_noun="hiker" if activity == "hike" else "cyclist",
        reach="on foot" if activity == "hike" else "by bicycle",
        location=location,
        n_pois=n_pois,
        radius_km=vicinity_km(day_count, activity),
    )

    logger.info("Requesting %d waypoint names from Claude", n_pois)
    try:
        response = await asyncio.wait_for(
            claude_client.messages.create(
                model=PROPOSAL_MODEL,
                max_tokens=512,
                system=_JSON_SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": prompt},
                    {"role": "assistant", "content": "["},
                ],
            ),
            timeout=timeout_s,
        )
        # Prepend the "[" we used as prefill.
        raw = "[" + response.content[0].text.strip()
    except asyncio.TimeoutError as exc:
        raise ProposalUnavailable("Claude request timed out") from exc
    except Exception as exc:  # noqa: BLE001
        raise ProposalUnavailable(f"Claude request failed: {exc}") from exc

    parsed = _extract_json_array(raw)
    if parsed is None:
        raise ProposalUnavailable(f"unparseable response: {raw[:200]!r}")

    names: list[str] = []
    for item in parsed:
        if isinstance(item, dict):
            item = item.get("name")
        if isinstance(item, str) and item.strip() and item.strip() not in names:
            names.append(item.strip())
    if not names:
        raise ProposalUnavailable("response contained no place names")
    return names[:MAX_PROPOSED_POIS]


# ---------------------------------------------------------------------------
# Step 3: Geocode names near the center
# ---------------------------------------------------------------------------


def vicinity_km(day_count: int, activity: ActivityType) -> float:
    """Returns how far from the center a route of this size can reach."""
    longest = day_count * band_for(activity)[1]
    # Loops stay within their radius; open paths can end half a route away.
    return longest / (2 * math.pi) if activity == "hike" else longest / 2


def vicinity_box(
    center: Coordinate, day_count: int, activity: ActivityType
) -> geo.BoundingBox:
    """Returns the box proposed waypoints must fall inside."""
    margin_lat = max(MIN_BBOX_MARGIN_DEG, vicinity_km(day_count, activity) / geo.KM_PER_DEGREE)
    cos_lat = max(math.cos(math.radians(center[0])), 0.01)
    return geo.bounding_box(center, margin_lat, margin_lat / cos_lat)


async def geocode_names(
    maps_client: googlemaps.Client,
    names: list[str],
    center: Coordinate,
    day_count: int,
    activity: ActivityType,
    *,
    context: str = "",
    timeout_s: float = 10.0,
) -> list[Coordinate]:
    """Geocodes ``names`` concurrently and keeps results near ``center``.

    Order follows ``names``. Failed lookups, results outside the vicinity box
    and duplicates of an earlier point are dropped silently.
    """
    box = vicinity_box(center, day_count, activity)

    async def lookup(name: str) -> Coordinate | None:
        query = f"{name}, {context}" if context else name
        results = await asyncio.wait_for(
            asyncio.to_thread(maps_client.geocode, query), timeout=timeout_s
        )
        if not results:
            return None
        loc = results[0]["geometry"]["location"]
        return float(loc["lat"]), float(loc["lng"])

    outcomes = await asyncio.gather(
        *(lookup(name) for name in names), return_exceptions=True
    )

    coords: list[Coordinate] = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("Geocoding %r failed: %s", name, outcome)
            continue
        if outcome is None:
            continue
        if not geo.in_box(outcome, box):
            logger.info("Dropping %r at %s: outside vicinity of center", name, outcome)
            continue
        if outcome in coords:
            continue
        coords.append(outcome)
    return coords
