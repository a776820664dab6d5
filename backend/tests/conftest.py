"""Pytest configuration and service fakes for the route backend test suite.

No test talks to Google, Anthropic or OSRM: every external client is
replaced by one of the fakes below.
"""

import sys
from pathlib import Path

import pytest

# Ensure the backend root is on the path so tests can import modules
# directly (e.g. `import geo`) without a package prefix.
sys.path.insert(0, str(Path(__file__).parent.parent))

from snapping import SnapFailed, SnappedRoute  # noqa: E402

PARIS = (48.8566, 2.3522)


def geocode_result(lat, lng, address=""):
    """Returns a minimal Geocoding API-style result list."""
    result = {"geometry": {"location": {"lat": lat, "lng": lng}}}
    if address:
        result["formatted_address"] = address
    return [result]


class FakeMapsClient:
    """Minimal stand-in for googlemaps.Client.

    ``places`` maps exact geocode queries to result lists; unknown queries
    return no results. ``failing`` queries raise instead.
    """

    def __init__(self, places=None, failing=(), directions_result=None):
        self.places = places or {}
        self.failing = set(failing)
        self.directions_result = directions_result
        self.geocode_calls = []
        self.directions_calls = []

    def geocode(self, address):
        self.geocode_calls.append(address)
        if address in self.failing:
            raise RuntimeError(f"geocoder exploded on {address}")
        return self.places.get(address, [])

    def directions(self, **kwargs):
        self.directions_calls.append(kwargs)
        if isinstance(self.directions_result, Exception):
            raise self.directions_result
        return self.directions_result


class FakeClaudeClient:
    """Minimal stand-in for AsyncAnthropic returning canned text (or raising)."""

    def __init__(self, text="", error=None):
        self.calls = []
        outer = self

        class _Messages:
            async def create(inner_self, **kwargs):
                outer.calls.append(kwargs)
                if error is not None:
                    raise error

                class _Response:
                    class _Content:
                        pass

                    content = [_Content()]

                _Response.content[0].text = text
                return _Response()

        self.messages = _Messages()


class FakeSnapper:
    """Snapper returning the input waypoints with a fixed distance.

    ``distances`` is consumed one entry per call; a ``None`` entry fails the
    call with ``SnapFailed``.
    """

    def __init__(self, *distances):
        self.distances = list(distances)
        self.calls = []

    async def snap(self, waypoints, activity):
        self.calls.append((list(waypoints), activity))
        distance = self.distances.pop(0) if self.distances else None
        if distance is None:
            raise SnapFailed("routing service unavailable")
        return SnappedRoute(polyline=list(waypoints), distance_km=distance)


@pytest.fixture
def paris_maps():
    return FakeMapsClient(
        places={"Paris": geocode_result(*PARIS, address="Paris, France")}
    )


@pytest.fixture(autouse=True)
def _no_service_config(monkeypatch):
    """Keeps real API keys and provider settings out of the tests."""
    for name in (
        "GOOGLE_MAPS_API_KEY",
        "ANTHROPIC_API_KEY",
        "ROUTING_PROVIDER",
        "OSRM_BASE_URL",
        "EXTERNAL_CALL_TIMEOUT_S",
    ):
        monkeypatch.delenv(name, raising=False)
