"""Endpoint tests for main.py using FastAPI's TestClient.

Route generation is either stubbed or run procedurally from an explicit
center, so no external service is contacted.
"""

import pytest
from fastapi.testclient import TestClient

import main
import route_generation
from waypoints import LocationNotFound


@pytest.fixture
def client():
    return TestClient(main.app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_procedural_route_from_explicit_center(client):
    response = client.post(
        "/generate-route/procedural",
        json={"center": {"lat": 45.83, "lng": 6.86}, "day_count": 3, "activity_type": "hike"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["polyline"][0] == body["polyline"][-1]
    assert len(body["meta"]["break_indices"]) == 2
    assert 15 <= body["meta"]["total_distance_km"] <= 45
    assert body["meta"]["source"] == "procedural"
    assert body["center"] == {"lat": 45.83, "lng": 6.86, "name": None}


def test_procedural_route_from_lat_lng_string(client):
    response = client.post(
        "/generate-route/procedural",
        json={"location": "45.83,6.86", "day_count": 1, "activity_type": "bike"},
    )
    assert response.status_code == 200
    assert response.json()["meta"]["break_indices"] == []


def test_generate_route_without_any_keys_still_returns_a_route(client):
    response = client.post(
        "/generate-route",
        json={"location": "45.83,6.86", "day_count": 2, "activity_type": "bike"},
    )
    assert response.status_code == 200
    assert response.json()["meta"]["stages"][0] == "propose_waypoints"


def test_generate_route_location_not_found_is_404(client, monkeypatch):
    async def _not_found(request):
        raise LocationNotFound("Could not geocode location: 'Unknown Nowhere Place'")

    monkeypatch.setattr(route_generation, "generate", _not_found)
    response = client.post("/generate-route", json={"location": "Unknown Nowhere Place"})
    assert response.status_code == 404
    assert "Unknown Nowhere Place" in response.json()["detail"]


def test_generate_route_unexpected_error_is_502(client, monkeypatch):
    async def _boom(request):
        raise RuntimeError("GOOGLE_MAPS_API_KEY is not configured.")

    monkeypatch.setattr(route_generation, "generate", _boom)
    response = client.post("/generate-route", json={"location": "Paris"})
    assert response.status_code == 502


def test_procedural_route_internal_value_error_is_502(client, monkeypatch):
    async def _broken(request):
        raise ValueError("math domain error")

    monkeypatch.setattr(route_generation, "generate_procedural", _broken)
    response = client.post("/generate-route/procedural", json={"location": "Paris"})
    assert response.status_code == 502


@pytest.mark.parametrize(
    "payload",
    [
        {"day_count": 2},
        {"location": "   "},
        {"location": "Paris", "day_count": 0},
        {"location": "Paris", "activity_type": "kayak"},
        {"center": {"lat": 91, "lng": 0}},
    ],
)
def test_invalid_requests_are_rejected(client, payload):
    assert client.post("/generate-route", json=payload).status_code == 422


def test_geocode_address_lat_lng(client):
    response = client.post("/geocode-address", json={"address": "51.5,-0.12"})
    assert response.json() == {"lat": 51.5, "lng": -0.12, "formatted_address": "51.5,-0.12"}


def test_geocode_address_empty_is_400(client):
    assert client.post("/geocode-address", json={"address": " "}).status_code == 400
