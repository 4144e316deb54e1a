"""Tests for the HTTP surface: POST/GET /api/nearby, /health, /metrics."""
import pytest
from fastapi.testclient import TestClient

from main import app
from nearby.data.businesses_repo import SQLiteBusinessStore
from nearby.search.service import ProximitySearch

from conftest import CENTER, FailingStore, RecordingStore, business


@pytest.fixture
def client(seed):
    db = seed(
        business("pizzeria", 10.010, -66.000, name="Pizzeria", categories=[{"name": "Pizza"}], hasDelivery=True),
        business("sushi-bar", 10.020, -66.000, name="Sushi Bar", categories=["sushi"]),
        business("far", 10.500, -66.000, name="Far"),
    )
    with TestClient(app) as c:
        app.state.search = ProximitySearch(SQLiteBusinessStore(db))
        yield c


def _body(**overrides) -> dict:
    body = {"lat": CENTER[0], "lng": CENTER[1], "radiusKm": 5}
    body.update(overrides)
    return body


def test_nearby_returns_sorted_businesses(client):
    r = client.post("/api/nearby", json=_body())
    assert r.status_code == 200
    data = r.json()
    assert [b["id"] for b in data["businesses"]] == ["pizzeria", "sushi-bar"]
    first = data["businesses"][0]
    assert first["distanceMeters"] == 1112
    assert first["businessId"] == "pizzeria"
    assert first["hasDelivery"] is True
    assert data["meta"]["passes"] == 1
    assert data["meta"]["boundsQueried"] >= 1


def test_nearby_category_filter(client):
    r = client.post("/api/nearby", json=_body(category=" PIZZA "))
    assert r.status_code == 200
    assert [b["id"] for b in r.json()["businesses"]] == ["pizzeria"]


def test_nearby_boolean_filter(client):
    r = client.post("/api/nearby", json=_body(hasDelivery=False))
    assert [b["id"] for b in r.json()["businesses"]] == ["sushi-bar"]


def test_nearby_default_radius_is_10_km(client):
    r = client.post("/api/nearby", json={"lat": CENTER[0], "lng": CENTER[1]})
    assert r.status_code == 200
    assert [b["id"] for b in r.json()["businesses"]] == ["pizzeria", "sushi-bar"]


def test_nearby_accepts_max_radius(client):
    r = client.post("/api/nearby", json=_body(radiusKm=100))
    assert r.status_code == 200
    assert [b["id"] for b in r.json()["businesses"]] == ["pizzeria", "sushi-bar", "far"]


@pytest.mark.parametrize(
    "body",
    [
        _body(radiusKm=0),
        _body(radiusKm=100.5),
        _body(lat=91),
        _body(lng=-200),
        {"lng": -66.0, "radiusKm": 5},
    ],
)
def test_nearby_validation_errors_are_400(client, body):
    r = client.post("/api/nearby", json=body)
    assert r.status_code == 400
    assert "detail" in r.json()


@pytest.mark.parametrize(
    "body",
    [
        _body(lat=True),
        _body(lat="10"),
        _body(lng="-66.0"),
        _body(radiusKm="5"),
        _body(radiusKm=True),
    ],
)
def test_nearby_rejects_non_numeric_json_types(client, body):
    store = RecordingStore()
    app.state.search = ProximitySearch(store)
    r = client.post("/api/nearby", json=body)
    assert r.status_code == 422
    assert store.calls == []


def test_nearby_storage_error_is_500(client):
    app.state.search = ProximitySearch(FailingStore())
    r = client.post("/api/nearby", json=_body())
    assert r.status_code == 500
    assert r.json()["detail"] == "Internal error while searching nearby businesses."


def test_nearby_status_get(client):
    r = client.get("/api/nearby")
    assert r.status_code == 200
    assert r.json()["ok"] is True


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"status": "ok"}
    client.post("/api/nearby", json=_body())
    r = client.get("/metrics")
    assert r.status_code == 200
    data = r.json()
    assert data["searches_ok"] >= 1
    assert data["requests_total"] >= 2


def test_response_time_header(client):
    r = client.post("/api/nearby", json=_body())
    assert "X-Response-Time-Ms" in r.headers
