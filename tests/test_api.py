from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Configuration
from helpers import SF, FakeClock, FakeExtendedLookup, FakeFetcher, FakeGeocoder, make_poi, north_of
from main import app
from services.map_session import MapSession


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher(
        [
            make_poi(1, name="Burger King", coordinate=north_of(SF, 50), category="burger", amenity="fast_food"),
            make_poi(2, name="Taqueria Sol", coordinate=north_of(SF, 80), category="mexican", amenity="restaurant"),
        ]
    )


@pytest.fixture
def client(fetcher):
    app.state.session = MapSession(
        Configuration(geocode_delay_sec=0.01),
        fetcher,
        FakeGeocoder(),
        FakeExtendedLookup({"Burger King"}),
        clock=FakeClock(),
    )
    with TestClient(app) as c:
        yield c


def _viewport(lat_span: float = 0.02) -> dict:
    return {"lat": SF.lat, "lon": SF.lon, "lat_span": lat_span, "lon_span": lat_span}


def test_healthz(client) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}


def test_viewport_loads_pois(client, fetcher) -> None:
    resp = client.post("/viewport", json=_viewport())
    assert resp.status_code == 200
    body = resp.json()
    assert body["outcome"] == "fetched"
    assert [p["id"] for p in body["pois"]] == [1, 2]
    assert body["pois"][0]["has_extended_data"] is True
    assert body["is_loading"] is False
    assert len(fetcher.calls) == 1


def test_wide_viewport_is_zoom_gated(client, fetcher) -> None:
    body = client.post("/viewport", json=_viewport(lat_span=2.0)).json()
    assert body["outcome"] == "zoom_gated"
    assert body["pois"] == []
    assert fetcher.calls == []


def test_invalid_coordinate_rejected(client) -> None:
    resp = client.post("/viewport", json={"lat": 123, "lon": 0})
    assert resp.status_code == 422


def test_position_requires_authorization(client) -> None:
    resp = client.post("/position", json={"lat": SF.lat, "lon": SF.lon, "authorization": "denied"})
    assert resp.status_code == 403


def test_position_triggers_initial_load(client, fetcher) -> None:
    resp = client.post("/position", json={"lat": SF.lat, "lon": SF.lon})
    assert resp.status_code == 200
    assert len(resp.json()["pois"]) == 2
    assert len(fetcher.calls) == 1


def test_refresh_failure_is_bad_gateway(client, fetcher) -> None:
    fetcher.error = RuntimeError("mirror down")
    resp = client.post("/refresh", json={"lat": SF.lat, "lon": SF.lon})
    assert resp.status_code == 502


def test_refresh_replaces_results(client, fetcher) -> None:
    client.post("/viewport", json=_viewport())
    fetcher.results = [make_poi(9, name="Pho Real")]
    body = client.post("/refresh", json={"lat": SF.lat, "lon": SF.lon}).json()
    assert [p["id"] for p in body["pois"]] == [9]


def test_search_and_filter(client) -> None:
    client.post("/viewport", json=_viewport())

    results = client.get("/search", params={"q": "taq"}).json()
    assert [p["id"] for p in results] == [2]
    assert [p["id"] for p in client.get("/state").json()["search_results"]] == [2]
    assert client.delete("/search").json() == {"ok": True}

    body = client.put("/filter", json={"amenity": "fast_food"}).json()
    assert [p["id"] for p in body["pois"]] == [1]
    assert body["active_filter"]["amenity"] == "fast_food"

    body = client.delete("/filter").json()
    assert len(body["pois"]) == 2
