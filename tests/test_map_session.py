from __future__ import annotations

import asyncio

import pytest

from helpers import SF, FakeExtendedLookup, make_poi, north_of
from models import AuthorizationStatus, FetchOutcome, POIFilter, Viewport
from services.map_session import MapSession


@pytest.fixture
def session(cfg, fetcher, geocoder, clock):
    return MapSession(cfg, fetcher, geocoder, FakeExtendedLookup({"Place 3"}), clock=clock)


@pytest.mark.asyncio
async def test_viewport_change_fetches_and_names_area(session, fetcher, geocoder) -> None:
    outcome = await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))
    await asyncio.sleep(0.05)

    assert outcome == FetchOutcome.FETCHED
    assert len(session.pois) == 20
    assert session.pois[0].id == 3
    assert session.area_name == "San Francisco"
    await session.close()


@pytest.mark.asyncio
async def test_zoomed_out_viewport_skips_fetch_but_names_region(session, fetcher) -> None:
    outcome = await session.on_viewport_change(Viewport(center=SF, lat_span=1.0, lon_span=1.0))
    await asyncio.sleep(0.05)

    assert outcome == FetchOutcome.ZOOM_GATED
    assert fetcher.calls == []
    assert session.area_name == "California"
    await session.close()


@pytest.mark.asyncio
async def test_first_position_fix_loads_even_when_zoomed_out(session, fetcher) -> None:
    await session.on_viewport_change(Viewport(center=SF, lat_span=1.0, lon_span=1.0))

    accepted = session.position.update(SF, AuthorizationStatus.AUTHORIZED_WHEN_IN_USE)
    await session.settle()

    assert accepted
    assert len(fetcher.calls) == 1
    assert session.coordinator.user_location == SF
    await session.close()


@pytest.mark.asyncio
async def test_unauthorized_position_is_ignored(session, fetcher) -> None:
    assert session.position.update(SF, AuthorizationStatus.DENIED) is False
    await session.settle()

    assert fetcher.calls == []
    assert session.coordinator.user_location is None
    await session.close()


@pytest.mark.asyncio
async def test_fetch_failure_stops_loading(session, fetcher) -> None:
    fetcher.error = RuntimeError("mirror down")

    outcome = await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))

    assert outcome is None
    assert session.is_loading is False
    assert session.pois == []
    await session.close()


@pytest.mark.asyncio
async def test_search_results_follow_new_data(session, fetcher, clock) -> None:
    assert session.search("place 1") == []

    await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))

    ids = {p.id for p in session.search_results}
    assert ids == {1, 10, 11, 12, 13, 14, 15, 16, 17, 18, 19}

    session.clear_search()
    assert session.search_results == []
    await session.close()


@pytest.mark.asyncio
async def test_blank_search_clears_previous_results(session) -> None:
    await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))
    assert session.search("place 2")

    assert session.search("   ") == []
    assert session.search_results == []
    assert session.search_query is None
    await session.close()


@pytest.mark.asyncio
async def test_filters_apply_to_visible_pois(session, clock) -> None:
    await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))

    session.set_filter(POIFilter(has_extended_data=True))
    assert [p.id for p in session.pois] == [3]

    session.clear_filters()
    assert len(session.pois) == 20
    await session.close()


@pytest.mark.asyncio
async def test_force_refresh_replaces_results(session, fetcher) -> None:
    await session.on_viewport_change(Viewport(center=SF, lat_span=0.02, lon_span=0.02))
    fetcher.results = [make_poi(77, coordinate=north_of(SF, 40))]

    outcome = await session.force_refresh(SF)

    assert outcome == FetchOutcome.FETCHED
    assert [p.id for p in session.pois] == [77]
    await session.close()


@pytest.mark.asyncio
async def test_force_refresh_failure_returns_none(session, fetcher) -> None:
    fetcher.error = RuntimeError("mirror down")
    assert await session.force_refresh(SF) is None
    assert session.is_loading is False
    await session.close()
