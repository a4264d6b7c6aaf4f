from __future__ import annotations

import pytest

from config import Configuration
from helpers import SF, FakeClock, FakeExtendedLookup, FakeFetcher, FakeGeocoder, make_poi, north_of


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cfg() -> Configuration:
    return Configuration(geocode_delay_sec=0.01)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher([make_poi(i, coordinate=north_of(SF, i * 10)) for i in range(1, 21)])


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def extended() -> FakeExtendedLookup:
    return FakeExtendedLookup()
