from __future__ import annotations

import asyncio
import math
from typing import Callable, List, Optional

from models import POI, Coordinate, PlaceName

METERS_PER_DEGREE_LAT = 6371000.0 * math.pi / 180.0

SF = Coordinate(lat=37.7749, lon=-122.4194)


def north_of(origin: Coordinate, meters: float) -> Coordinate:
    return Coordinate(lat=origin.lat + meters / METERS_PER_DEGREE_LAT, lon=origin.lon)


def make_poi(poi_id: int, name: Optional[str] = None, coordinate: Coordinate = SF, **kwargs) -> POI:
    return POI(id=poi_id, name=name or f"Place {poi_id}", coordinate=coordinate, **kwargs)


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    def __init__(self, results: Optional[List[POI]] = None) -> None:
        self.calls: list[tuple[Coordinate, float]] = []
        self.results = list(results or [])
        self.responder: Optional[Callable[[Coordinate], List[POI]]] = None
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def fetch_nearby_async(self, coordinate: Coordinate, radius_km: float) -> List[POI]:
        self.calls.append((coordinate, radius_km))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return self.responder(coordinate)
        return list(self.results)


class FakeGeocoder:
    def __init__(self, place: Optional[PlaceName] = None) -> None:
        self.calls: list[Coordinate] = []
        self.place = place or PlaceName(locality="San Francisco", region="California", country="United States")
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def resolve_async(self, coordinate: Coordinate) -> PlaceName:
        self.calls.append(coordinate)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.place


class FakeExtendedLookup:
    def __init__(self, names: Optional[set[str]] = None) -> None:
        self.names = set(names or ())
        self.calls: list[str] = []

    def has_extended_data(self, name: str) -> bool:
        self.calls.append(name)
        return name in self.names


