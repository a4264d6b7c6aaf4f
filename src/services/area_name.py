from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol

from loguru import logger

from config import Configuration
from models import UNKNOWN_AREA, Coordinate, PlaceName
from services.events import EventBus


class ReverseGeocoder(Protocol):
    async def resolve_async(self, coordinate: Coordinate) -> PlaceName: ...


class AreaNameResolver:
    """Throttled, debounced reverse geocoding of the viewport center.

    An attempt needs `geocode_min_interval_sec` since the previous attempt and,
    once something has been resolved, a move of more than
    `geocode_min_distance_m`. Failures set the name to UNKNOWN_AREA.
    """

    def __init__(
        self,
        cfg: Configuration,
        geocoder: ReverseGeocoder,
        *,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.geocoder = geocoder
        self.events = events if events is not None else EventBus()
        self._clock = clock

        self.area_name = ""
        self.last_geocoded_coordinate: Optional[Coordinate] = None
        self.last_geocoding_timestamp: Optional[float] = None

        self._pending: Optional[asyncio.Task] = None
        self._in_flight = False

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def should_geocode(self, coordinate: Coordinate) -> bool:
        now = self._clock()
        if (
            self.last_geocoding_timestamp is not None
            and now - self.last_geocoding_timestamp < self.cfg.geocode_min_interval_sec
        ):
            return False
        if self.last_geocoded_coordinate is not None:
            return self.last_geocoded_coordinate.distance_m(coordinate) > self.cfg.geocode_min_distance_m
        return True

    def schedule(self, coordinate: Coordinate, *, zoomed_out: bool = False) -> None:
        """Restart the debounce timer for `coordinate`. Dropped while a lookup is outstanding."""
        if self._in_flight:
            logger.debug("geocode trigger dropped: lookup outstanding")
            return
        if self.pending:
            assert self._pending is not None
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._resolve_later(coordinate, zoomed_out))

    async def _resolve_later(self, coordinate: Coordinate, zoomed_out: bool) -> None:
        await asyncio.sleep(self.cfg.geocode_delay_sec)
        await self.resolve(coordinate, zoomed_out=zoomed_out)

    async def resolve(self, coordinate: Coordinate, *, zoomed_out: bool = False) -> Optional[str]:
        if self._in_flight:
            logger.debug("geocode skipped: lookup outstanding")
            return None
        if not self.should_geocode(coordinate):
            logger.debug("geocode skipped: throttled at ({:.4f},{:.4f})", coordinate.lat, coordinate.lon)
            return None

        self._in_flight = True
        self.last_geocoding_timestamp = self._clock()
        try:
            place = await asyncio.wait_for(
                self.geocoder.resolve_async(coordinate),
                timeout=self.cfg.geocode_timeout_sec,
            )
        except Exception as exc:
            logger.warning("reverse geocode failed at ({:.4f},{:.4f}): {!r}", coordinate.lat, coordinate.lon, exc)
            self._set_area_name(UNKNOWN_AREA)
            return self.area_name
        finally:
            self._in_flight = False

        self.last_geocoded_coordinate = coordinate
        self._set_area_name(place.display(zoomed_out))
        return self.area_name

    async def close(self) -> None:
        if self.pending:
            assert self._pending is not None
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass

    def _set_area_name(self, name: str) -> None:
        self.area_name = name
        self.events.publish("area_name", name)
