from __future__ import annotations

import asyncio
import time
from typing import Callable, List, Optional

from loguru import logger

from config import Configuration
from models import POI, AuthorizationStatus, Coordinate, FetchOutcome, POIFilter, Viewport
from services.area_name import AreaNameResolver, ReverseGeocoder
from services.coordinator import ExtendedDataLookup, FetchCoordinator, POIFetcher, POIFetchError
from services.events import EventBus
from services.location import PositionFeed, PositionSource
from services.search import filter_pois, search_pois


class MapSession:
    """State the presentation layer reads, plus the commands it can issue.

    All mutation happens on the event loop that drives this session.
    """

    def __init__(
        self,
        cfg: Configuration,
        fetcher: POIFetcher,
        geocoder: ReverseGeocoder,
        extended_lookup: ExtendedDataLookup,
        *,
        position: Optional[PositionSource] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.events = events if events is not None else EventBus()
        self.coordinator = FetchCoordinator(cfg, fetcher, extended_lookup, events=self.events, clock=clock)
        self.resolver = AreaNameResolver(cfg, geocoder, events=self.events, clock=clock)
        self.position = position if position is not None else PositionFeed()

        self.viewport: Optional[Viewport] = None
        self.active_filter = POIFilter()
        self.search_query: Optional[str] = None
        self.search_results: List[POI] = []
        self._has_initial_location = False
        self._position_tasks: set[asyncio.Task] = set()
        self._unsubscribe_position = self.position.subscribe(self._on_position_update)

    @property
    def pois(self) -> List[POI]:
        return filter_pois(self.coordinator.store, self.active_filter, user_location=self.coordinator.user_location)

    @property
    def is_loading(self) -> bool:
        return self.coordinator.is_loading

    @property
    def loading_progress(self) -> float:
        return self.coordinator.loading_progress

    @property
    def area_name(self) -> str:
        return self.resolver.area_name

    async def on_viewport_change(self, viewport: Viewport) -> Optional[FetchOutcome]:
        self.viewport = viewport
        zoomed_out = viewport.lat_span > self.cfg.zoomed_out_span_deg
        self.resolver.schedule(viewport.center, zoomed_out=zoomed_out)
        return await self._fetch(viewport.center, viewport_span=viewport.lat_span)

    async def on_position(self, coordinate: Coordinate) -> Optional[FetchOutcome]:
        self.coordinator.set_user_location(coordinate)
        self.events.publish("position", coordinate)
        if not self._has_initial_location:
            self._has_initial_location = True
            logger.info("initial location ({:.5f},{:.5f})", coordinate.lat, coordinate.lon)
            self.resolver.schedule(coordinate)
            return await self._fetch(coordinate, viewport_span=None)
        return await self._fetch(coordinate, viewport_span=self.viewport.lat_span if self.viewport else None)

    async def force_refresh(self, coordinate: Coordinate) -> Optional[FetchOutcome]:
        try:
            outcome = await self.coordinator.force_refresh(coordinate)
        except POIFetchError as exc:
            logger.warning("forced refresh stopped: {}", exc)
            return None
        self._refresh_search()
        return outcome

    def search(self, query: str) -> List[POI]:
        if not (query or "").strip():
            self.clear_search()
            return self.search_results
        self.search_query = query
        self._refresh_search()
        return self.search_results

    def clear_search(self) -> None:
        self.search_query = None
        self.search_results = []
        self.events.publish("search", [])

    def set_filter(self, poi_filter: POIFilter) -> None:
        self.active_filter = poi_filter
        self.events.publish("filter", poi_filter)

    def clear_filters(self) -> None:
        self.set_filter(POIFilter())

    async def settle(self) -> None:
        """Wait for fetches triggered by position updates."""
        if self._position_tasks:
            await asyncio.gather(*list(self._position_tasks), return_exceptions=True)

    async def close(self) -> None:
        self._unsubscribe_position()
        for task in list(self._position_tasks):
            task.cancel()
        await self.resolver.close()
        await self.coordinator.close()

    async def _fetch(self, coordinate: Coordinate, *, viewport_span: Optional[float]) -> Optional[FetchOutcome]:
        try:
            outcome = await self.coordinator.request_fetch(coordinate, viewport_span=viewport_span)
        except POIFetchError as exc:
            logger.warning("loading stopped: {}", exc)
            return None
        if outcome in (FetchOutcome.FETCHED, FetchOutcome.CACHE_HIT):
            self._refresh_search()
        return outcome

    def _refresh_search(self) -> None:
        if self.search_query is None:
            return
        self.search_results = search_pois(
            self.coordinator.store,
            self.search_query,
            user_location=self.coordinator.user_location,
            limit=self.cfg.search_result_cap,
        )
        self.events.publish("search", self.search_results)

    def _on_position_update(self, coordinate: Coordinate, authorization: AuthorizationStatus) -> None:
        if not authorization.is_authorized:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.coordinator.set_user_location(coordinate)
            return
        task = loop.create_task(self.on_position(coordinate))
        self._position_tasks.add(task)
        task.add_done_callback(self._position_tasks.discard)
