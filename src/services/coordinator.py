from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List, Optional, Protocol

from loguru import logger

from config import Configuration
from models import POI, CachedRegion, Coordinate, FetchOutcome
from services.entity_store import EntityStore
from services.events import EventBus
from services.region_cache import RegionCache
from utils import km_to_m


class POIFetchError(RuntimeError):
    pass


class POIFetcher(Protocol):
    async def fetch_nearby_async(self, coordinate: Coordinate, radius_km: float) -> List[POI]: ...


class ExtendedDataLookup(Protocol):
    def has_extended_data(self, name: str) -> bool: ...


class FetchCoordinator:
    """Decides per coordinate whether to reuse cached POIs or fetch remotely.

    Gate order for a normal request: zoom span, fetch cooldown, region cache,
    in-flight fetch, movement threshold. `force_refresh` bypasses the gates
    and is the only path that discards accumulated state.
    """

    def __init__(
        self,
        cfg: Configuration,
        fetcher: POIFetcher,
        extended_lookup: ExtendedDataLookup,
        *,
        store: Optional[EntityStore] = None,
        cache: Optional[RegionCache] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.fetcher = fetcher
        self.extended_lookup = extended_lookup
        self._clock = clock
        self.store = store if store is not None else EntityStore()
        self.cache = cache if cache is not None else RegionCache(cfg.region_expiry_sec, clock=clock)
        self.events = events if events is not None else EventBus()

        self.is_loading = False
        self.loading_progress = 1.0
        self.user_location: Optional[Coordinate] = None

        self.last_fetch_coordinate: Optional[Coordinate] = None
        self.last_fetch_timestamp: Optional[float] = None
        self.last_update_timestamp: Optional[float] = None

        self._generation = 0
        self._fetch_task: Optional[asyncio.Future] = None
        self._refreshing = False

    @property
    def displayed_ids(self) -> set[int]:
        return self.store.displayed_ids

    @property
    def pois(self) -> List[POI]:
        return self.store.sorted(self.user_location)

    @property
    def fetch_in_flight(self) -> bool:
        return self._fetch_task is not None and not self._fetch_task.done()

    def set_user_location(self, coordinate: Optional[Coordinate]) -> None:
        self.user_location = coordinate

    async def request_fetch(
        self,
        coordinate: Coordinate,
        *,
        viewport_span: Optional[float] = None,
    ) -> FetchOutcome:
        if viewport_span is not None and viewport_span > self.cfg.max_fetch_span_deg:
            logger.debug("fetch skipped: span {:.3f} exceeds {:.3f}", viewport_span, self.cfg.max_fetch_span_deg)
            return FetchOutcome.ZOOM_GATED

        if self._refreshing:
            logger.debug("fetch skipped: forced refresh in progress")
            return FetchOutcome.REFRESH_IN_PROGRESS

        now = self._clock()
        if self.last_update_timestamp is not None and now - self.last_update_timestamp < self.cfg.fetch_cooldown_sec:
            logger.debug("fetch skipped: within {:.1f}s cooldown", self.cfg.fetch_cooldown_sec)
            return FetchOutcome.RATE_LIMITED
        self.last_update_timestamp = now

        cached = self.cache.lookup(coordinate, self.store)
        if cached is not None:
            self._merge_cached(cached)
            return FetchOutcome.CACHE_HIT

        if self.fetch_in_flight:
            logger.debug("fetch skipped: another fetch is outstanding")
            return FetchOutcome.IN_FLIGHT

        if self.last_fetch_coordinate is not None:
            moved = self.last_fetch_coordinate.distance_m(coordinate)
            if moved < self.cfg.movement_threshold_m:
                logger.debug("fetch skipped: moved {:.0f}m < {:.0f}m", moved, self.cfg.movement_threshold_m)
                return FetchOutcome.MOVEMENT_GATED

        return await self._run_fetch(coordinate, forced=False)

    async def force_refresh(self, coordinate: Coordinate) -> FetchOutcome:
        if self._refreshing:
            logger.info("forced refresh ignored: one is already loading")
            return FetchOutcome.REFRESH_IN_PROGRESS

        self._refreshing = True
        try:
            self._generation += 1
            if self.fetch_in_flight:
                assert self._fetch_task is not None
                self._fetch_task.cancel()
                logger.info("cancelled in-flight fetch for forced refresh")

            self.store.clear()
            self.cache.clear()
            self.last_fetch_coordinate = None
            self.last_fetch_timestamp = None
            self.last_update_timestamp = None
            self._set_loading(True)
            self._set_progress(0.0)
            self.events.publish("pois", [])
            self._set_progress(0.3)

            return await self._run_fetch(coordinate, forced=True)
        finally:
            self._refreshing = False

    async def close(self) -> None:
        if self.fetch_in_flight:
            assert self._fetch_task is not None
            self._fetch_task.cancel()
            try:
                await self._fetch_task
            except (asyncio.CancelledError, Exception):
                pass

    async def _run_fetch(self, coordinate: Coordinate, *, forced: bool) -> FetchOutcome:
        generation = self._generation
        if not forced:
            self._set_loading(True)
            self._set_progress(0.0)

        radius_km = self.cfg.search_radius_km
        task = asyncio.ensure_future(self.fetcher.fetch_nearby_async(coordinate, radius_km))
        self._fetch_task = task
        try:
            results = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.info("fetch at ({:.5f},{:.5f}) cancelled by reset", coordinate.lat, coordinate.lon)
                return FetchOutcome.STALE
            self._set_loading(False)
            self._set_progress(1.0)
            raise
        except Exception as exc:
            if generation != self._generation:
                logger.info("fetch failed after a reset, ignoring: {}", exc)
                return FetchOutcome.STALE
            self._set_loading(False)
            self._set_progress(1.0)
            logger.warning("fetch failed at ({:.5f},{:.5f}): {}", coordinate.lat, coordinate.lon, exc)
            raise POIFetchError(f"nearby fetch failed: {exc}") from exc
        finally:
            if self._fetch_task is task:
                self._fetch_task = None

        if generation != self._generation:
            logger.info("discarding {} results fetched before a reset", len(results))
            return FetchOutcome.STALE

        if forced:
            self._set_progress(0.7)
        self._apply_results(coordinate, results)
        self._set_loading(False)
        self._set_progress(1.0)
        return FetchOutcome.FETCHED

    def _apply_results(self, coordinate: Coordinate, results: List[POI]) -> None:
        now = self._clock()
        displayed, new = self.store.partition(results)
        flags = self._lookup_extended(new)
        added = self.store.merge(new, flags)

        self.cache.insert(
            CachedRegion(
                center=coordinate,
                radius_m=km_to_m(self.cfg.search_radius_km),
                created_at=now,
                member_ids=frozenset(p.id for p in results),
            )
        )
        self.last_fetch_coordinate = coordinate
        self.last_fetch_timestamp = now
        logger.info(
            "fetched {} POIs at ({:.5f},{:.5f}): new={} already_displayed={} store={}",
            len(results),
            coordinate.lat,
            coordinate.lon,
            len(added),
            len(displayed),
            len(self.store),
        )
        self.events.publish("pois", self.pois)

    def _merge_cached(self, cached: List[POI]) -> None:
        _, new = self.store.partition(cached)
        added = self.store.merge(new, self.store.extended_flags)
        logger.debug("cache hit: {} cached POIs, {} new", len(cached), len(added))
        if self.is_loading and not self.fetch_in_flight:
            self._set_loading(False)
            self._set_progress(1.0)
        self.events.publish("pois", self.pois)

    def _lookup_extended(self, pois: List[POI]) -> Dict[int, bool]:
        flags: dict[int, bool] = {}
        for poi in pois[: self.cfg.extended_lookup_cap]:
            try:
                flags[poi.id] = bool(self.extended_lookup.has_extended_data(poi.name))
            except Exception as exc:
                logger.warning("extended-data lookup failed for {}: {}", poi.name, exc)
                flags[poi.id] = False
        return flags

    def _set_loading(self, value: bool) -> None:
        if self.is_loading != value:
            self.is_loading = value
            self.events.publish("loading", value)

    def _set_progress(self, value: float) -> None:
        self.loading_progress = value
        self.events.publish("progress", value)
