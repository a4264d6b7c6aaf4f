from __future__ import annotations

import time
from typing import Callable, List, Optional

from loguru import logger

from models import POI, CachedRegion, Coordinate
from services.entity_store import EntityStore


class RegionCache:
    """Ordered list of previously fetched regions with lazy time-based expiry.

    Overlapping regions are kept as-is; lookup takes the first containing
    region in insertion order.
    """

    def __init__(
        self,
        expiry_sec: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
        prune_on_insert: bool = True,
    ) -> None:
        self.expiry_sec = expiry_sec
        self._clock = clock
        self._prune_on_insert = prune_on_insert
        self._regions: List[CachedRegion] = []

    def __len__(self) -> int:
        return len(self._regions)

    @property
    def regions(self) -> List[CachedRegion]:
        return list(self._regions)

    def lookup(self, coordinate: Coordinate, store: EntityStore) -> Optional[List[POI]]:
        self._purge_expired()
        for region in self._regions:
            if not region.contains(coordinate):
                continue
            members = [poi for poi in store.all() if poi.id in region.member_ids]
            return members or None
        return None

    def insert(self, region: CachedRegion) -> None:
        if self._prune_on_insert:
            self._purge_expired()
        self._regions.append(region)
        logger.debug(
            "cached region center=({:.5f},{:.5f}) radius_m={:.0f} members={} total={}",
            region.center.lat,
            region.center.lon,
            region.radius_m,
            len(region.member_ids),
            len(self._regions),
        )

    def clear(self) -> None:
        self._regions.clear()

    def _purge_expired(self) -> None:
        now = self._clock()
        kept = [r for r in self._regions if not r.is_expired(now, self.expiry_sec)]
        dropped = len(self._regions) - len(kept)
        if dropped:
            logger.debug("purged {} expired region(s)", dropped)
        self._regions = kept
