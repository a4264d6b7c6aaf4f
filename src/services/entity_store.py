from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from models import POI, Coordinate


def priority_key(poi: POI, extended: bool, user_location: Optional[Coordinate]) -> Tuple[int, float, str]:
    """Extended-data POIs first, then distance from the user (or name when unknown)."""
    if user_location is not None:
        return (0 if extended else 1, poi.coordinate.distance_m(user_location), "")
    return (0 if extended else 1, 0.0, poi.name)


def sort_by_priority(
    pois: Iterable[POI],
    extended: Dict[int, bool],
    user_location: Optional[Coordinate] = None,
) -> List[POI]:
    return sorted(pois, key=lambda p: priority_key(p, extended.get(p.id, False), user_location))


class EntityStore:
    """De-duplicated working set of POIs plus the ids already displayed."""

    def __init__(self) -> None:
        self._items: Dict[int, POI] = {}
        self._extended: Dict[int, bool] = {}
        self.displayed_ids: Set[int] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, poi_id: object) -> bool:
        return poi_id in self._items

    def get(self, poi_id: int) -> Optional[POI]:
        return self._items.get(poi_id)

    def all(self) -> List[POI]:
        return list(self._items.values())

    def has_extended_data(self, poi_id: int) -> bool:
        return self._extended.get(poi_id, False)

    @property
    def extended_flags(self) -> Dict[int, bool]:
        return dict(self._extended)

    def partition(self, pois: Iterable[POI]) -> Tuple[List[POI], List[POI]]:
        """Split into (already displayed, new). Duplicates inside the batch count once."""
        displayed: list[POI] = []
        new: list[POI] = []
        seen: set[int] = set()
        for poi in pois:
            if poi.id in seen:
                continue
            seen.add(poi.id)
            if poi.id in self.displayed_ids:
                displayed.append(poi)
            else:
                new.append(poi)
        return displayed, new

    def merge(self, pois: Iterable[POI], extended: Optional[Dict[int, bool]] = None) -> List[POI]:
        """Add POIs not yet known. First-seen version of an id wins; returns what was added."""
        extended = extended or {}
        added: list[POI] = []
        for poi in pois:
            if poi.id in self.displayed_ids or poi.id in self._items:
                continue
            self._items[poi.id] = poi
            self._extended[poi.id] = bool(extended.get(poi.id, False))
            self.displayed_ids.add(poi.id)
            added.append(poi)
        return added

    def sorted(self, user_location: Optional[Coordinate] = None) -> List[POI]:
        return sort_by_priority(self._items.values(), self._extended, user_location)

    def clear(self) -> None:
        self._items.clear()
        self._extended.clear()
        self.displayed_ids.clear()
