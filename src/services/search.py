"""Read-side projections over the entity store: search and filtering."""

from __future__ import annotations

from typing import List, Optional

from models import POI, Coordinate, POIFilter
from services.entity_store import EntityStore, sort_by_priority

MAX_SEARCH_RESULTS = 50


def search_pois(
    store: EntityStore,
    query: str,
    *,
    user_location: Optional[Coordinate] = None,
    limit: int = MAX_SEARCH_RESULTS,
) -> List[POI]:
    """Case-insensitive substring match on name or category.

    Extended-data matches come first; each group is ordered by distance from
    the user (or by name without a location) and the result is capped at `limit`.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return []

    flags = store.extended_flags
    with_data: list[POI] = []
    without: list[POI] = []
    for poi in store.all():
        if needle in poi.name.lower() or needle in (poi.category or "").lower():
            (with_data if flags.get(poi.id, False) else without).append(poi)

    ordered = sort_by_priority(with_data, flags, user_location) + sort_by_priority(without, flags, user_location)
    return ordered[: max(limit, 0)]


def filter_pois(
    store: EntityStore,
    poi_filter: Optional[POIFilter],
    *,
    user_location: Optional[Coordinate] = None,
) -> List[POI]:
    ordered = store.sorted(user_location)
    if poi_filter is None or poi_filter.is_empty:
        return ordered
    return [
        poi
        for poi in ordered
        if poi_filter.matches(poi, extended=store.has_extended_data(poi.id), user_location=user_location)
    ]
