"""Data models for the region cache and fetch coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from utils import haversine_m, m_to_miles

UNKNOWN_AREA = "Unknown Location"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def distance_m(self, other: "Coordinate") -> float:
        return haversine_m(self.lat, self.lon, other.lat, other.lon)


@dataclass(frozen=True)
class POI:
    """A point of interest. Immutable once stored; `id` is the dedup key."""

    id: int
    name: str
    coordinate: Coordinate
    address: Optional[str] = None
    category: Optional[str] = None  # cuisine tag
    opening_hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    source_type: str = "node"
    amenity: Optional[str] = None


@dataclass
class CachedRegion:
    center: Coordinate
    radius_m: float
    created_at: float
    member_ids: FrozenSet[int] = field(default_factory=frozenset)

    def is_expired(self, now: float, window_sec: float) -> bool:
        return now - self.created_at > window_sec

    def contains(self, coordinate: Coordinate) -> bool:
        return self.center.distance_m(coordinate) <= self.radius_m


@dataclass(frozen=True)
class Viewport:
    center: Coordinate
    lat_span: float
    lon_span: float


@dataclass(frozen=True)
class PlaceName:
    locality: Optional[str] = None
    sub_locality: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

    def display(self, zoomed_out: bool = False) -> str:
        if zoomed_out:
            return self.region or self.country or UNKNOWN_AREA
        return self.locality or self.sub_locality or self.region or UNKNOWN_AREA


class AuthorizationStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    RESTRICTED = "restricted"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"
    AUTHORIZED_ALWAYS = "authorized_always"

    @property
    def is_authorized(self) -> bool:
        return self in (AuthorizationStatus.AUTHORIZED_WHEN_IN_USE, AuthorizationStatus.AUTHORIZED_ALWAYS)


class FetchOutcome(str, Enum):
    CACHE_HIT = "cache_hit"
    FETCHED = "fetched"
    ZOOM_GATED = "zoom_gated"
    RATE_LIMITED = "rate_limited"
    MOVEMENT_GATED = "movement_gated"
    IN_FLIGHT = "in_flight"
    REFRESH_IN_PROGRESS = "refresh_in_progress"
    STALE = "stale"


@dataclass
class POIFilter:
    amenity: Optional[str] = None
    chains: list[str] = field(default_factory=list)
    cuisines: list[str] = field(default_factory=list)
    max_distance_miles: Optional[float] = None
    has_extended_data: Optional[bool] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.amenity is None
            and not self.chains
            and not self.cuisines
            and self.max_distance_miles is None
            and self.has_extended_data is None
        )

    def matches(self, poi: POI, *, extended: bool, user_location: Optional[Coordinate]) -> bool:
        name = poi.name.lower()
        if self.amenity and poi.amenity != self.amenity:
            return False
        if self.chains and not any(chain.lower() in name for chain in self.chains):
            return False
        if self.cuisines:
            category = (poi.category or "").lower()
            if not category:
                return False
            if not any(c.lower() in category or c.lower() in name for c in self.cuisines):
                return False
        if self.max_distance_miles is not None and user_location is not None:
            if m_to_miles(poi.coordinate.distance_m(user_location)) > self.max_distance_miles:
                return False
        if self.has_extended_data is not None and self.has_extended_data != extended:
            return False
        return True
