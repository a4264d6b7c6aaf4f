from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret

DEFAULT_OVERPASS_URLS = [
    "https://overpass-api.de/api/interpreter",
    "https://maps.mail.ru/osm/tools/overpass/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
]


class Configuration(BaseModel):
    # Overpass (remote POI source)
    overpass_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_OVERPASS_URLS))
    overpass_timeout: int = Field(default=10)

    # Geoapify (reverse geocoding)
    geoapify_api_key: Optional[str] = Field(default=None)
    geoapify_base_url: str = Field(default="https://api.geoapify.com")
    geoapify_timeout: int = Field(default=15)
    lang_default: str = Field(default="en")

    # Fetch coordination
    search_radius_km: float = Field(default=3.0, gt=0)
    region_expiry_sec: float = Field(default=30 * 60, gt=0)
    movement_threshold_m: float = Field(default=500.0, ge=0)
    fetch_cooldown_sec: float = Field(default=3.0, ge=0)
    max_fetch_span_deg: float = Field(default=0.5, gt=0)
    extended_lookup_cap: int = Field(default=5, ge=0)
    search_result_cap: int = Field(default=50, gt=0)

    # Area name
    geocode_min_interval_sec: float = Field(default=30.0, ge=0)
    geocode_min_distance_m: float = Field(default=5000.0, ge=0)
    geocode_delay_sec: float = Field(default=3.0, ge=0)
    geocode_timeout_sec: float = Field(default=2.0, gt=0)
    zoomed_out_span_deg: float = Field(default=0.5, gt=0)

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "overpass_urls": os.getenv("OVERPASS_URLS"),
            "overpass_timeout": os.getenv("OVERPASS_TIMEOUT"),
            "geoapify_api_key": os.getenv("GEOAPIFY_API_KEY"),
            "geoapify_base_url": os.getenv("GEOAPIFY_BASE_URL"),
            "geoapify_timeout": os.getenv("GEOAPIFY_TIMEOUT"),
            "lang_default": os.getenv("LANG_DEFAULT"),
            "search_radius_km": os.getenv("SEARCH_RADIUS_KM"),
            "region_expiry_sec": os.getenv("REGION_EXPIRY_SEC"),
            "movement_threshold_m": os.getenv("MOVEMENT_THRESHOLD_M"),
            "fetch_cooldown_sec": os.getenv("FETCH_COOLDOWN_SEC"),
            "max_fetch_span_deg": os.getenv("MAX_FETCH_SPAN_DEG"),
            "extended_lookup_cap": os.getenv("EXTENDED_LOOKUP_CAP"),
            "search_result_cap": os.getenv("SEARCH_RESULT_CAP"),
            "geocode_min_interval_sec": os.getenv("GEOCODE_MIN_INTERVAL_SEC"),
            "geocode_min_distance_m": os.getenv("GEOCODE_MIN_DISTANCE_M"),
            "geocode_delay_sec": os.getenv("GEOCODE_DELAY_SEC"),
            "geocode_timeout_sec": os.getenv("GEOCODE_TIMEOUT_SEC"),
            "zoomed_out_span_deg": os.getenv("ZOOMED_OUT_SPAN_DEG"),
            "log_level": os.getenv("LOG_LEVEL"),
        }

        list_fields = {"overpass_urls"}

        for k, v in env_map.items():
            if v is None:
                continue
            if k in list_fields:
                raw[k] = [part.strip() for part in str(v).split(",") if part.strip()]
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_geoapify(self) -> None:
        if not self.geoapify_api_key:
            raise ValueError("GEOAPIFY_API_KEY is required")

    def log_summary(self) -> str:
        return (
            "overpass_mirrors=%d radius_km=%.1f expiry_s=%.0f movement_m=%.0f cooldown_s=%.1f "
            "geoapify=%s lang_default=%s api_key=%s"
            % (
                len(self.overpass_urls),
                self.search_radius_km,
                self.region_expiry_sec,
                self.movement_threshold_m,
                self.fetch_cooldown_sec,
                bool(self.geoapify_api_key),
                self.lang_default,
                mask_secret(self.geoapify_api_key),
            )
        )
