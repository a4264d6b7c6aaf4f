from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import List, Optional

import requests
from loguru import logger

from config import Configuration
from models import POI, Coordinate
from utils import km_to_m


class OverpassError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class OverpassClient:
    """Nearby restaurant lookup against public Overpass mirrors.

    The search radius arrives in kilometers and is converted to meters here,
    the only place the remote API sees it.
    """

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        if not cfg.overpass_urls:
            raise ValueError("at least one Overpass URL is required")
        self.cfg = cfg
        self.urls = list(cfg.overpass_urls)
        self.session = session or requests.Session()
        self._url_index = 0
        self.policy = _RetryPolicy()

    def _build_query(self, coordinate: Coordinate, radius_m: float) -> str:
        around = f"around:{radius_m:.0f},{coordinate.lat},{coordinate.lon}"
        return (
            f"[out:json][timeout:{self.cfg.overpass_timeout}];\n"
            "(\n"
            f'  node["amenity"="fast_food"]["name"]({around});\n'
            f'  node["amenity"="restaurant"]["name"]({around});\n'
            ");\n"
            "out body;"
        )

    def _rotate(self) -> None:
        self._url_index = (self._url_index + 1) % len(self.urls)

    def _post(self, query: str) -> dict:
        headers = {"Accept": "application/json"}
        policy = self.policy
        attempt = 0
        while True:
            attempt += 1
            url = self.urls[self._url_index]
            try:
                resp = self.session.post(url, data={"data": query}, headers=headers, timeout=self.cfg.overpass_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    logger.debug("overpass {} failed ({}), retrying", url, exc)
                    self._rotate()
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise OverpassError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    logger.debug("overpass {} returned {}, retrying", url, resp.status_code)
                    self._rotate()
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise OverpassError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise OverpassError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise OverpassError("invalid json response")

    def _parse_elements(self, elements: List[dict]) -> List[POI]:
        results: list[POI] = []
        for el in elements:
            tags = el.get("tags") or {}
            name = (tags.get("name") or "").strip()
            lat = el.get("lat")
            lon = el.get("lon")
            poi_id = el.get("id")
            if not name or lat is None or lon is None or poi_id is None:
                continue

            street = tags.get("addr:street")
            number = tags.get("addr:housenumber")
            address = " ".join(filter(None, [number, street])) or None

            results.append(
                POI(
                    id=int(poi_id),
                    name=name,
                    coordinate=Coordinate(lat=float(lat), lon=float(lon)),
                    address=address,
                    category=tags.get("cuisine") or None,
                    opening_hours=tags.get("opening_hours") or None,
                    phone=tags.get("phone") or None,
                    website=tags.get("website") or None,
                    source_type=str(el.get("type") or "node"),
                    amenity=tags.get("amenity") or None,
                )
            )
        return results

    def fetch_nearby(self, coordinate: Coordinate, radius_km: float) -> List[POI]:
        radius_m = km_to_m(max(radius_km, 0.1))
        payload = self._post(self._build_query(coordinate, radius_m))
        elements = payload.get("elements") or []
        results = self._parse_elements(elements)
        logger.debug(
            "overpass returned {} elements, {} usable, around ({:.5f},{:.5f}) r={:.0f}m",
            len(elements),
            len(results),
            coordinate.lat,
            coordinate.lon,
            radius_m,
        )
        return results

    async def fetch_nearby_async(self, coordinate: Coordinate, radius_km: float) -> List[POI]:
        """Async wrapper so the blocking HTTP call stays off the event loop."""
        return await asyncio.to_thread(self.fetch_nearby, coordinate, radius_km)
