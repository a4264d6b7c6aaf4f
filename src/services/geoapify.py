from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import Coordinate, PlaceName


class GeoapifyError(RuntimeError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class GeoapifyClient:
    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.geoapify_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.policy = _RetryPolicy()
        self._cache_ttl = 60 * 30  # 30 minutes
        self._cache_max = 128
        self._reverse_cache: OrderedDict[str, Tuple[float, PlaceName]] = OrderedDict()

    def _cache_get(self, key: str) -> Optional[PlaceName]:
        entry = self._reverse_cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._reverse_cache.pop(key, None)
            return None
        self._reverse_cache.move_to_end(key)
        return value

    def _cache_set(self, key: str, value: PlaceName) -> None:
        if len(self._reverse_cache) >= self._cache_max:
            self._reverse_cache.popitem(last=False)
        self._reverse_cache[key] = (time.time(), value)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "apiKey": self.cfg.geoapify_api_key}
        policy = self.policy
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.geoapify_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= policy.retries:
                    logger.debug("geoapify request failed ({}), retrying", exc)
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GeoapifyError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    logger.debug("geoapify returned {}, retrying", resp.status_code)
                    time.sleep(policy.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise GeoapifyError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise GeoapifyError("invalid json response")

    def resolve(self, coordinate: Coordinate, *, lang: Optional[str] = None) -> PlaceName:
        lang = lang or self.cfg.lang_default
        key = f"reverse:{lang}:{coordinate.lat:.3f},{coordinate.lon:.3f}"
        cached = self._cache_get(key)
        if cached is not None:
            return cached
        self.cfg.require_geoapify()
        payload = self._get(
            "/v1/geocode/reverse",
            {"lat": coordinate.lat, "lon": coordinate.lon, "limit": 1, "lang": lang},
        )
        features = payload.get("features") or []
        if not features:
            raise GeoapifyError("no reverse geocode result")
        props: dict[str, Any] = features[0].get("properties") or {}
        result = PlaceName(
            locality=props.get("city") or props.get("town") or props.get("village") or None,
            sub_locality=props.get("suburb") or props.get("district") or None,
            region=props.get("state") or props.get("county") or None,
            country=props.get("country") or None,
        )
        self._cache_set(key, result)
        return result

    async def resolve_async(self, coordinate: Coordinate) -> PlaceName:
        return await asyncio.to_thread(self.resolve, coordinate)
