"""Overpass place feed client behind the TTL place cache."""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Dict, List, Mapping, Optional

import requests

from . import config
from .cache import TtlCache
from .http import HttpClient, RequestMetrics
from .models import UNNAMED_PLACE, Coordinate, Place

logger = logging.getLogger(__name__)


class FeedUnavailableError(RuntimeError):
    """The place feed could not be reached or returned an unusable payload."""


def round_coord(value: float, precision: int = config.COORD_PRECISION) -> float:
    factor = 10 ** precision
    return math.floor(value * factor + 0.5) / factor


def make_place_cache_key(center: Coordinate, radius: int) -> str:
    lat = round_coord(center[0])
    lon = round_coord(center[1])
    return f"{config.PLACE_CACHE_KEY_PREFIX}_{lat}_{lon}_{radius}"


def build_overpass_query(center: Coordinate, radius: int) -> str:
    lat, lon = center
    selectors = "\n".join(
        f'  node["amenity"="{amenity}"](around:{radius},{lat},{lon});'
        for amenity in config.FEED_AMENITIES
    )
    return f"[out:json][timeout:{config.OVERPASS_QUERY_TIMEOUT_SECONDS}];\n(\n{selectors}\n);\nout body;\n"


def parse_overpass_response(response: Dict[str, Any]) -> List[Place]:
    elements = response.get("elements")
    if elements is None:
        elements = []
    if not isinstance(elements, list):
        raise FeedUnavailableError("Place feed returned elements of an unexpected type")
    places: List[Place] = []
    for element in elements:
        place = _parse_element(element)
        if place is None:
            logger.debug("Skipping unusable feed element: %r", element)
            continue
        places.append(place)
    return places


def _parse_element(element: Any) -> Optional[Place]:
    if not isinstance(element, Mapping):
        return None
    place_id = element.get("id")
    lat = element.get("lat")
    lon = element.get("lon")
    if place_id is None or lat is None or lon is None:
        return None
    try:
        place_id = int(place_id)
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    tags = element.get("tags")
    if not isinstance(tags, Mapping):
        tags = {}
    street = tags.get("addr:street")
    address = None
    if street:
        address = f"{tags.get('addr:housenumber') or ''} {street}".strip()
    return Place(
        id=place_id,
        lat=lat,
        lon=lon,
        name=str(tags.get("name") or UNNAMED_PLACE),
        category=str(tags.get("amenity") or "place"),
        address=address,
        opening_hours=tags.get("opening_hours"),
    )


class PlaceCache:
    """Fetches places around a center, serving repeats from the TTL cache.

    Concurrent fetches for the same key share a single feed request.
    """

    def __init__(
        self,
        http_client: HttpClient,
        cache: TtlCache,
        metrics: Optional[RequestMetrics] = None,
        url: Optional[str] = None,
    ) -> None:
        self.http = http_client
        self.cache = cache
        self.metrics = metrics if metrics is not None else RequestMetrics()
        self.url = url or config.OVERPASS_URL
        self._inflight: Dict[str, "asyncio.Task[List[Place]]"] = {}

    async def fetch(self, center: Coordinate, radius: int) -> List[Place]:
        key = make_place_cache_key(center, radius)
        entry = self.cache.get(key)
        if entry is not None:
            self.metrics.inc_cache_hit()
            try:
                return [Place.from_dict(item) for item in entry.payload]
            except (KeyError, TypeError, ValueError):
                logger.debug("Cached payload for %s is malformed; refetching", key)

        task = self._inflight.get(key)
        if task is not None:
            self.metrics.inc_inflight_join()
            return await task

        task = asyncio.ensure_future(self._fetch_from_feed(key, center, radius))
        self._inflight[key] = task
        try:
            return await task
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def _fetch_from_feed(self, key: str, center: Coordinate, radius: int) -> List[Place]:
        query = build_overpass_query(center, radius)
        self.metrics.inc_network()
        try:
            response = await asyncio.to_thread(self.http.post_text, self.url, query)
        except (requests.RequestException, ValueError, RuntimeError) as exc:
            raise FeedUnavailableError(f"Place feed request failed: {exc}") from exc
        if not isinstance(response, dict):
            raise FeedUnavailableError("Place feed returned an unexpected payload")
        places = parse_overpass_response(response)
        self.cache.put(key, [place.to_dict() for place in places])
        logger.debug(
            "PlaceCache fetch: lat=%.6f lon=%.6f radius_m=%s got %d places",
            center[0],
            center[1],
            radius,
            len(places),
        )
        return places
