"""Substring search over the loaded places, honoring the active filters."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from . import config
from .filters import FilterState, matches_filters
from .models import UNNAMED_PLACE, Place, RatedLocations


@dataclass(frozen=True)
class SearchResult:
    id: int
    name: str
    category: str
    lat: float
    lon: float


def search(
    query: str,
    places: Sequence[Place],
    rated_locations: Optional[RatedLocations],
    filters: FilterState,
    limit: Optional[int] = None,
) -> List[SearchResult]:
    needle = (query or "").strip().lower()
    if not needle:
        return []
    max_results = config.SEARCH_RESULT_LIMIT if limit is None else limit
    rated = rated_locations or {}
    results: List[SearchResult] = []
    for place in places:
        if len(results) >= max_results:
            break
        # Unnamed places only match on their category.
        name = "" if place.name == UNNAMED_PLACE else place.name.lower()
        category = place.category_label.lower()
        if needle not in name and needle not in category:
            continue
        if not matches_filters(rated.get(place.key), filters):
            continue
        results.append(
            SearchResult(
                id=place.id,
                name=place.name,
                category=place.category,
                lat=place.lat,
                lon=place.lon,
            )
        )
    return results
