"""Builds the marker set for the current data and redraws it wholesale."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .channel import CheckInIntent, ViewReviewsIntent
from .filters import FilterState, matches_filters
from .models import Place, RatedLocations
from .preview import MarkerIcon, PopupContent, build_marker_icon, build_popup
from .surface import DrawingSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkerSpec:
    place_id: int
    place_key: str
    lat: float
    lon: float
    icon: MarkerIcon
    popup: PopupContent
    check_in: CheckInIntent
    view_reviews: Optional[ViewReviewsIntent] = None


def build_marker(place: Place, ratings: Sequence) -> MarkerSpec:
    popup = build_popup(place, ratings)
    view_reviews = None
    if popup.can_view_all:
        view_reviews = ViewReviewsIntent(place_key=place.key, name=place.name)
    return MarkerSpec(
        place_id=place.id,
        place_key=place.key,
        lat=place.lat,
        lon=place.lon,
        icon=build_marker_icon(place.category, ratings),
        popup=popup,
        check_in=CheckInIntent(
            place_key=place.key,
            lat=place.lat,
            lng=place.lon,
            name=place.name,
            type=place.category,
            address=place.address,
        ),
        view_reviews=view_reviews,
    )


def build_markers(
    places: Sequence[Place],
    rated_locations: Optional[RatedLocations],
    filters: FilterState,
) -> Tuple[MarkerSpec, ...]:
    """Marker specs in feed order; missing ratings count as "no ratings yet"."""
    rated = rated_locations or {}
    markers: List[MarkerSpec] = []
    for place in places:
        ratings = rated.get(place.key) or []
        if not matches_filters(ratings, filters):
            continue
        markers.append(build_marker(place, ratings))
    return tuple(markers)


class ViewModelReconciler:
    def __init__(self, surface: DrawingSurface) -> None:
        self.surface = surface
        self._drawn: Dict[int, MarkerSpec] = {}
        self.passes = 0

    @property
    def markers(self) -> Tuple[MarkerSpec, ...]:
        return tuple(self._drawn.values())

    def reconcile(
        self,
        places: Sequence[Place],
        rated_locations: Optional[RatedLocations],
        filters: FilterState,
    ) -> Tuple[MarkerSpec, ...]:
        markers = build_markers(places, rated_locations, filters)
        self.surface.clear()
        self._drawn.clear()
        for marker in markers:
            # The feed can repeat a node; keep the first so ids stay unique on the surface.
            if marker.place_id in self._drawn:
                continue
            self.surface.draw(marker)
            self._drawn[marker.place_id] = marker
        self.passes += 1
        logger.debug("Reconciled %d markers from %d places", len(self._drawn), len(places))
        return self.markers

    def marker_for(self, place_id: int) -> Optional[MarkerSpec]:
        return self._drawn.get(place_id)

    def center_and_open(self, place_id: int) -> bool:
        if place_id not in self._drawn:
            return False
        return self.surface.center_on(place_id)
