"""Map session: keeps places, ratings, position and filters in one view."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .channel import CheckInIntent
from .edit_policy import SubmissionKind, ensure_can_edit
from .filters import FilterState
from .geolocation import GeolocationSource
from .models import (
    Coordinate,
    LocationInput,
    NoiseLevel,
    Place,
    RatedLocations,
    Rating,
    WifiSpeed,
    location_type_for,
)
from .places_client import FeedUnavailableError, PlaceCache, make_place_cache_key
from .rating_store import RatingsRepository, RatingStoreError
from .reconciler import MarkerSpec, ViewModelReconciler
from .search import SearchResult, search

logger = logging.getLogger(__name__)


@dataclass
class LoadState:
    places_loading: bool = False
    ratings_loading: bool = False
    places_error: Optional[str] = None
    ratings_error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return bool(self.places_error or self.ratings_error)


def location_input_for(intent: CheckInIntent) -> LocationInput:
    return LocationInput(
        place_key=intent.place_key,
        name=intent.name,
        location_type=location_type_for(intent.type),
        lat=intent.lat,
        lng=intent.lng,
        address=intent.address or None,
    )


class MapSession:
    def __init__(
        self,
        place_cache: PlaceCache,
        ratings: RatingsRepository,
        geolocation: GeolocationSource,
        reconciler: ViewModelReconciler,
        filters: Optional[FilterState] = None,
    ) -> None:
        self.place_cache = place_cache
        self.ratings = ratings
        self.geolocation = geolocation
        self.reconciler = reconciler
        self.filters = filters or FilterState()
        self.state = LoadState()
        self.places: Optional[List[Place]] = None
        self.rated_locations: Optional[RatedLocations] = None
        self._places_key: Optional[str] = None
        self._pending_places = 0
        self._ratings_generation = 0
        self._follow_task: Optional["asyncio.Task[None]"] = None
        self.geolocation.on_change = self._on_location_change

    @property
    def center(self) -> Coordinate:
        return self.geolocation.current()

    @property
    def markers(self) -> Tuple[MarkerSpec, ...]:
        return self.reconciler.markers

    def active_key(self) -> str:
        return make_place_cache_key(self.center, self.filters.radius)

    async def start(self) -> None:
        """First load at the current (fallback) position; a GPS fix follows later."""
        self.reconciler.surface.show_user_location(self.center, self.filters.radius)
        locate_task = self.geolocation.start()
        if locate_task is not None:
            self._follow_task = asyncio.ensure_future(self._follow_initial_locate(locate_task))
        await self.refresh()

    async def _follow_initial_locate(self, locate_task: "asyncio.Task[None]") -> None:
        await locate_task
        if self._places_key != self.active_key():
            await self.refresh_places()

    async def refresh(self, force_ratings: bool = False) -> None:
        await asyncio.gather(
            self.refresh_places(),
            self.refresh_ratings(force=force_ratings),
        )

    async def retry(self) -> None:
        self.state.places_error = None
        self.state.ratings_error = None
        await self.refresh(force_ratings=True)

    async def refresh_places(self) -> bool:
        center = self.center
        radius = self.filters.radius
        key = make_place_cache_key(center, radius)
        self._pending_places += 1
        self.state.places_loading = True
        try:
            places = await self.place_cache.fetch(center, radius)
        except FeedUnavailableError as exc:
            if key != self.active_key():
                self._discard_stale(key)
                return False
            logger.warning("Place feed unavailable: %s", exc)
            self.state.places_error = str(exc)
            return False
        finally:
            self._pending_places -= 1
            self.state.places_loading = self._pending_places > 0

        if key != self.active_key():
            self._discard_stale(key)
            return False
        self.places = places
        self._places_key = key
        self.state.places_error = None
        self.redraw()
        return True

    async def refresh_ratings(self, force: bool = False) -> bool:
        generation = self._ratings_generation
        self.state.ratings_loading = True
        try:
            rated = await self.ratings.rated_locations(force=force)
        except RatingStoreError as exc:
            if generation != self._ratings_generation:
                logger.info("Ignoring failed ratings read issued before the last change: %s", exc)
                return False
            logger.warning("Rating store unavailable: %s", exc)
            self.state.ratings_error = str(exc)
            return False
        finally:
            self.state.ratings_loading = False
        if generation != self._ratings_generation:
            logger.info("Dropping ratings read issued before the last change")
            return False
        self.rated_locations = rated
        self.state.ratings_error = None
        self.redraw()
        return True

    def _discard_stale(self, key: str) -> None:
        self.place_cache.metrics.inc_stale_discard()
        logger.info("Discarding places for %s; view now shows %s", key, self.active_key())

    def redraw(self) -> Tuple[MarkerSpec, ...]:
        if self.places is None:
            return ()
        return self.reconciler.reconcile(self.places, self.rated_locations, self.filters)

    def _on_location_change(self, coordinate: Coordinate) -> None:
        self.reconciler.surface.show_user_location(coordinate, self.filters.radius)

    async def set_radius(self, radius: int) -> bool:
        self.filters = self.filters.with_changes(radius=int(radius))
        self.reconciler.surface.show_user_location(self.center, self.filters.radius)
        return await self.refresh_places()

    def set_filters(
        self,
        noise_filter: Optional[str] = None,
        wifi_filter: Optional[str] = None,
    ) -> Tuple[MarkerSpec, ...]:
        changes = {}
        if noise_filter is not None:
            changes["noise_filter"] = noise_filter
        if wifi_filter is not None:
            changes["wifi_filter"] = wifi_filter
        self.filters = self.filters.with_changes(**changes)
        return self.redraw()

    def set_search_query(self, query: str) -> List[SearchResult]:
        self.filters = self.filters.with_changes(search_query=query or "")
        return self.search()

    def search(self) -> List[SearchResult]:
        return search(
            self.filters.search_query,
            self.places or [],
            self.rated_locations,
            self.filters,
        )

    def select_search_result(self, result: SearchResult) -> bool:
        return self.reconciler.center_and_open(result.id)

    async def relocate(self, coordinate: Coordinate) -> bool:
        self.geolocation.set_manual(coordinate)
        return await self.refresh_places()

    async def locate_me(self) -> Coordinate:
        coordinate = await self.geolocation.locate_once()
        if not self.geolocation.locate_failed:
            await self.refresh_places()
        return coordinate

    async def existing_rating(self, place_key: str) -> Optional[Rating]:
        return await self.ratings.my_rating(place_key)

    async def submit_rating(
        self,
        intent: CheckInIntent,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str] = None,
    ) -> SubmissionKind:
        existing = await self.ratings.my_rating(intent.place_key)
        kind = ensure_can_edit(existing)
        note = (description or "").strip() or None
        if kind is SubmissionKind.CREATE:
            await self.ratings.check_in(location_input_for(intent), noise_level, wifi_speed, note)
        else:
            await self.ratings.update_rating(intent.place_key, noise_level, wifi_speed, note)
        self._ratings_generation += 1
        await self.refresh_ratings(force=True)
        return kind

    async def delete_my_rating(self, place_key: str) -> None:
        await self.ratings.delete_my_rating(place_key)
        self._ratings_generation += 1
        await self.refresh_ratings(force=True)

    def reviews_for(self, place_key: str) -> List[Rating]:
        ratings = (self.rated_locations or {}).get(place_key) or []
        return sorted(ratings, key=lambda r: r.created_at, reverse=True)
