"""Rating store contract, a local SQLite implementation, and the query layer."""
from __future__ import annotations

import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol

from . import config
from .edit_policy import EditNotAllowedError
from .models import (
    Location,
    LocationInput,
    LocationType,
    NoiseLevel,
    Profile,
    RatedLocations,
    Rating,
    WifiSpeed,
    enum_value,
    rated_locations_from,
)
from .scoring import aggregate

logger = logging.getLogger(__name__)


class RatingStoreError(RuntimeError):
    """The rating store was unreachable or rejected the request."""


class RatingConflictError(RatingStoreError):
    """A check-in was attempted for a place the user already rated."""


class RatingStore(Protocol):
    async def check_in(
        self,
        location_input: LocationInput,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None: ...

    async def update_rating(
        self,
        place_key: str,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None: ...

    async def delete_my_rating(self, place_key: str) -> None: ...

    async def get_all_locations(self) -> List[Location]: ...

    async def get_location(self, place_key: str) -> Optional[Location]: ...

    async def get_locations_by_noise(self, noise_level: NoiseLevel) -> List[Location]: ...

    async def get_locations_by_type(self, location_type: LocationType) -> List[Location]: ...

    async def get_my_rating(self, place_key: str) -> Optional[Rating]: ...

    async def get_profile(self) -> Optional[Profile]: ...

    async def set_profile(self, name: str) -> None: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SqliteRatingStore:
    """Local rating store; enforces one rating per user and place and one edit."""

    def __init__(
        self,
        db_path: str,
        user_id: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.db_path = db_path
        self.user_id = user_id
        self.clock = clock
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS locations (
                place_key TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                location_type TEXT NOT NULL,
                lat REAL NOT NULL,
                lng REAL NOT NULL,
                address TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS ratings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                place_key TEXT NOT NULL,
                user_id TEXT NOT NULL,
                noise_level TEXT NOT NULL,
                wifi_speed TEXT NOT NULL,
                description TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                edit_count INTEGER NOT NULL DEFAULT 0,
                UNIQUE (place_key, user_id)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS profiles (
                user_id TEXT PRIMARY KEY,
                name TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def _now_iso(self) -> str:
        return self.clock().astimezone(timezone.utc).isoformat()

    async def check_in(
        self,
        location_input: LocationInput,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None:
        noise, wifi = _validate_levels(noise_level, wifi_speed)
        now = self._now_iso()
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT OR IGNORE INTO locations (place_key, name, location_type, lat, lng, address)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        location_input.place_key,
                        location_input.name,
                        enum_value(location_input.location_type),
                        location_input.lat,
                        location_input.lng,
                        location_input.address,
                    ),
                )
                self.conn.execute(
                    """
                    INSERT INTO ratings (
                        place_key, user_id, noise_level, wifi_speed, description,
                        created_at, updated_at, edit_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, 0)
                    """,
                    (location_input.place_key, self.user_id, noise, wifi, description, now, now),
                )
        except sqlite3.IntegrityError as exc:
            raise RatingConflictError(
                f"Already checked in at {location_input.place_key}; edit the rating instead"
            ) from exc
        except sqlite3.Error as exc:
            raise RatingStoreError(f"check_in failed: {exc}") from exc

    async def update_rating(
        self,
        place_key: str,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None:
        noise, wifi = _validate_levels(noise_level, wifi_speed)
        existing = await self.get_my_rating(place_key)
        if existing is None:
            raise RatingStoreError(f"No rating to update for {place_key}")
        if existing.edit_count >= config.MAX_RATING_EDITS:
            raise EditNotAllowedError(f"Rating for {place_key} was already edited")
        try:
            with self.conn:
                self.conn.execute(
                    """
                    UPDATE ratings
                    SET noise_level = ?, wifi_speed = ?, description = ?,
                        updated_at = ?, edit_count = edit_count + 1
                    WHERE place_key = ? AND user_id = ?
                    """,
                    (noise, wifi, description, self._now_iso(), place_key, self.user_id),
                )
        except sqlite3.Error as exc:
            raise RatingStoreError(f"update_rating failed: {exc}") from exc

    async def delete_my_rating(self, place_key: str) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM ratings WHERE place_key = ? AND user_id = ?",
                    (place_key, self.user_id),
                )
        except sqlite3.Error as exc:
            raise RatingStoreError(f"delete_my_rating failed: {exc}") from exc

    async def get_all_locations(self) -> List[Location]:
        return self._load_locations()

    async def get_location(self, place_key: str) -> Optional[Location]:
        found = self._load_locations(place_key=place_key)
        return found[0] if found else None

    async def get_locations_by_noise(self, noise_level: NoiseLevel) -> List[Location]:
        wanted = enum_value(noise_level)
        out = []
        for loc in self._load_locations():
            averages = aggregate(loc.ratings)
            if averages is not None and averages.noise_label == wanted:
                out.append(loc)
        return out

    async def get_locations_by_type(self, location_type: LocationType) -> List[Location]:
        wanted = enum_value(location_type)
        return [loc for loc in self._load_locations() if enum_value(loc.location_type) == wanted]

    async def get_my_rating(self, place_key: str) -> Optional[Rating]:
        try:
            cur = self.conn.execute(
                "SELECT * FROM ratings WHERE place_key = ? AND user_id = ?",
                (place_key, self.user_id),
            )
            row = cur.fetchone()
        except sqlite3.Error as exc:
            raise RatingStoreError(f"get_my_rating failed: {exc}") from exc
        return _row_to_rating(row) if row else None

    async def get_profile(self) -> Optional[Profile]:
        try:
            cur = self.conn.execute("SELECT name FROM profiles WHERE user_id = ?", (self.user_id,))
            row = cur.fetchone()
        except sqlite3.Error as exc:
            raise RatingStoreError(f"get_profile failed: {exc}") from exc
        return Profile(name=row["name"]) if row else None

    async def set_profile(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise RatingStoreError("Profile name must not be empty")
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO profiles (user_id, name) VALUES (?, ?)",
                    (self.user_id, name),
                )
        except sqlite3.Error as exc:
            raise RatingStoreError(f"set_profile failed: {exc}") from exc

    def _load_locations(self, place_key: Optional[str] = None) -> List[Location]:
        try:
            if place_key is None:
                loc_rows = self.conn.execute("SELECT * FROM locations ORDER BY rowid").fetchall()
                rating_rows = self.conn.execute("SELECT * FROM ratings ORDER BY id").fetchall()
            else:
                loc_rows = self.conn.execute(
                    "SELECT * FROM locations WHERE place_key = ?", (place_key,)
                ).fetchall()
                rating_rows = self.conn.execute(
                    "SELECT * FROM ratings WHERE place_key = ? ORDER BY id", (place_key,)
                ).fetchall()
        except sqlite3.Error as exc:
            raise RatingStoreError(f"loading locations failed: {exc}") from exc

        by_key: Dict[str, Location] = {}
        for row in loc_rows:
            by_key[row["place_key"]] = Location(
                place_key=row["place_key"],
                name=row["name"],
                location_type=_decode_location_type(row["location_type"]),
                lat=row["lat"],
                lng=row["lng"],
                address=row["address"],
            )
        for row in rating_rows:
            loc = by_key.get(row["place_key"])
            if loc is not None:
                loc.ratings.append(_row_to_rating(row))
        return list(by_key.values())


def _validate_levels(noise_level, wifi_speed):
    try:
        noise = NoiseLevel(enum_value(noise_level)).value
        wifi = WifiSpeed(enum_value(wifi_speed)).value
    except ValueError as exc:
        raise RatingStoreError(f"Invalid rating value: {exc}") from exc
    return noise, wifi


def _decode_location_type(value: str) -> LocationType:
    try:
        return LocationType(value)
    except ValueError:
        return LocationType.COWORKING_SPACE


def _row_to_rating(row: sqlite3.Row) -> Rating:
    return Rating(
        author=row["user_id"],
        noise_level=row["noise_level"],
        wifi_speed=row["wifi_speed"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        edit_count=int(row["edit_count"]),
    )


@dataclass
class _Snapshot:
    locations: List[Location]
    fetched_at: float


class RatingsRepository:
    """Caches store reads and drops them after every successful mutation."""

    def __init__(
        self,
        store: RatingStore,
        stale_seconds: float = config.RATINGS_STALE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.stale_seconds = stale_seconds
        self.clock = clock
        self._snapshot: Optional[_Snapshot] = None
        self._my_ratings: Dict[str, Optional[Rating]] = {}
        self._generation = 0

    async def all_locations(self, force: bool = False) -> List[Location]:
        snapshot = self._snapshot
        if (
            not force
            and snapshot is not None
            and (self.clock() - snapshot.fetched_at) <= self.stale_seconds
        ):
            return snapshot.locations
        generation = self._generation
        locations = list(await self.store.get_all_locations())
        # A mutation landed while this read was in flight; do not cache what it returned.
        if generation == self._generation:
            self._snapshot = _Snapshot(locations=locations, fetched_at=self.clock())
        return locations

    async def rated_locations(self, force: bool = False) -> RatedLocations:
        return rated_locations_from(await self.all_locations(force=force))

    async def my_rating(self, place_key: str) -> Optional[Rating]:
        if place_key in self._my_ratings:
            return self._my_ratings[place_key]
        generation = self._generation
        rating = await self.store.get_my_rating(place_key)
        if generation == self._generation:
            self._my_ratings[place_key] = rating
        return rating

    def invalidate(self, place_key: Optional[str] = None) -> None:
        self._snapshot = None
        self._generation += 1
        if place_key is None:
            self._my_ratings.clear()
        else:
            self._my_ratings.pop(place_key, None)

    async def check_in(
        self,
        location_input: LocationInput,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None:
        await self.store.check_in(location_input, noise_level, wifi_speed, description)
        self.invalidate(location_input.place_key)

    async def update_rating(
        self,
        place_key: str,
        noise_level: NoiseLevel,
        wifi_speed: WifiSpeed,
        description: Optional[str],
    ) -> None:
        await self.store.update_rating(place_key, noise_level, wifi_speed, description)
        self.invalidate(place_key)

    async def delete_my_rating(self, place_key: str) -> None:
        await self.store.delete_my_rating(place_key)
        self.invalidate(place_key)

    async def profile(self) -> Optional[Profile]:
        return await self.store.get_profile()

    async def set_profile(self, name: str) -> None:
        await self.store.set_profile(name)
