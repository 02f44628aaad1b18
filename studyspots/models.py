"""Domain records shared by the feed, rating store and view model."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional


class Coordinate(NamedTuple):
    lat: float
    lon: float


class NoiseLevel(str, Enum):
    QUIET = "Quiet"
    MODERATE = "Moderate"
    BUZZING = "Buzzing"


class WifiSpeed(str, Enum):
    SLOW = "Slow"
    OKAY = "Okay"
    FAST = "Fast"


class LocationType(str, Enum):
    CAFE = "Cafe"
    LIBRARY = "Library"
    COWORKING_SPACE = "CoworkingSpace"


def enum_value(value: Any) -> Any:
    """Return the raw string behind an enum member, or the value unchanged."""
    return getattr(value, "value", value)


# Display name for feed nodes without a name tag; never matched by search.
UNNAMED_PLACE = "Unknown"


def place_key(place_id: int) -> str:
    return f"node/{place_id}"


def location_type_for(category: str) -> LocationType:
    if category == "cafe":
        return LocationType.CAFE
    if category == "library":
        return LocationType.LIBRARY
    return LocationType.COWORKING_SPACE


@dataclass(frozen=True)
class Place:
    id: int
    lat: float
    lon: float
    name: str
    category: str
    address: Optional[str] = None
    opening_hours: Optional[str] = None

    @property
    def key(self) -> str:
        return place_key(self.id)

    @property
    def category_label(self) -> str:
        return self.category.replace("_", " ")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lat": self.lat,
            "lon": self.lon,
            "name": self.name,
            "category": self.category,
            "address": self.address,
            "opening_hours": self.opening_hours,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Place":
        return cls(
            id=int(data["id"]),
            lat=float(data["lat"]),
            lon=float(data["lon"]),
            name=data.get("name") or UNNAMED_PLACE,
            category=data.get("category") or "place",
            address=data.get("address"),
            opening_hours=data.get("opening_hours"),
        )


@dataclass(frozen=True)
class Rating:
    # noise_level and wifi_speed hold whatever the store returned; decoding
    # into scores happens in scoring so a corrupt value never fails here.
    author: str
    noise_level: Any
    wifi_speed: Any
    description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    edit_count: int = 0


@dataclass(frozen=True)
class LocationInput:
    place_key: str
    name: str
    location_type: LocationType
    lat: float
    lng: float
    address: Optional[str] = None


@dataclass
class Location:
    place_key: str
    name: str
    location_type: LocationType
    lat: float
    lng: float
    address: Optional[str] = None
    ratings: List[Rating] = field(default_factory=list)


@dataclass(frozen=True)
class Profile:
    name: str


@dataclass(frozen=True)
class Averages:
    avg_noise: float
    avg_wifi: float
    avg_overall: float
    noise_label: str
    wifi_label: str


# Mapping from place key to the ratings stored for that place.
RatedLocations = Dict[str, List[Rating]]


def rated_locations_from(locations: List[Location]) -> RatedLocations:
    return {loc.place_key: list(loc.ratings) for loc in locations}
