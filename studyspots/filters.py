"""Noise/WiFi filter state and the matching rule shared by map and search."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence

from . import config
from .models import Rating
from .scoring import aggregate

ALL = "all"
NOISE_FILTERS = (ALL, "quiet", "moderate", "buzzing")
WIFI_FILTERS = (ALL, "fast", "okay", "slow")


@dataclass(frozen=True)
class FilterState:
    noise_filter: str = ALL
    wifi_filter: str = ALL
    radius: int = config.DEFAULT_RADIUS_M
    search_query: str = ""

    def __post_init__(self) -> None:
        if self.noise_filter not in NOISE_FILTERS:
            raise ValueError(f"Unknown noise filter: {self.noise_filter}")
        if self.wifi_filter not in WIFI_FILTERS:
            raise ValueError(f"Unknown wifi filter: {self.wifi_filter}")
        if self.radius <= 0:
            raise ValueError("radius must be positive")

    @property
    def is_filtering(self) -> bool:
        return self.noise_filter != ALL or self.wifi_filter != ALL

    def with_changes(self, **changes) -> "FilterState":
        return replace(self, **changes)


def matches_filters(ratings: Optional[Sequence[Rating]], filters: FilterState) -> bool:
    """Decide whether a place with these ratings passes the active filters.

    Filters only narrow to rated places: with any filter active an unrated
    place never matches, while "all" never requires ratings.
    """
    if not filters.is_filtering:
        return True
    averages = aggregate(ratings or [])
    if averages is None:
        return False
    if filters.noise_filter != ALL and filters.noise_filter != averages.noise_label.lower():
        return False
    if filters.wifi_filter != ALL and filters.wifi_filter != averages.wifi_label.lower():
        return False
    return True
