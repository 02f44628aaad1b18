"""Drawing-surface contract and an in-memory surface that owns drawn markers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol

from .channel import CHECK_IN_REQUESTED, VIEW_REVIEWS_REQUESTED, MessageChannel
from .models import Coordinate

if TYPE_CHECKING:
    from .reconciler import MarkerSpec

logger = logging.getLogger(__name__)


class DrawingSurface(Protocol):
    def clear(self) -> None: ...

    def draw(self, marker: "MarkerSpec") -> None: ...

    def center_on(self, place_id: int) -> bool: ...

    def show_user_location(self, coordinate: Coordinate, radius: int) -> None: ...


@dataclass
class DrawnMarker:
    marker: "MarkerSpec"
    popup_open: bool = False


class InMemorySurface:
    """Marker layer kept in a dict; clicks publish intents on the channel."""

    def __init__(self, channel: MessageChannel) -> None:
        self.channel = channel
        self.layer: Dict[int, DrawnMarker] = {}
        self.view_center: Optional[Coordinate] = None
        self.user_location: Optional[Coordinate] = None
        self.radius: Optional[int] = None
        self.clear_count = 0
        self.draw_count = 0

    def clear(self) -> None:
        self.layer.clear()
        self.clear_count += 1

    def draw(self, marker: "MarkerSpec") -> None:
        if marker.place_id in self.layer:
            logger.warning("Marker %s drawn twice without a clear", marker.place_id)
        self.layer[marker.place_id] = DrawnMarker(marker=marker)
        self.draw_count += 1

    def center_on(self, place_id: int) -> bool:
        drawn = self.layer.get(place_id)
        if drawn is None:
            return False
        for other in self.layer.values():
            other.popup_open = False
        self.view_center = Coordinate(drawn.marker.lat, drawn.marker.lon)
        drawn.popup_open = True
        return True

    def show_user_location(self, coordinate: Coordinate, radius: int) -> None:
        self.user_location = coordinate
        self.view_center = coordinate
        self.radius = radius

    def drawn_ids(self) -> List[int]:
        return list(self.layer)

    def open_popup_id(self) -> Optional[int]:
        for place_id, drawn in self.layer.items():
            if drawn.popup_open:
                return place_id
        return None

    def click_check_in(self, place_id: int) -> bool:
        drawn = self.layer.get(place_id)
        if drawn is None:
            return False
        self.channel.publish(CHECK_IN_REQUESTED, drawn.marker.check_in)
        return True

    def click_view_reviews(self, place_id: int) -> bool:
        drawn = self.layer.get(place_id)
        if drawn is None or drawn.marker.view_reviews is None:
            return False
        self.channel.publish(VIEW_REVIEWS_REQUESTED, drawn.marker.view_reviews)
        return True
