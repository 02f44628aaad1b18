"""Named-topic publish/subscribe channel between map markers and dialogs."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional

logger = logging.getLogger(__name__)

CHECK_IN_REQUESTED = "checkin"
VIEW_REVIEWS_REQUESTED = "viewreviews"


@dataclass(frozen=True)
class CheckInIntent:
    place_key: str
    lat: float
    lng: float
    name: str
    type: str
    address: Optional[str] = None


@dataclass(frozen=True)
class ViewReviewsIntent:
    place_key: str
    name: str


Handler = Callable[[Any], None]


class MessageChannel:
    def __init__(self) -> None:
        self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, topic: str, message: Any) -> int:
        """Deliver message to current subscribers; returns how many received it."""
        delivered = 0
        for handler in list(self._handlers.get(topic, ())):
            try:
                handler(message)
            except Exception:
                logger.exception("Subscriber for %s failed", topic)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, ()))
