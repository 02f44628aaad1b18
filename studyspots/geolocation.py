"""User position: fallback coordinate, one-shot locate and manual pins."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

import requests

from . import config
from .http import HttpClient
from .models import Coordinate

logger = logging.getLogger(__name__)


class LocationUnavailableError(RuntimeError):
    """The platform could not provide a position (denied, unsupported, failed)."""


class PositionProvider(Protocol):
    async def current_position(self) -> Coordinate: ...


class StaticPositionProvider:
    def __init__(self, coordinate: Optional[Coordinate] = None, delay: float = 0.0) -> None:
        self.coordinate = coordinate
        self.delay = delay
        self.calls = 0

    async def current_position(self) -> Coordinate:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.coordinate is None:
            raise LocationUnavailableError("No position configured")
        return Coordinate(*self.coordinate)


class IpPositionProvider:
    """Approximates the position from the public IP address."""

    def __init__(self, http_client: HttpClient, url: Optional[str] = None) -> None:
        self.http = http_client
        self.url = url or config.IP_GEOLOCATION_URL

    async def current_position(self) -> Coordinate:
        try:
            data = await asyncio.to_thread(self.http.get_json, self.url)
        except (requests.RequestException, ValueError, RuntimeError) as exc:
            raise LocationUnavailableError(f"IP geolocation failed: {exc}") from exc
        if not isinstance(data, dict):
            raise LocationUnavailableError("IP geolocation returned an unexpected payload")
        lat = data.get("latitude", data.get("lat"))
        lon = data.get("longitude", data.get("lon"))
        if lat is None or lon is None:
            raise LocationUnavailableError("IP geolocation response has no coordinates")
        try:
            return Coordinate(float(lat), float(lon))
        except (TypeError, ValueError) as exc:
            raise LocationUnavailableError(f"IP geolocation coordinates are unreadable: {exc}") from exc


def validate_coordinate(coordinate: Coordinate) -> Coordinate:
    lat, lon = float(coordinate[0]), float(coordinate[1])
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise ValueError(f"Coordinate out of range: {lat}, {lon}")
    return Coordinate(lat, lon)


class GeolocationSource:
    def __init__(
        self,
        provider: Optional[PositionProvider] = None,
        fallback: Coordinate = Coordinate(*config.DEFAULT_LOCATION),
        timeout: float = config.LOCATE_TIMEOUT_SECONDS,
        on_change: Optional[Callable[[Coordinate], None]] = None,
    ) -> None:
        self.provider = provider
        self.timeout = timeout
        self.on_change = on_change
        self.has_set_location = False
        self.is_locating = False
        self.locate_failed = False
        self._location = Coordinate(*fallback)
        # Bumped on every accepted coordinate so a slow reading can tell it was overtaken.
        self._version = 0

    def current(self) -> Coordinate:
        return self._location

    def set_manual(self, coordinate: Coordinate) -> Coordinate:
        self._accept(validate_coordinate(coordinate))
        return self._location

    async def locate_once(self) -> Coordinate:
        if self.provider is None:
            self.locate_failed = True
            return self._location
        self.is_locating = True
        try:
            position = await asyncio.wait_for(self.provider.current_position(), self.timeout)
            self._accept(validate_coordinate(position))
            self.locate_failed = False
        except (asyncio.TimeoutError, LocationUnavailableError, ValueError) as exc:
            logger.warning("Geolocation error: %s", str(exc) or "timed out")
            self.locate_failed = True
        finally:
            self.is_locating = False
        return self._location

    def start(self) -> Optional["asyncio.Task[None]"]:
        """Schedule the initial, untimed locate without waiting for it."""
        if self.provider is None:
            return None
        return asyncio.ensure_future(self._initial_locate())

    async def _initial_locate(self) -> None:
        version = self._version
        try:
            position = await self.provider.current_position()
            position = validate_coordinate(position)
        except (LocationUnavailableError, ValueError) as exc:
            logger.warning("Geolocation not available: %s", exc)
            return
        if self._version != version:
            logger.info("Initial position ignored; location was set meanwhile")
            return
        self._accept(position)

    def _accept(self, coordinate: Coordinate) -> None:
        self._location = coordinate
        self._version += 1
        self.has_set_location = True
        if self.on_change is not None:
            self.on_change(coordinate)
