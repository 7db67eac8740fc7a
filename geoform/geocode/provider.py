"""Geocoder contract and the Google Maps backed implementation."""
from __future__ import annotations

import contextlib
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Optional, Protocol

import httpx
import orjson
import structlog

from geoform.errors import GeocodeError

if TYPE_CHECKING:
    from geoform.settings import GeoformSettings

LOGGER = structlog.get_logger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Represents a resolved coordinate pair."""

    latitude: float
    longitude: float

    @property
    def in_bounds(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)


def is_valid_coordinate(latitude: object, longitude: object) -> bool:
    """True when both values are finite numbers inside latitude and longitude ranges."""
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        return False
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        return False
    if not math.isfinite(latitude) or not math.isfinite(longitude):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


class Geocoder(Protocol):
    async def resolve(self, address: str) -> Optional[Coordinate]:
        """Return coordinates for the address or None when nothing matched."""


class GoogleGeocoder:
    """Resolve addresses with the Google Maps Geocoding JSON API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: Optional[str],
        base_url: str = GOOGLE_GEOCODE_URL,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._base_url = base_url

    async def resolve(self, address: str) -> Optional[Coordinate]:
        if not self._api_key:
            LOGGER.error("geocoder_missing_api_key")
            return None
        if not address or not address.strip():
            return None

        try:
            response = await self._client.get(
                self._base_url,
                params={"address": address, "key": self._api_key},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GeocodeError(f"geocoding request failed: {exc.__class__.__name__}") from exc

        try:
            payload = orjson.loads(response.content)
        except orjson.JSONDecodeError as exc:
            raise GeocodeError("geocoding response was not valid JSON") from exc

        status = payload.get("status")
        if status != "OK":
            LOGGER.warning(
                "geocode_no_match",
                address=address,
                status=status,
                error_message=payload.get("error_message"),
            )
            return None

        results = payload.get("results") or []
        if not results:
            return None
        location = results[0].get("geometry", {}).get("location", {})
        lat, lng = location.get("lat"), location.get("lng")
        if not is_valid_coordinate(lat, lng):
            LOGGER.warning("geocode_malformed_location", address=address, location=location)
            return None
        return Coordinate(latitude=float(lat), longitude=float(lng))


@contextlib.asynccontextmanager
async def create_geocoder(settings: "GeoformSettings") -> AsyncIterator[GoogleGeocoder]:
    """Yield a configured `GoogleGeocoder` for the duration of the context."""
    headers = {"User-Agent": settings.user_agent}
    async with httpx.AsyncClient(headers=headers, timeout=settings.timeout_seconds) as client:
        yield GoogleGeocoder(client, api_key=settings.api_key, base_url=settings.geocoder_url)
