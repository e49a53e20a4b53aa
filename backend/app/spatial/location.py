"""
location.py — Alert coordinates and the addresses shown for them.

Provides:
    - Coordinate: validated (latitude, longitude) pair in decimal degrees
    - format_coordinates: the "Lat: …, Lng: …" address used when nothing better exists
    - Geocoder interface with a Nominatim (OpenStreetMap) implementation

Geocoders are plain objects built per request and passed where needed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Coordinate:
    """A GPS fix in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        for name, value, limit in (
            ("Latitude", self.latitude, 90.0),
            ("Longitude", self.longitude, 180.0),
        ):
            if not -limit <= value <= limit:
                raise ValueError(f"{name} must be in [-{limit:g}, {limit:g}], got {value}")

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(float(data["latitude"]), float(data["longitude"]))


def format_coordinates(point: Coordinate) -> str:
    """Address string used when reverse geocoding yields nothing."""
    return f"Lat: {point.latitude:.6f}, Lng: {point.longitude:.6f}"


# ---------------------------------------------------------------------------
# Reverse geocoding
# ---------------------------------------------------------------------------

class Geocoder(Protocol):
    """Turns a coordinate into a human-readable address. Never raises."""

    async def reverse(self, point: Coordinate) -> str: ...


class FallbackGeocoder:
    """Offline geocoder: formats the raw coordinates."""

    async def reverse(self, point: Coordinate) -> str:
        return format_coordinates(point)


class NominatimGeocoder:
    """
    Reverse geocoding against an OpenStreetMap Nominatim endpoint.

    Any transport or payload problem degrades to the formatted
    coordinates so an alert never waits on a missing address.
    """

    def __init__(
        self,
        base_url: str = "https://nominatim.openstreetmap.org/reverse",
        *,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                headers={"User-Agent": "emergency-alert-service"},
            )
        return self._client

    async def reverse(self, point: Coordinate) -> str:
        try:
            client = await self._get_client()
            response = await client.get(
                self.base_url,
                params={
                    "format": "json",
                    "lat": point.latitude,
                    "lon": point.longitude,
                },
            )
            response.raise_for_status()
            name = response.json().get("display_name")
            if name:
                return str(name)
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning(
                "Reverse geocoding failed for (%.6f, %.6f): %s",
                point.latitude, point.longitude, exc,
            )
        return format_coordinates(point)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
