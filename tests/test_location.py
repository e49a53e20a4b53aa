"""
test_location.py — Coordinates and reverse geocoding.

Run with:
    pytest tests/test_location.py -v
"""

from __future__ import annotations

import httpx
import pytest

from backend.app.spatial.location import (
    Coordinate,
    FallbackGeocoder,
    NominatimGeocoder,
    format_coordinates,
)

NYC = Coordinate(40.7128, -74.0060)


class TestCoordinate:

    def test_valid_bounds(self):
        Coordinate(90.0, 180.0)
        Coordinate(-90.0, -180.0)

    @pytest.mark.parametrize("lat,lon", [(90.0001, 0.0), (0.0, -180.5)])
    def test_out_of_range(self, lat, lon):
        with pytest.raises(ValueError):
            Coordinate(lat, lon)

    def test_dict_form(self):
        assert Coordinate.from_dict(NYC.to_dict()) == NYC


class TestGeocoding:

    def test_format_coordinates(self):
        assert format_coordinates(NYC) == "Lat: 40.712800, Lng: -74.006000"

    @pytest.mark.asyncio
    async def test_fallback_geocoder(self):
        assert await FallbackGeocoder().reverse(NYC) == "Lat: 40.712800, Lng: -74.006000"

    @pytest.mark.asyncio
    async def test_nominatim_display_name(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json={"display_name": "City Hall, New York, USA"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        geocoder = NominatimGeocoder("https://geo.test/reverse", client=client)
        try:
            assert await geocoder.reverse(NYC) == "City Hall, New York, USA"
        finally:
            await client.aclose()
        assert seen["format"] == "json"
        assert float(seen["lat"]) == NYC.latitude

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(503),
        httpx.Response(200, json={}),
        httpx.Response(200, json=["unexpected"]),
        httpx.Response(200, text="<html>"),
    ])
    async def test_nominatim_falls_back(self, response):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response))
        geocoder = NominatimGeocoder("https://geo.test/reverse", client=client)
        try:
            assert await geocoder.reverse(NYC) == format_coordinates(NYC)
        finally:
            await client.aclose()

    @pytest.mark.asyncio
    async def test_nominatim_transport_error_falls_back(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        geocoder = NominatimGeocoder("https://geo.test/reverse", client=client)
        try:
            assert await geocoder.reverse(NYC) == format_coordinates(NYC)
        finally:
            await client.aclose()
