"""Tests for the marine weather adapter."""

from datetime import UTC, datetime

import httpx
import pytest

from voyage.app.adapters.weather import MarineLookup, fetch_marine_conditions
from voyage.app.models.common import Geo

MARINE_URL = "https://marine-api.open-meteo.com/v1/marine"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

TIMES = ["2026-10-20T00:00", "2026-10-20T06:00", "2026-10-20T12:00", "2026-10-20T18:00"]


def _handler(marine: dict, forecast: dict, seen: list[httpx.Request] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.host == "marine-api.open-meteo.com":
            return httpx.Response(200, json=marine)
        return httpx.Response(200, json=forecast)

    return handler


@pytest.mark.asyncio
async def test_fetch_marine_conditions_parses_open_meteo_response() -> None:
    """Test that the adapter picks the hourly values closest to the lookup time."""
    marine = {"hourly": {"time": TIMES, "wave_height": [0.8, 1.1, 3.4, 2.0]}}
    forecast = {
        "hourly": {
            "time": TIMES,
            "wind_speed_10m": [8.0, 12.0, 21.5, 15.0],
            "wind_direction_10m": [90.0, 120.0, 200.0, 180.0],
        }
    }
    seen: list[httpx.Request] = []
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler(marine, forecast, seen)))

    lookup = MarineLookup(position=Geo(lat=5.8, lon=81.2), at=datetime(2026, 10, 20, 13, 0, tzinfo=UTC))
    result = await fetch_marine_conditions(lookup, MARINE_URL, FORECAST_URL, client=client)

    conditions = result.value
    assert conditions.wave_height_m == 3.4
    assert conditions.wind_speed_knots == 21.5
    assert conditions.wind_direction_deg == 200.0
    assert conditions.sea_state == "Rough"

    assert result.provenance.source == "tool.weather.open_meteo_marine"
    assert result.provenance.cache_hit is False
    assert result.provenance.source_url is not None
    assert "marine-api.open-meteo.com" in result.provenance.source_url

    # Wind must be requested in knots for one UTC day
    assert len(seen) == 2
    assert seen[1].url.params["wind_speed_unit"] == "kn"
    assert seen[0].url.params["start_date"] == "2026-10-20"

    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_marine_conditions_handles_null_values() -> None:
    marine = {"hourly": {"time": TIMES, "wave_height": [None, None, None, None]}}
    forecast = {
        "hourly": {
            "time": TIMES,
            "wind_speed_10m": [None, 5.0, None, None],
            "wind_direction_10m": [None, None, None, None],
        }
    }
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler(marine, forecast)))

    lookup = MarineLookup(position=Geo(lat=5.8, lon=81.2), at=datetime(2026, 10, 20, 0, 0, tzinfo=UTC))
    result = await fetch_marine_conditions(lookup, MARINE_URL, FORECAST_URL, client=client)

    assert result.value.wave_height_m == 0.0
    assert result.value.wind_speed_knots == 0.0
    assert result.value.sea_state == "Calm"

    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_marine_conditions_handles_naive_lookup_time() -> None:
    """Test that a naive timestamp is treated as UTC."""
    marine = {"hourly": {"time": TIMES, "wave_height": [0.8, 1.1, 3.4, 2.0]}}
    forecast = {"hourly": {"time": TIMES, "wind_speed_10m": [1, 2, 3, 4], "wind_direction_10m": [0, 0, 0, 0]}}
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler(marine, forecast)))

    lookup = MarineLookup(position=Geo(lat=5.8, lon=81.2), at=datetime(2026, 10, 20, 19, 0))
    result = await fetch_marine_conditions(lookup, MARINE_URL, FORECAST_URL, client=client)

    assert result.value.wave_height_m == 2.0
    assert result.value.wind_speed_knots == 4.0

    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_marine_conditions_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": True, "reason": "overloaded"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    lookup = MarineLookup(position=Geo(lat=5.8, lon=81.2), at=datetime(2026, 10, 20, tzinfo=UTC))
    with pytest.raises(httpx.HTTPStatusError):
        await fetch_marine_conditions(lookup, MARINE_URL, FORECAST_URL, client=client)

    await client.aclose()
