"""Marine weather adapter using the Open-Meteo marine and forecast APIs (keyless)."""

from datetime import UTC, datetime

import httpx
from pydantic import BaseModel

from voyage.app.adapters.provenance import provenance_for_http
from voyage.app.engines.weather_impact import classify_sea_state
from voyage.app.models.common import Geo
from voyage.app.models.weather import MarineConditions
from voyage.app.tools.executor import ToolResult


class MarineLookup(BaseModel):
    """Weather lookup payload for one timeline point."""

    position: Geo
    at: datetime


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _closest_index(times: list[str], at: datetime) -> int:
    """Index of the hourly timestamp nearest ``at``."""
    target = _as_utc(at)
    best_index = 0
    best_delta: float | None = None
    for i, raw in enumerate(times):
        delta = abs((_as_utc(datetime.fromisoformat(raw)) - target).total_seconds())
        if best_delta is None or delta < best_delta:
            best_index = i
            best_delta = delta
    return best_index


def _value_at(series: list[float | None], index: int) -> float:
    if index >= len(series) or series[index] is None:
        return 0.0
    return float(series[index])


def _url(base_url: str, params: dict[str, str | float]) -> str:
    return f"{base_url}?{'&'.join(f'{k}={v}' for k, v in params.items())}"


async def fetch_marine_conditions(
    lookup: MarineLookup,
    marine_url: str = "https://marine-api.open-meteo.com/v1/marine",
    forecast_url: str = "https://api.open-meteo.com/v1/forecast",
    client: httpx.AsyncClient | None = None,
) -> ToolResult[MarineConditions]:
    """Fetch wave and wind conditions at one position and time.

    Wave height comes from the marine API, wind from the forecast API
    (requested in knots). The hourly value closest to ``lookup.at`` is used.

    Args:
        lookup: Position and timestamp
        marine_url: Open-Meteo marine API base URL
        forecast_url: Open-Meteo forecast API base URL
        client: Optional httpx client (for testing with mocks)

    Returns:
        ToolResult wrapping MarineConditions with provenance

    Raises:
        httpx.HTTPError: On network or HTTP errors
        KeyError: On a response without hourly data
    """
    day = _as_utc(lookup.at).date().isoformat()
    # Docs: https://open-meteo.com/en/docs/marine-weather-api
    marine_params: dict[str, str | float] = {
        "latitude": lookup.position.lat,
        "longitude": lookup.position.lon,
        "hourly": "wave_height",
        "start_date": day,
        "end_date": day,
        "timezone": "UTC",
    }
    forecast_params: dict[str, str | float] = {
        "latitude": lookup.position.lat,
        "longitude": lookup.position.lon,
        "hourly": "wind_speed_10m,wind_direction_10m",
        "wind_speed_unit": "kn",
        "start_date": day,
        "end_date": day,
        "timezone": "UTC",
    }

    close_client = False
    if client is None:
        client = httpx.AsyncClient(timeout=10.0)
        close_client = True

    try:
        marine_response = await client.get(marine_url, params=marine_params)
        marine_response.raise_for_status()
        marine = marine_response.json()["hourly"]

        forecast_response = await client.get(forecast_url, params=forecast_params)
        forecast_response.raise_for_status()
        forecast = forecast_response.json()["hourly"]

        wave_index = _closest_index(marine["time"], lookup.at)
        wind_index = _closest_index(forecast["time"], lookup.at)

        wave_height = _value_at(marine["wave_height"], wave_index)
        conditions = MarineConditions(
            wave_height_m=wave_height,
            wind_speed_knots=_value_at(forecast["wind_speed_10m"], wind_index),
            wind_direction_deg=_value_at(forecast["wind_direction_10m"], wind_index),
            sea_state=classify_sea_state(wave_height),
        )

        return ToolResult(
            value=conditions,
            provenance=provenance_for_http(
                source="weather.open_meteo_marine",
                url=_url(marine_url, marine_params),
                cache_hit=False,
            ),
        )
    finally:
        if close_client:
            await client.aclose()
