"""Weather impact on fuel consumption."""

from datetime import datetime

from voyage.app.models.weather import (
    Confidence,
    MarineConditions,
    WeatherAlert,
    WeatherConsumption,
    WeatherSample,
)


class WeatherConsumptionError(Exception):
    """Weather consumption could not be calculated."""

    pass


def classify_sea_state(wave_height_m: float) -> str:
    """Map significant wave height to a Douglas-style sea state label."""
    if wave_height_m < 0.5:
        return "Calm"
    if wave_height_m < 1.25:
        return "Slight"
    if wave_height_m < 2.5:
        return "Moderate"
    if wave_height_m < 4.0:
        return "Rough"
    if wave_height_m < 6.0:
        return "Very Rough"
    return "High"


def forecast_confidence(at: datetime, now: datetime) -> Confidence:
    """Forecasts beyond 16 days are climatology; past dates are unreliable."""
    days_ahead = (at - now).total_seconds() / 86400
    if days_ahead < 0:
        return "low"
    if days_ahead > 16:
        return "medium"
    return "high"


def weather_multiplier(conditions: MarineConditions) -> float:
    """Consumption multiplier for a single set of conditions."""
    multiplier = 1.0
    if conditions.wave_height_m > 5:
        multiplier *= 1.3
    elif conditions.wave_height_m > 3:
        multiplier *= 1.15

    if conditions.wind_speed_knots > 20:
        multiplier *= 1.1
    elif conditions.wind_speed_knots > 15:
        multiplier *= 1.05
    return multiplier


def port_weather_safe(conditions: MarineConditions) -> bool:
    """Whether conditions allow bunkering alongside."""
    return conditions.wave_height_m < 2.5 and conditions.wind_speed_knots < 25


def _alert_for(sample: WeatherSample) -> WeatherAlert | None:
    wave = sample.conditions.wave_height_m
    wind = sample.conditions.wind_speed_knots
    severity = None
    description = ""

    if wave > 6.0:
        severity = "severe"
        description = f"Severe wave conditions: {wave:.2f}m waves ({sample.conditions.sea_state})"
    elif wave > 4.0:
        severity = "warning"
        description = f"Rough wave conditions: {wave:.2f}m waves ({sample.conditions.sea_state})"

    if wind > 34:
        severity = "severe"
        description = f"Severe wind conditions: {wind:.1f}kt winds"
    elif wind > 27:
        if severity != "severe":
            severity = "warning"
            description = f"Strong wind conditions: {wind:.1f}kt winds"
        else:
            description += f" and {wind:.1f}kt winds"

    if severity is None:
        return None
    return WeatherAlert(
        position=sample.position,
        at=sample.at,
        severity=severity,
        description=description,
        wave_height_m=wave,
        wind_speed_knots=wind,
    )


def calculate_weather_consumption(
    samples: list[WeatherSample],
    base_consumption_mt: float,
) -> WeatherConsumption:
    """Average the per-sample multipliers and apply them to base consumption.

    Raises:
        WeatherConsumptionError: If there are no samples
    """
    if not samples:
        raise WeatherConsumptionError("Weather data is empty")

    multipliers = [weather_multiplier(s.conditions) for s in samples]
    avg_multiplier = sum(multipliers) / len(multipliers)

    adjusted = base_consumption_mt * avg_multiplier
    additional = adjusted - base_consumption_mt
    increase_percent = (avg_multiplier - 1.0) * 100.0

    worst_index = max(range(len(samples)), key=lambda i: multipliers[i])
    waves = [s.conditions.wave_height_m for s in samples]

    alerts = [alert for alert in (_alert_for(s) for s in samples) if alert is not None]

    return WeatherConsumption(
        base_consumption_mt=base_consumption_mt,
        weather_adjusted_consumption_mt=adjusted,
        additional_fuel_needed_mt=additional,
        consumption_increase_percent=increase_percent,
        avg_multiplier=avg_multiplier,
        avg_wave_height_m=sum(waves) / len(waves),
        max_wave_height_m=max(waves),
        worst_conditions_at=samples[worst_index].at,
        alerts=alerts,
    )
