"""Weather node - marine forecast along the vessel timeline and its fuel impact."""

import asyncio
import logging

from voyage.app.adapters.weather import MarineLookup
from voyage.app.engines.fuel_ledger import estimate_voyage_consumption
from voyage.app.engines.weather_impact import (
    WeatherConsumptionError,
    calculate_weather_consumption,
    classify_sea_state,
    forecast_confidence,
)
from voyage.app.engines.zone_segmenter import segment
from voyage.app.models.common import ErrorKind, StageName, StageStatus
from voyage.app.models.intent import QueryIntent
from voyage.app.models.route import TimelinePoint
from voyage.app.models.weather import MarineConditions, WeatherConsumption, WeatherSample
from voyage.app.orchestration.context import (
    NodeContext,
    resolve_vessel,
    stage_failure,
    stage_worker,
)
from voyage.app.orchestration.state import StageError, StageUpdate, VoyageState

logger = logging.getLogger(__name__)

# Concurrent forecast requests per session
MAX_CONCURRENT_FETCHES = 8


def placeholder_sample(point: TimelinePoint) -> WeatherSample:
    """Calm, low-confidence stand-in for a point whose forecast failed."""
    return WeatherSample(
        position=point.position,
        at=point.at,
        conditions=MarineConditions(
            wave_height_m=0.0,
            wind_speed_knots=0.0,
            sea_state=classify_sea_state(0.0),
        ),
        confidence="low",
    )


async def _fetch_forecast(
    state: VoyageState,
    ctx: NodeContext,
    timeline: list[TimelinePoint],
) -> tuple[list[WeatherSample], int]:
    """Fetch every timeline point concurrently; returns samples and failure count."""
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_FETCHES)
    now = ctx.clock()

    async def fetch(point: TimelinePoint) -> WeatherSample | None:
        async with semaphore:
            try:
                result = await ctx.call(
                    state,
                    "weather.open_meteo_marine",
                    ctx.fetch_weather,
                    MarineLookup(position=point.position, at=point.at),
                    ctx.settings.weather_timeout_ms,
                )
            except Exception as e:
                logger.warning(
                    f"[weather_node] Forecast failed at segment {point.segment_index} "
                    f"({point.at.isoformat()}): {e}"
                )
                return None
        return WeatherSample(
            position=point.position,
            at=point.at,
            conditions=result.value,
            confidence=forecast_confidence(point.at, now),
        )

    fetched = await asyncio.gather(*(fetch(point) for point in timeline))
    samples = [
        sample if sample is not None else placeholder_sample(point)
        for point, sample in zip(timeline, fetched)
    ]
    return samples, sum(1 for sample in fetched if sample is None)


def _consumption(state: VoyageState, ctx: NodeContext, samples: list[WeatherSample]) -> WeatherConsumption:
    if state.route is None:
        raise WeatherConsumptionError("Route is required to estimate base consumption")
    vessel = state.vessel or resolve_vessel(state.request, ctx.settings)[0]
    segments = segment(state.route, state.compliance, speed_knots=vessel.operational_speed_knots)
    base = estimate_voyage_consumption(state.route, vessel, segments)
    return calculate_weather_consumption(samples, base.total)


@stage_worker(StageName.weather)
async def weather_node(state: VoyageState, ctx: NodeContext) -> StageUpdate:
    """Fetch marine weather per timeline point and, when bunkering is analysed,
    the weather-driven consumption increase.

    A failed point becomes a calm, low-confidence placeholder; the stage only
    fails when every point fails.

    Args:
        state: Snapshot of the session state
        ctx: Session dependencies

    Returns:
        StageUpdate with ``weather_forecast`` and, when needed, ``weather_consumption``
    """
    timeline = state.vessel_timeline
    if not timeline:
        return stage_failure(
            StageName.weather,
            state,
            "Vessel timeline is required for weather analysis",
            ErrorKind.missing_prerequisite,
        )

    intent = state.intent or QueryIntent()
    outputs: dict[str, object] = {}
    warnings: list[str] = []

    if state.weather_forecast:
        samples = state.weather_forecast
    else:
        samples, failures = await _fetch_forecast(state, ctx, timeline)
        if failures == len(timeline):
            return stage_failure(
                StageName.weather,
                state,
                f"Weather forecast failed for all {failures} timeline points",
                ErrorKind.external_call_failure,
            )
        if failures:
            warnings.append(
                f"Weather unavailable for {failures} of {len(timeline)} timeline points; "
                "using low-confidence placeholders"
            )
        outputs["weather_forecast"] = samples
        logger.info(f"[weather_node] {len(samples)} samples, {failures} placeholders")

    if not intent.needs_bunker:
        return StageUpdate(
            stage=StageName.weather,
            base_version=state.version,
            status=StageStatus.success,
            outputs=outputs,
            warnings=warnings,
        )

    try:
        consumption = _consumption(state, ctx, samples)
    except WeatherConsumptionError as e:
        logger.warning(f"[weather_node] Consumption estimate failed: {e}")
        error = StageError(message=f"Weather consumption failed: {e}", kind=ErrorKind.internal)
        return StageUpdate(
            stage=StageName.weather,
            base_version=state.version,
            status=StageStatus.failed,
            outputs=outputs,
            error=error,
            output_errors={"weather_consumption": error},
            warnings=warnings,
        )

    outputs["weather_consumption"] = consumption
    for alert in consumption.alerts:
        warnings.append(
            f"Weather {alert.severity} at {alert.at:%Y-%m-%d %H:%M} UTC: {alert.description}"
        )
    logger.info(
        f"[weather_node] Consumption +{consumption.consumption_increase_percent:.1f}% "
        f"({consumption.additional_fuel_needed_mt:.1f} MT), {len(consumption.alerts)} alerts"
    )
    return StageUpdate(
        stage=StageName.weather,
        base_version=state.version,
        status=StageStatus.success,
        outputs=outputs,
        warnings=warnings,
    )
