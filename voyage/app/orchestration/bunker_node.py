"""Bunker node - ports, prices, ranked options and fuel-on-board tracking."""

import logging

from voyage.app.adapters.fixtures import PortSearch, PriceRequest, fetch_prices, find_bunker_ports
from voyage.app.engines import bunker_planner
from voyage.app.engines.bunker_analyzer import NoValidBunkerOptionsError, analyze_bunker_options
from voyage.app.engines.fuel_ledger import estimate_voyage_consumption, simulate
from voyage.app.engines.weather_impact import port_weather_safe
from voyage.app.engines.zone_segmenter import segment
from voyage.app.models.bunker import BunkerAnalysis, FoundPort
from voyage.app.models.common import ErrorKind, FuelQuantity, StageName, StageStatus
from voyage.app.models.rob import RobTrace, RobTracking
from voyage.app.models.route import RouteData
from voyage.app.models.vessel import VesselProfile
from voyage.app.models.weather import WeatherSample
from voyage.app.orchestration.context import (
    NodeContext,
    resolve_vessel,
    stage_failure,
    stage_worker,
    sync_collaborator,
)
from voyage.app.orchestration.state import StageError, StageUpdate, VoyageState
from voyage.app.tools.executor import ToolCancelledError, ToolExecutionError, ToolTimeoutError
from voyage.app.utils.geo import haversine_nm

logger = logging.getLogger(__name__)

NO_BUNKER_MESSAGE = "Current ROB covers the voyage with the safety margin; no bunkering required"


def required_bunker_quantity(
    trace: RobTrace,
    route: RouteData,
    vessel: VesselProfile,
    *,
    safety_margin_days: float,
    safety_factor: float,
) -> FuelQuantity:
    """Reserve-inclusive shortfall with a safety factor, capped at free tank space.

    The reserve is ``safety_margin_days`` of the voyage's average daily burn,
    weather included.
    """
    voyage_days = route.distance_nm / (vessel.operational_speed_knots * 24)
    if voyage_days <= 0:
        return FuelQuantity()
    reserve = trace.total_consumption.scaled(safety_margin_days / voyage_days)
    needed = trace.total_consumption.plus(reserve).minus(vessel.initial_rob)
    free = vessel.capacity.minus(vessel.initial_rob)
    return FuelQuantity(
        vlsfo=min(max(0.0, needed.vlsfo * safety_factor), max(0.0, free.vlsfo)),
        lsmgo=min(max(0.0, needed.lsmgo * safety_factor), max(0.0, free.lsmgo)),
    )


def _weather_near(port: FoundPort, forecast: list[WeatherSample] | None) -> WeatherSample | None:
    if not forecast:
        return None
    return min(forecast, key=lambda s: haversine_nm(s.position, port.port.geo))


def _weather_factor(state: VoyageState) -> float:
    if state.weather_consumption is None:
        return 1.0
    return 1.0 + state.weather_consumption.consumption_increase_percent / 100.0


@stage_worker(StageName.bunker)
async def bunker_node(state: VoyageState, ctx: NodeContext) -> StageUpdate:
    """Analyse bunkering for the voyage and track fuel remaining on board.

    Steps:
    1. Resolve the vessel (default profile with a warning when unknown)
    2. Segment the route by ECA and simulate ROB without bunkering
    3. Size the bunker: reserve-inclusive shortfall x safety factor, capped at free capacity
    4. Find ports near the route, fetch prices, rank single-stop options
    5. Simulate ROB with the best option
    6. Plan multi-stop bunkering when one stop cannot cover the voyage or leaves it unsafe

    Args:
        state: Snapshot of the session state
        ctx: Session dependencies

    Returns:
        StageUpdate with ``bunker_analysis`` and ``rob_tracking`` plus supporting outputs
    """
    settings = ctx.settings
    route = state.route
    if route is None or not route.waypoints:
        return stage_failure(
            StageName.bunker,
            state,
            "Route waypoints are required for bunker analysis",
            ErrorKind.missing_prerequisite,
        )

    warnings: list[str] = []
    if state.vessel is not None:
        vessel = state.vessel
    else:
        vessel, vessel_warning = resolve_vessel(state.request, settings)
        if vessel_warning:
            warnings.append(vessel_warning)
    outputs: dict[str, object] = {"vessel": vessel}

    segments = segment(route, state.compliance, speed_knots=vessel.operational_speed_knots)
    without = simulate(
        route,
        vessel,
        segments=segments,
        weather_consumption=state.weather_consumption,
        safety_margin_days_required=settings.safety_margin_days,
    )
    required = required_bunker_quantity(
        without,
        route,
        vessel,
        safety_margin_days=settings.safety_margin_days,
        safety_factor=settings.fuel_safety_factor,
    )
    logger.info(
        f"[bunker_node] {vessel.name}: final ROB without bunker "
        f"{without.final_rob.vlsfo:.0f}/{without.final_rob.lsmgo:.0f} MT, "
        f"required {required.vlsfo:.0f}/{required.lsmgo:.0f} MT"
    )

    if required.total <= 0:
        if not without.overall_safe:
            warnings.append(
                "Voyage is below the safety margin but tanks are full; "
                f"{without.violations[0]}"
            )
        outputs["bunker_analysis"] = BunkerAnalysis(
            required_quantity=required, message=NO_BUNKER_MESSAGE
        )
        outputs["rob_tracking"] = RobTracking(without_bunker=without)
        return StageUpdate(
            stage=StageName.bunker,
            base_version=state.version,
            status=StageStatus.success,
            outputs=outputs,
            warnings=warnings,
        )

    def partial_failure(message: str, kind: ErrorKind) -> StageUpdate:
        outputs["rob_tracking"] = RobTracking(
            without_bunker=without, still_unsafe_after_bunker=not without.overall_safe
        )
        warnings.append(message)
        if not without.overall_safe:
            warnings.append(f"Voyage is unsafe without bunkering: {without.violations[0]}")
        return stage_failure(
            StageName.bunker,
            state,
            message,
            kind,
            outputs=outputs,
            warnings=warnings,
            output_errors={"bunker_analysis": StageError(message=message, kind=kind)},
        )

    try:
        found = await ctx.call(
            state,
            "fixtures.bunker_ports",
            sync_collaborator(find_bunker_ports),
            PortSearch(
                waypoints=route.waypoints,
                max_deviation_nm=settings.max_port_deviation_nm,
            ),
            settings.price_timeout_ms,
        )
        ports = found.value
        outputs["bunker_ports"] = ports
        if not ports:
            return partial_failure(
                f"No bunker ports found within {settings.max_port_deviation_nm:g} nm of the route",
                ErrorKind.infeasible_plan,
            )

        priced = await ctx.call(
            state,
            "fixtures.prices",
            sync_collaborator(fetch_prices),
            PriceRequest(port_codes=[p.port.port_code for p in ports], as_of=ctx.clock()),
            settings.price_timeout_ms,
        )
    except (ToolTimeoutError, ToolCancelledError, ToolExecutionError) as e:
        logger.warning(f"[bunker_node] Port or price lookup failed: {e}")
        return partial_failure(f"Bunker port lookup failed: {e}", ErrorKind.external_call_failure)

    prices = priced.value
    outputs["port_prices"] = prices
    warnings.extend(prices.stale_price_warnings)

    try:
        analysis = analyze_bunker_options(ports, prices, required, vessel)
    except NoValidBunkerOptionsError as e:
        logger.warning(f"[bunker_node] {e}")
        return partial_failure(f"No valid bunker options: {e}", ErrorKind.infeasible_plan)
    outputs["bunker_analysis"] = analysis

    best = analysis.best_option
    assert best is not None
    best_port = next(p for p in ports if p.port.port_code == best.port_code)
    with_bunker = simulate(
        route,
        vessel,
        segments=segments,
        weather_consumption=state.weather_consumption,
        bunker_port=best_port,
        bunker_quantity=best.bunker_quantity,
        safety_margin_days_required=settings.safety_margin_days,
    )
    still_unsafe = not with_bunker.overall_safe
    outputs["rob_tracking"] = RobTracking(
        without_bunker=without,
        with_bunker=with_bunker,
        bunker_port_code=best.port_code,
        still_unsafe_after_bunker=still_unsafe,
    )

    conditions = _weather_near(best_port, state.weather_forecast)
    if conditions is not None and not port_weather_safe(conditions.conditions):
        warnings.append(
            f"Weather near {best.port_name} may prevent bunkering: "
            f"{conditions.conditions.wave_height_m:.1f}m waves, "
            f"{conditions.conditions.wind_speed_knots:.0f}kt wind"
        )

    multi = bunker_planner.plan(
        estimate_voyage_consumption(route, vessel, segments),
        vessel,
        ports,
        prices,
        route=route,
        weather_factor=_weather_factor(state),
        safety_margin_days=settings.safety_margin_days,
        force_multi_stop=still_unsafe,
        max_stops=settings.max_bunker_stops,
    )

    error: StageError | None = None
    output_errors: dict[str, StageError] = {}
    if multi.required:
        outputs["multi_bunker_plan"] = multi
        if multi.best_plan is None:
            message = f"Multi-stop bunker plan infeasible: {multi.error}"
            warnings.append(message)
            output_errors["multi_bunker_plan"] = StageError(
                message=message, kind=ErrorKind.infeasible_plan
            )
        else:
            stops = " -> ".join(s.port_code for s in multi.best_plan.stops)
            logger.info(f"[bunker_node] Multi-stop plan: {stops}")

    safe_plan = multi.best_plan is not None
    if still_unsafe and not safe_plan:
        message = (
            f"Voyage remains unsafe after bunkering at {best.port_code}: "
            f"{with_bunker.violations[0]}"
        )
        warnings.append(message)
        error = StageError(message=message, kind=ErrorKind.unsafe_voyage)

    logger.info(
        f"[bunker_node] Best option {best.port_code} ${best.total_cost_usd:,.0f}; "
        f"safe after bunker={not still_unsafe}; multi-stop required={multi.required}"
    )
    return StageUpdate(
        stage=StageName.bunker,
        base_version=state.version,
        status=StageStatus.success,
        outputs=outputs,
        error=error,
        output_errors=output_errors,
        warnings=warnings,
    )
