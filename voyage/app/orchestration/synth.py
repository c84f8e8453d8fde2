"""Synthesis node - builds the final recommendation from whatever data exists."""

import logging
from datetime import UTC, datetime

from voyage.app.models.common import StageName, StageStatus
from voyage.app.models.intent import QueryIntent
from voyage.app.models.report import FinalReport, MissingAnalysis
from voyage.app.orchestration.registry import get_registry
from voyage.app.orchestration.state import WORKER_STAGES, StageUpdate, VoyageState
from voyage.app.orchestration.supervisor import is_required, outputs_done

logger = logging.getLogger(__name__)


def _route_line(state: VoyageState) -> str | None:
    route = state.route
    if route is None:
        return None
    return (
        f"Route {route.origin_port_code} -> {route.destination_port_code}: "
        f"{route.distance_nm:,.0f} nm, about {route.estimated_hours:.1f} hours ({route.route_type})."
    )


def _compliance_line(state: VoyageState) -> str | None:
    compliance = state.compliance
    if compliance is None:
        return None
    if not compliance.has_eca_zones:
        return "No emission control areas on the route; VLSFO throughout."
    names = ", ".join(z.zone_name for z in compliance.zones_crossed)
    return (
        f"ECA crossings: {names}. {compliance.total_eca_distance_nm:,.0f} nm in zone; "
        f"carry at least {compliance.mgo_with_safety_margin_mt:,.0f} MT MGO "
        f"(includes {compliance.safety_margin_percent:g}% margin) and switch fuel at "
        f"{len(compliance.switching_points)} points."
    )


def _weather_line(state: VoyageState) -> str | None:
    consumption = state.weather_consumption
    if consumption is not None:
        return (
            f"Weather adds {consumption.consumption_increase_percent:.1f}% fuel consumption "
            f"({consumption.additional_fuel_needed_mt:,.1f} MT); max wave height "
            f"{consumption.max_wave_height_m:.1f}m, {len(consumption.alerts)} alerts."
        )
    if state.weather_forecast:
        worst = max(state.weather_forecast, key=lambda s: s.conditions.wave_height_m)
        return (
            f"Weather forecast for {len(state.weather_forecast)} points; worst sea state "
            f"{worst.conditions.sea_state} ({worst.conditions.wave_height_m:.1f}m) "
            f"on {worst.at:%Y-%m-%d}."
        )
    return None


def _bunker_lines(state: VoyageState) -> list[str]:
    lines: list[str] = []
    analysis = state.bunker_analysis
    if analysis is not None:
        best = analysis.best_option
        if best is not None:
            lines.append(
                f"Bunker at {best.port_name} ({best.port_code}): "
                f"{best.bunker_quantity.vlsfo:,.0f} MT VLSFO + {best.bunker_quantity.lsmgo:,.0f} MT LSMGO, "
                f"total ${best.total_cost_usd:,.0f} including deviation; "
                f"saves ${analysis.max_savings_usd:,.0f} versus the most expensive option."
            )
        elif analysis.message:
            lines.append(analysis.message)

    multi = state.multi_bunker_plan
    if multi is not None and multi.required and multi.best_plan is not None:
        stops = " -> ".join(s.port_code for s in multi.best_plan.stops)
        lines.append(
            f"Multi-stop bunkering required ({multi.reason}): {stops}, "
            f"total ${multi.best_plan.total_cost_usd:,.0f}."
        )

    tracking = state.rob_tracking
    if tracking is not None:
        trace = tracking.with_bunker or tracking.without_bunker
        verdict = "safe" if trace.overall_safe else "UNSAFE"
        lines.append(
            f"Arrival ROB {trace.final_rob.vlsfo:,.0f} MT VLSFO / {trace.final_rob.lsmgo:,.0f} MT LSMGO "
            f"({verdict})."
        )
    return lines


def _missing_reason(stage: StageName, state: VoyageState) -> str:
    error = state.stage_errors.get(stage)
    if error is not None:
        return error.message
    for notice in state.notices:
        if stage.value in notice:
            return notice
    return "not attempted"


def build_report(state: VoyageState) -> FinalReport:
    """Assemble the final report; missing analyses are listed, never raised."""
    intent = state.intent or QueryIntent()
    registry = get_registry()

    recommendation = [
        line
        for line in (_route_line(state), _compliance_line(state), _weather_line(state))
        if line is not None
    ]
    recommendation.extend(_bunker_lines(state))
    if not recommendation:
        recommendation.append("No analysis could be completed for this voyage.")

    missing = [
        MissingAnalysis(stage=stage, reason=_missing_reason(stage, state))
        for stage in WORKER_STAGES
        if is_required(stage, intent) and not outputs_done(stage, state, registry, intent)
    ]

    return FinalReport(
        recommendation=recommendation,
        missing_analyses=missing,
        warnings=list(state.warnings),
        notices=list(state.notices),
        complete=not missing,
        generated_at=datetime.now(UTC),
    )


async def finalize_node(state: VoyageState) -> StageUpdate:
    """Finalize node: always produces a report, even from an empty state."""
    logger.info(f"[finalize_node] run_id={state.run_id}")
    try:
        report = build_report(state)
    except Exception as e:
        logger.error(f"[finalize_node] Report assembly failed: {e}")
        report = FinalReport(
            recommendation=["No analysis could be completed for this voyage."],
            warnings=list(state.warnings),
            notices=[*state.notices, f"Report assembly failed: {e}"],
            complete=False,
            generated_at=datetime.now(UTC),
        )

    logger.info(
        f"[finalize_node] {len(report.recommendation)} lines, "
        f"{len(report.missing_analyses)} missing analyses"
    )
    return StageUpdate(
        stage=StageName.finalize,
        base_version=state.version,
        status=StageStatus.success,
        outputs={"final_report": report},
    )
