"""Compliance node - ECA crossings and fuel switching along the route."""

import logging

from voyage.app.adapters.zones import ComplianceRequest, validate_eca_zones
from voyage.app.models.common import ErrorKind, StageName, StageStatus
from voyage.app.orchestration.context import (
    NodeContext,
    resolve_vessel,
    stage_failure,
    stage_worker,
    sync_collaborator,
)
from voyage.app.orchestration.state import StageUpdate, VoyageState
from voyage.app.tools.executor import ToolCancelledError, ToolExecutionError, ToolTimeoutError

logger = logging.getLogger(__name__)


@stage_worker(StageName.compliance)
async def compliance_node(state: VoyageState, ctx: NodeContext) -> StageUpdate:
    """Detect zone crossings and the MGO the vessel must carry for them."""
    if state.route is None or not state.route.waypoints:
        return stage_failure(
            StageName.compliance,
            state,
            "Route waypoints are required for compliance analysis",
            ErrorKind.missing_prerequisite,
        )

    vessel = state.vessel or resolve_vessel(state.request, ctx.settings)[0]
    rate = vessel.effective_rate
    request = ComplianceRequest(
        waypoints=state.route.waypoints,
        route_distance_nm=state.route.distance_nm,
        speed_knots=vessel.operational_speed_knots,
        main_engine_mt_per_day=rate.vlsfo,
        auxiliary_mt_per_day=rate.lsmgo,
        mgo_safety_margin_percent=ctx.settings.mgo_safety_margin_percent,
    )

    try:
        result = await ctx.call(
            state,
            "compliance.eca_zones",
            sync_collaborator(validate_eca_zones),
            request,
            ctx.settings.route_timeout_ms,
        )
    except (ToolTimeoutError, ToolCancelledError, ToolExecutionError) as e:
        logger.warning(f"[compliance_node] Zone validation failed: {e}")
        return stage_failure(StageName.compliance, state, str(e), ErrorKind.external_call_failure)

    compliance = result.value
    logger.info(
        f"[compliance_node] {len(compliance.zones_crossed)} active zones, "
        f"{compliance.total_eca_distance_nm:.0f} nm in ECA, "
        f"MGO {compliance.mgo_with_safety_margin_mt:.0f} MT with margin"
    )
    return StageUpdate(
        stage=StageName.compliance,
        base_version=state.version,
        status=StageStatus.success,
        outputs={"compliance": compliance},
        warnings=list(compliance.warnings),
    )
