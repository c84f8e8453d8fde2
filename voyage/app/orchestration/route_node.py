"""Route node - resolves ports, calculates the sea route and the vessel timeline."""

import logging

from voyage.app.adapters.fixtures import UnknownPortError, lookup_port
from voyage.app.adapters.route import RouteRequest
from voyage.app.engines.timeline import TimelineError, calculate_vessel_timeline
from voyage.app.models.common import ErrorKind, StageName, StageStatus
from voyage.app.orchestration.context import (
    NodeContext,
    error_kind_for,
    resolve_vessel,
    stage_failure,
    stage_worker,
)
from voyage.app.orchestration.state import StageError, StageUpdate, VoyageState
from voyage.app.tools.executor import ToolCancelledError, ToolExecutionError, ToolTimeoutError

logger = logging.getLogger(__name__)


@stage_worker(StageName.route)
async def route_node(state: VoyageState, ctx: NodeContext) -> StageUpdate:
    """Produce the route and the vessel timeline.

    The route is computed once; when it already exists only the timeline is
    rebuilt. A timeline failure after a successful route is a partial result:
    the route is kept and the error is recorded under ``vessel_timeline``.

    Args:
        state: Snapshot of the session state
        ctx: Session dependencies

    Returns:
        StageUpdate with ``route`` and ``vessel_timeline`` where produced
    """
    request = state.request
    logger.info(
        f"[route_node] run_id={state.run_id} "
        f"{request.origin_port_code} -> {request.destination_port_code}"
    )

    vessel, _ = resolve_vessel(request, ctx.settings)
    speed = vessel.operational_speed_knots
    outputs: dict[str, object] = {}

    route = state.route
    if route is None:
        try:
            origin = lookup_port(request.origin_port_code).value
            destination = lookup_port(request.destination_port_code).value
        except UnknownPortError as e:
            logger.warning(f"[route_node] {e}")
            return stage_failure(StageName.route, state, str(e), ErrorKind.missing_prerequisite)

        try:
            result = await ctx.call(
                state,
                "route.searoute",
                ctx.route_fn,  # type: ignore[arg-type]
                RouteRequest(origin=origin, destination=destination, speed_knots=speed),
                ctx.settings.route_timeout_ms,
                cache=ctx.route_cache,
                cache_ttl_seconds=ctx.settings.route_cache_ttl_seconds,
            )
        except (ToolTimeoutError, ToolCancelledError, ToolExecutionError) as e:
            logger.warning(f"[route_node] Route calculation failed: {e}")
            return stage_failure(StageName.route, state, str(e), ErrorKind.external_call_failure)

        route = result.value
        outputs["route"] = route

    try:
        timeline = calculate_vessel_timeline(
            route.waypoints,
            speed,
            request.departure_at,
            ctx.settings.timeline_interval_hours,
        )
    except TimelineError as e:
        logger.warning(f"[route_node] Timeline failed, keeping route: {e}")
        return _partial(state, outputs, f"Vessel timeline failed: {e}", ErrorKind.internal)
    except Exception as e:
        logger.error(f"[route_node] Unexpected timeline error: {e}")
        return _partial(state, outputs, f"Vessel timeline failed: {e}", error_kind_for(e))

    outputs["vessel_timeline"] = timeline
    logger.info(
        f"[route_node] {route.distance_nm:.0f} nm, {len(route.waypoints)} waypoints, "
        f"{len(timeline)} timeline points"
    )
    return StageUpdate(
        stage=StageName.route,
        base_version=state.version,
        status=StageStatus.success,
        outputs=outputs,
    )


def _partial(
    state: VoyageState,
    outputs: dict[str, object],
    message: str,
    kind: ErrorKind,
) -> StageUpdate:
    error = StageError(message=message, kind=kind)
    return StageUpdate(
        stage=StageName.route,
        base_version=state.version,
        status=StageStatus.failed,
        outputs=outputs,
        error=error,
        output_errors={"vessel_timeline": error},
    )
