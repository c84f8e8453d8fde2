"""Graph orchestrator - host loop driving the scheduler and stage workers.

The loop asks the scheduler for the next stage, runs that worker on a
snapshot of the state, merges the worker's partial update, and repeats
until the scheduler returns ``finalize``. Finalize always runs.
"""

import logging

from voyage.app.llm.client import ExecutionPlanner, get_execution_planner
from voyage.app.models.common import StageName
from voyage.app.models.intent import ExecutionPlan, VoyageRequest
from voyage.app.orchestration.bunker_node import bunker_node
from voyage.app.orchestration.compliance_node import compliance_node
from voyage.app.orchestration.context import NodeContext, WorkerFn
from voyage.app.orchestration.intent import analyze_query_intent
from voyage.app.orchestration.route_node import route_node
from voyage.app.orchestration.state import (
    StageUpdate,
    VoyageState,
    apply_scheduler_update,
    merge_update,
)
from voyage.app.orchestration.supervisor import decide
from voyage.app.orchestration.synth import finalize_node
from voyage.app.orchestration.weather_node import weather_node

logger = logging.getLogger(__name__)

NODES: dict[StageName, WorkerFn] = {
    StageName.route: route_node,
    StageName.compliance: compliance_node,
    StageName.weather: weather_node,
    StageName.bunker: bunker_node,
}


def _summarize(update: StageUpdate) -> str:
    produced = ", ".join(sorted(update.outputs)) or "nothing"
    summary = f"{update.stage.value} {update.status.value}; produced {produced}"
    if update.error is not None:
        summary += f"; {update.error.kind.value}: {update.error.message}"
    return summary


async def _ask_planner(
    state: VoyageState, planner: ExecutionPlanner | None
) -> ExecutionPlan | None:
    """Ask the external planner once; its failures never stop the run."""
    if planner is None:
        return None
    assert state.intent is not None
    state.record_event("planner", "started", "Requesting advisory stage order")
    try:
        plan = await planner.plan(request=state.request, intent=state.intent)
    except Exception as e:
        logger.error(f"Execution planner failed, using deterministic order: {e}")
        plan = None
    if plan is None:
        summary = "No plan; deterministic order"
    else:
        summary = "Plan: " + ", ".join(s.value for s in plan.execution_order)
    state.record_event("planner", "completed", summary)
    return plan


async def run_voyage_planning(
    request: VoyageRequest,
    ctx: NodeContext | None = None,
    planner: ExecutionPlanner | None = None,
) -> VoyageState:
    """Run one voyage planning session to completion.

    Args:
        request: The voyage planning request
        ctx: Session dependencies (defaults to a fresh context with live collaborators)
        planner: Advisory stage planner (defaults to the configured one, if any)

    Returns:
        Final state; ``final_report`` is always set

    Raises:
        StateConsistencyError: If a worker update conflicts with the state
    """
    ctx = ctx or NodeContext()
    settings = ctx.settings
    state = VoyageState(request=request)
    logger.info(
        f"Starting voyage planning run_id={state.run_id} "
        f"{request.origin_port_code} -> {request.destination_port_code}"
    )

    state.intent = analyze_query_intent(request.query)
    state.record_event(
        "intent",
        "completed",
        f"weather={state.intent.needs_weather}, bunker={state.intent.needs_bunker}, "
        f"complexity={state.intent.complexity}",
    )

    plan = await _ask_planner(state, planner or get_execution_planner(settings))

    # One more than the scheduler's ceiling so the scheduler reports it first
    for _ in range(settings.hard_iteration_ceiling + 1):
        decision = decide(state, plan, settings)
        apply_scheduler_update(state, decision.update)
        if decision.next_stage == StageName.finalize:
            break

        stage = decision.next_stage
        attempt = state.attempt_counts.get(stage, 0)
        state.record_event(stage.value, "started", f"Running {stage.value} (attempt {attempt})")
        update = await NODES[stage](state.snapshot(), ctx)
        merge_update(state, update)
        state.invocation_count += 1
        state.record_event(stage.value, "completed", _summarize(update))
    else:
        logger.warning(f"Host loop ceiling reached for run_id={state.run_id}")
        notice = "Host loop ceiling reached. Forcing completion with partial results."
        if notice not in state.notices:
            state.notices.append(notice)

    state.record_event("finalize", "started", "Synthesizing final report")
    update = await finalize_node(state.snapshot())
    merge_update(state, update)
    report = state.final_report
    assert report is not None
    state.record_event(
        "finalize",
        "completed",
        f"complete={report.complete}, missing={[m.stage.value for m in report.missing_analyses]}",
    )
    logger.info(
        f"Voyage planning finished run_id={state.run_id} after "
        f"{state.invocation_count} worker invocations (complete={report.complete})"
    )
    return state
