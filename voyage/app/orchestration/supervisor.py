"""Deterministic scheduler deciding which stage worker runs next.

Priority order:
1. Hard iteration ceiling
2. No-progress check
3. Stuck-stage detection
4. External plan preference (advisory)
5. Deterministic fallback order
6. Circuit breaker wrap on the selected stage

Every path ends in a stage selection or ``finalize``; ``decide`` never raises.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from voyage.app.config import Settings, get_settings
from voyage.app.models.common import ErrorKind, StageName
from voyage.app.models.intent import ExecutionPlan, QueryIntent
from voyage.app.orchestration.circuit_breaker import guard
from voyage.app.orchestration.registry import StageSpec, get_registry, is_satisfied
from voyage.app.orchestration.state import (
    WORKER_STAGES,
    SchedulerUpdate,
    StageError,
    VoyageState,
)

logger = logging.getLogger(__name__)

# Outputs whose presence counts as progress
PROGRESS_OUTPUTS = ("route", "weather_forecast", "weather_consumption", "bunker_analysis")


@dataclass(frozen=True)
class SchedulerDecision:
    """Next stage to run plus the bookkeeping the host must apply first."""

    next_stage: StageName
    update: SchedulerUpdate = field(default_factory=SchedulerUpdate)
    reason: str = ""


def _required_outputs(stage: StageName, spec: StageSpec, intent: QueryIntent) -> list[str]:
    outputs = list(spec.produces)
    if stage == StageName.route and not (intent.needs_weather or intent.needs_bunker):
        # The timeline only feeds weather and bunker analysis
        outputs = [o for o in outputs if o != "vessel_timeline"]
    if stage == StageName.weather and intent.needs_bunker:
        outputs.append("weather_consumption")
    return outputs


def outputs_done(
    stage: StageName,
    state: VoyageState,
    registry: dict[StageName, StageSpec],
    intent: QueryIntent,
) -> bool:
    """Whether every output the stage must produce for this intent exists."""
    return all(
        state.has_output(o) for o in _required_outputs(stage, registry[stage], intent)
    )


def is_required(stage: StageName, intent: QueryIntent) -> bool:
    """Whether the request's intent needs the stage at all."""
    if stage in (StageName.route, StageName.compliance):
        # Every request names its ports; the route underpins everything else
        return True
    if stage == StageName.weather:
        return intent.needs_weather
    if stage == StageName.bunker:
        return intent.needs_bunker
    return False


def prerequisites_met(stage: StageName, state: VoyageState, registry: dict[StageName, StageSpec]) -> bool:
    return all(is_satisfied(p, state) for p in registry[stage].prerequisites)


def _is_critical(stage: StageName, state: VoyageState, registry: dict[StageName, StageSpec]) -> bool:
    # A route stage that produced a route but no timeline no longer blocks everything
    if stage == StageName.route:
        return state.route is None
    return registry[stage].critical


def decide(
    state: VoyageState,
    plan: ExecutionPlan | None = None,
    settings: Settings | None = None,
    registry: dict[StageName, StageSpec] | None = None,
) -> SchedulerDecision:
    """Choose the next stage for a voyage planning session.

    Args:
        state: Current session state (read only)
        plan: Optional advisory stage order from an external planner
        settings: Policy parameters (defaults to application settings)
        registry: Stage registry (defaults to the bundled agents.yaml)

    Returns:
        SchedulerDecision with the next stage and the bookkeeping to apply
    """
    try:
        decision = _decide(state, plan, settings or get_settings(), registry or get_registry())
    except Exception as e:
        logger.error(f"Scheduler failed, forcing finalize: {e}")
        decision = SchedulerDecision(
            next_stage=StageName.finalize,
            update=SchedulerUpdate(notices=[f"Scheduler error: {e}. Finalizing with partial results."]),
            reason="scheduler_error",
        )

    log_data: dict[str, Any] = {
        "run_id": state.run_id,
        "next_stage": decision.next_stage.value,
        "reason": decision.reason,
        "invocations": state.invocation_count,
        "attempts": {k.value: v for k, v in state.attempt_counts.items()},
    }
    logger.info(f"Scheduler decision: {decision.next_stage.value} ({decision.reason})", extra={"structured": log_data})
    return decision


def _decide(
    state: VoyageState,
    plan: ExecutionPlan | None,
    settings: Settings,
    registry: dict[StageName, StageSpec],
) -> SchedulerDecision:
    intent = state.intent or QueryIntent()
    update = SchedulerUpdate()

    def finalize(reason: str) -> SchedulerDecision:
        return SchedulerDecision(next_stage=StageName.finalize, update=update, reason=reason)

    # 1. Hard iteration ceiling
    if state.invocation_count > settings.hard_iteration_ceiling:
        update.notices.append(
            f"Iteration ceiling reached after {state.invocation_count} worker invocations. "
            "Forcing completion with partial results."
        )
        return finalize("hard_ceiling")

    # 2. No progress at all
    if state.invocation_count > settings.no_progress_threshold and not any(
        state.has_output(o) for o in PROGRESS_OUTPUTS
    ):
        update.notices.append(
            f"No progress after {state.invocation_count} worker invocations "
            f"({ErrorKind.no_progress.value}). Forcing completion."
        )
        return finalize("no_progress")

    # 3. Stuck stages
    failed = {stage for stage in WORKER_STAGES if state.is_failed(stage)}
    for stage in WORKER_STAGES:
        attempts = state.attempt_counts.get(stage, 0)
        if stage in failed or attempts < settings.max_stage_attempts:
            continue
        if outputs_done(stage, state, registry, intent):
            continue
        previous = state.stage_errors.get(stage)
        message = f"{stage.value} did not produce its outputs after {attempts} attempts"
        if previous is not None:
            message += f": {previous.message}"
        update.failed_stages[stage] = StageError(
            message=message,
            kind=previous.kind if previous is not None else ErrorKind.internal,
        )
        update.notices.append(f"Stage {stage.value} marked failed after {attempts} attempts.")
        failed.add(stage)
        if _is_critical(stage, state, registry):
            return finalize(f"critical_stage_failed:{stage.value}")

    def eligible(stage: StageName) -> bool:
        return (
            stage != StageName.finalize
            and stage not in failed
            and is_required(stage, intent)
            and prerequisites_met(stage, state, registry)
            and not outputs_done(stage, state, registry, intent)
        )

    selected: StageName | None = None
    reason = ""

    # 4. External plan preference
    if plan is not None:
        for stage in plan.execution_order:
            if eligible(stage):
                selected = stage
                reason = "external_plan"
                break

    # 5. Deterministic fallback
    if selected is None:
        selected = _fallback(state, intent, failed, registry)
        reason = "fallback"

    if selected is None:
        return finalize("all_stages_complete_or_blocked")

    # 6. Circuit breaker
    breaker = guard(selected, state.attempt_counts, settings.max_stage_attempts)
    if not breaker.proceed:
        assert breaker.notice is not None
        update.notices.append(breaker.notice)
        update.failed_stages[selected] = StageError(
            message=breaker.notice, kind=ErrorKind.circuit_breaker
        )
        return finalize(f"circuit_breaker:{selected.value}")

    update.attempt_counts = breaker.updated_counts
    return SchedulerDecision(next_stage=selected, update=update, reason=reason)


def _fallback(
    state: VoyageState,
    intent: QueryIntent,
    failed: set[StageName],
    registry: dict[StageName, StageSpec],
) -> StageName | None:
    """Fixed dependency order: route, compliance, weather, bunker."""
    if StageName.route not in failed and not outputs_done(StageName.route, state, registry, intent):
        return StageName.route

    if (
        StageName.compliance not in failed
        and state.has_waypoints()
        and state.compliance is None
    ):
        return StageName.compliance

    weather_done = outputs_done(StageName.weather, state, registry, intent)
    weather_blocked = not prerequisites_met(StageName.weather, state, registry)
    if (
        intent.needs_weather
        and StageName.weather not in failed
        and not weather_blocked
        and not weather_done
    ):
        return StageName.weather

    # A failed or permanently blocked weather stage unblocks bunker
    weather_unavailable = StageName.weather in failed or (
        weather_blocked and StageName.route in failed
    )
    if (
        intent.needs_bunker
        and StageName.bunker not in failed
        and prerequisites_met(StageName.bunker, state, registry)
        and not outputs_done(StageName.bunker, state, registry, intent)
        and (
            not intent.needs_weather
            or (state.has_output("weather_forecast") and state.weather_consumption is not None)
            or weather_unavailable
        )
    ):
        return StageName.bunker

    return None
