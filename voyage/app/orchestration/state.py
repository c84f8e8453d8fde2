"""Voyage planning session state and the merge rules for stage updates."""

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from voyage.app.models.bunker import BunkerAnalysis, FoundPort, MultiBunkerAnalysis, PortPrices
from voyage.app.models.common import ErrorKind, StageName, StageStatus
from voyage.app.models.compliance import ComplianceData
from voyage.app.models.intent import QueryIntent, VoyageRequest
from voyage.app.models.report import FinalReport
from voyage.app.models.rob import RobTracking
from voyage.app.models.route import RouteData, TimelinePoint
from voyage.app.models.vessel import VesselProfile
from voyage.app.models.weather import WeatherConsumption, WeatherSample

Phase = Literal["started", "completed"]

WORKER_STAGES = (StageName.route, StageName.compliance, StageName.weather, StageName.bunker)

# Fields a stage worker may write through a StageUpdate
OUTPUT_FIELDS = frozenset(
    {
        "route",
        "vessel_timeline",
        "compliance",
        "weather_forecast",
        "weather_consumption",
        "vessel",
        "bunker_ports",
        "port_prices",
        "bunker_analysis",
        "multi_bunker_plan",
        "rob_tracking",
        "final_report",
    }
)


class StateConsistencyError(Exception):
    """A stage update conflicts with the current state."""

    pass


@dataclass(frozen=True)
class StageError:
    """Structured failure record for a stage or a single output."""

    message: str
    kind: ErrorKind
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class RunEvent:
    """In-memory record of one node execution phase."""

    sequence: int
    node: str
    phase: Phase
    summary: str
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class VoyageState:
    """State for one voyage planning session.

    Created at session start and discarded after finalize; never shared
    across sessions. Workers receive a snapshot and return a StageUpdate,
    which the host merges with ``merge_update``.
    """

    request: VoyageRequest
    run_id: str = field(default_factory=lambda: uuid4().hex)
    intent: QueryIntent | None = None
    vessel: VesselProfile | None = None

    # Stage outputs (all optional during execution)
    route: RouteData | None = None
    vessel_timeline: list[TimelinePoint] | None = None
    compliance: ComplianceData | None = None
    weather_forecast: list[WeatherSample] | None = None
    weather_consumption: WeatherConsumption | None = None
    bunker_ports: list[FoundPort] | None = None
    port_prices: PortPrices | None = None
    bunker_analysis: BunkerAnalysis | None = None
    multi_bunker_plan: MultiBunkerAnalysis | None = None
    rob_tracking: RobTracking | None = None
    final_report: FinalReport | None = None

    # Scheduling bookkeeping
    stage_status: dict[StageName, StageStatus] = field(
        default_factory=lambda: {stage: StageStatus.pending for stage in WORKER_STAGES}
    )
    stage_errors: dict[StageName, StageError] = field(default_factory=dict)
    attempt_counts: dict[StageName, int] = field(default_factory=dict)
    invocation_count: int = 0
    version: int = 0

    output_errors: dict[str, StageError] = field(default_factory=dict)
    notices: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    events: list[RunEvent] = field(default_factory=list)
    sequence_counter: int = 0

    def next_sequence(self) -> int:
        """Get next sequence number for events."""
        seq = self.sequence_counter
        self.sequence_counter += 1
        return seq

    def record_event(self, node: str, phase: Phase, summary: str) -> None:
        self.events.append(
            RunEvent(sequence=self.next_sequence(), node=node, phase=phase, summary=summary)
        )

    def has_output(self, name: str) -> bool:
        """Whether an output field holds data (empty lists count as missing)."""
        value = getattr(self, name)
        if value is None:
            return False
        if isinstance(value, list):
            return len(value) > 0
        return True

    def has_waypoints(self) -> bool:
        return self.route is not None and len(self.route.waypoints) > 0

    def is_failed(self, stage: StageName) -> bool:
        return self.stage_status.get(stage) == StageStatus.failed

    def snapshot(self) -> "VoyageState":
        """Deep copy handed to a worker so it cannot mutate shared state."""
        return copy.deepcopy(self)


@dataclass
class StageUpdate:
    """Partial result produced by one worker invocation."""

    stage: StageName
    base_version: int
    status: StageStatus
    outputs: dict[str, Any] = field(default_factory=dict)
    error: StageError | None = None
    output_errors: dict[str, StageError] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)


@dataclass
class SchedulerUpdate:
    """Bookkeeping changes made by a scheduling decision."""

    attempt_counts: dict[StageName, int] | None = None
    failed_stages: dict[StageName, StageError] = field(default_factory=dict)
    notices: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.attempt_counts is None and not self.failed_stages and not self.notices


def _extend_unique(target: list[str], items: list[str]) -> None:
    for item in items:
        if item not in target:
            target.append(item)


def merge_update(state: VoyageState, update: StageUpdate) -> None:
    """Merge a worker's partial update into the session state.

    Raises:
        StateConsistencyError: On a stale base version, an unknown output
            field, or an attempt to replace an existing route
    """
    if update.base_version != state.version:
        raise StateConsistencyError(
            f"{update.stage.value} update based on version {update.base_version}, "
            f"state is at version {state.version}"
        )

    for name, value in update.outputs.items():
        if name not in OUTPUT_FIELDS:
            raise StateConsistencyError(f"{update.stage.value} wrote unknown field '{name}'")
        if name == "route" and state.route is not None:
            raise StateConsistencyError("Route is already set and cannot be replaced")

    for name, value in update.outputs.items():
        setattr(state, name, value)
        state.output_errors.pop(name, None)

    if update.stage in state.stage_status:
        state.stage_status[update.stage] = update.status
    if update.error is not None:
        state.stage_errors[update.stage] = update.error
    elif update.status == StageStatus.success:
        state.stage_errors.pop(update.stage, None)

    state.output_errors.update(update.output_errors)
    _extend_unique(state.warnings, update.warnings)
    _extend_unique(state.notices, update.notices)
    state.version += 1


def apply_scheduler_update(state: VoyageState, update: SchedulerUpdate) -> None:
    """Apply the bookkeeping carried by a scheduler decision."""
    if update.is_empty():
        return
    if update.attempt_counts is not None:
        state.attempt_counts = dict(update.attempt_counts)
    for stage, error in update.failed_stages.items():
        state.stage_status[stage] = StageStatus.failed
        state.stage_errors[stage] = error
    _extend_unique(state.notices, update.notices)
    state.version += 1
