"""Tests for voyage state merge rules."""

import pytest

from tests.factories import make_route
from voyage.app.models.common import ErrorKind, Geo, StageName, StageStatus
from voyage.app.models.compliance import ComplianceData
from voyage.app.orchestration.state import (
    SchedulerUpdate,
    StageError,
    StageUpdate,
    StateConsistencyError,
    VoyageState,
    apply_scheduler_update,
    merge_update,
)

ROUTE = make_route([Geo(lat=1.0, lon=100.0), Geo(lat=2.0, lon=101.0)])


def test_new_state_has_pending_worker_stages(voyage_state: VoyageState) -> None:
    assert voyage_state.stage_status == {
        StageName.route: StageStatus.pending,
        StageName.compliance: StageStatus.pending,
        StageName.weather: StageStatus.pending,
        StageName.bunker: StageStatus.pending,
    }
    assert voyage_state.version == 0


def test_merge_sets_outputs_and_bumps_version(voyage_state: VoyageState) -> None:
    update = StageUpdate(
        stage=StageName.route,
        base_version=0,
        status=StageStatus.success,
        outputs={"route": ROUTE},
        warnings=["w1"],
    )

    merge_update(voyage_state, update)

    assert voyage_state.route == ROUTE
    assert voyage_state.stage_status[StageName.route] == StageStatus.success
    assert voyage_state.version == 1
    assert voyage_state.warnings == ["w1"]


def test_merge_rejects_stale_version(voyage_state: VoyageState) -> None:
    voyage_state.version = 2
    update = StageUpdate(stage=StageName.compliance, base_version=1, status=StageStatus.success)

    with pytest.raises(StateConsistencyError, match="version 1"):
        merge_update(voyage_state, update)


def test_merge_refuses_to_replace_route(voyage_state: VoyageState) -> None:
    """Test that the route is write-once."""
    voyage_state.route = ROUTE
    update = StageUpdate(
        stage=StageName.route,
        base_version=0,
        status=StageStatus.success,
        outputs={"route": ROUTE},
    )

    with pytest.raises(StateConsistencyError, match="Route is already set"):
        merge_update(voyage_state, update)
    assert voyage_state.version == 0


def test_merge_rejects_unknown_field(voyage_state: VoyageState) -> None:
    update = StageUpdate(
        stage=StageName.bunker,
        base_version=0,
        status=StageStatus.success,
        outputs={"attempt_counts": {}},
    )

    with pytest.raises(StateConsistencyError, match="unknown field"):
        merge_update(voyage_state, update)


def test_failure_records_error_and_success_clears_it(voyage_state: VoyageState) -> None:
    error = StageError(message="zone data unavailable", kind=ErrorKind.external_call_failure)
    merge_update(
        voyage_state,
        StageUpdate(
            stage=StageName.compliance,
            base_version=0,
            status=StageStatus.failed,
            error=error,
            output_errors={"compliance": error},
        ),
    )

    assert voyage_state.stage_errors[StageName.compliance] == error
    assert voyage_state.output_errors["compliance"] == error

    merge_update(
        voyage_state,
        StageUpdate(
            stage=StageName.compliance,
            base_version=1,
            status=StageStatus.success,
            outputs={"compliance": ComplianceData(has_eca_zones=False)},
        ),
    )

    assert StageName.compliance not in voyage_state.stage_errors
    assert "compliance" not in voyage_state.output_errors


def test_warnings_and_notices_are_not_duplicated(voyage_state: VoyageState) -> None:
    for version in range(2):
        merge_update(
            voyage_state,
            StageUpdate(
                stage=StageName.bunker,
                base_version=version,
                status=StageStatus.success,
                warnings=["stale price"],
                notices=["n"],
            ),
        )

    assert voyage_state.warnings == ["stale price"]
    assert voyage_state.notices == ["n"]


def test_scheduler_update_marks_failed_stages(voyage_state: VoyageState) -> None:
    error = StageError(message="stuck", kind=ErrorKind.circuit_breaker)

    apply_scheduler_update(
        voyage_state,
        SchedulerUpdate(
            attempt_counts={StageName.weather: 3},
            failed_stages={StageName.weather: error},
            notices=["breaker"],
        ),
    )

    assert voyage_state.is_failed(StageName.weather)
    assert voyage_state.stage_errors[StageName.weather] == error
    assert voyage_state.attempt_counts == {StageName.weather: 3}
    assert voyage_state.notices == ["breaker"]
    assert voyage_state.version == 1


def test_empty_scheduler_update_is_a_no_op(voyage_state: VoyageState) -> None:
    apply_scheduler_update(voyage_state, SchedulerUpdate())

    assert voyage_state.version == 0


def test_snapshot_is_independent(voyage_state: VoyageState) -> None:
    snapshot = voyage_state.snapshot()
    snapshot.warnings.append("only in snapshot")
    snapshot.stage_status[StageName.route] = StageStatus.failed

    assert voyage_state.warnings == []
    assert voyage_state.stage_status[StageName.route] == StageStatus.pending


def test_record_event_sequences(voyage_state: VoyageState) -> None:
    voyage_state.record_event("route", "started", "Running route")
    voyage_state.record_event("route", "completed", "route success")

    assert [e.sequence for e in voyage_state.events] == [0, 1]
    assert voyage_state.events[1].phase == "completed"
