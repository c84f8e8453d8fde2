"""Per-stage attempt guard that converts repeated attempts into forced progress."""

from collections.abc import Mapping
from dataclasses import dataclass

from voyage.app.models.common import StageName

DEFAULT_MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class BreakerDecision:
    """Outcome of guarding one stage selection."""

    proceed: bool
    updated_counts: dict[StageName, int]
    notice: str | None = None


def breaker_notice(stage: StageName, max_attempts: int) -> str:
    return (
        f"Circuit breaker activated: {stage.value} exceeded {max_attempts} attempts. "
        "Forcing completion with partial results."
    )


def guard(
    stage: StageName,
    attempt_counts: Mapping[StageName, int],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> BreakerDecision:
    """Count one more attempt at ``stage`` unless it has used up its budget.

    The input mapping is not mutated; the caller stores ``updated_counts``.
    """
    counts = dict(attempt_counts)
    attempts = counts.get(stage, 0)
    if attempts >= max_attempts:
        return BreakerDecision(
            proceed=False,
            updated_counts=counts,
            notice=breaker_notice(stage, max_attempts),
        )

    counts[stage] = attempts + 1
    return BreakerDecision(proceed=True, updated_counts=counts)
