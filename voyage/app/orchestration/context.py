"""Per-session dependencies shared by stage workers."""

import functools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar
from uuid import uuid4

import httpx
from pydantic import BaseModel

from voyage.app.adapters.fixtures import UnknownPortError, default_vessel, fetch_vessel
from voyage.app.adapters.route import RouteCalculationError, RouteRequest, calculate_route
from voyage.app.adapters.weather import MarineLookup, fetch_marine_conditions
from voyage.app.config import Settings, get_settings
from voyage.app.models.common import ErrorKind, StageName, StageStatus
from voyage.app.models.intent import VoyageRequest
from voyage.app.models.route import RouteData
from voyage.app.models.vessel import VesselProfile
from voyage.app.models.weather import MarineConditions
from voyage.app.orchestration.state import StageError, StageUpdate, VoyageState
from voyage.app.tools.executor import (
    CancelToken,
    ToolCache,
    ToolCancelledError,
    ToolConfig,
    ToolContext,
    ToolExecutionError,
    ToolExecutor,
    ToolResult,
    ToolTimeoutError,
)
from voyage.app.utils.logging import StructuredToolLogger
from voyage.app.utils.metrics import PrometheusToolMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

RouteFn = Callable[[RouteRequest], Awaitable[ToolResult[RouteData]]]
WeatherFn = Callable[[MarineLookup], Awaitable[ToolResult[MarineConditions]]]
WorkerFn = Callable[[VoyageState, "NodeContext"], Awaitable[StageUpdate]]

# Owning stage and latency class per collaborator; the class names the timeout setting
COLLABORATORS: dict[str, tuple[StageName, str]] = {
    "route.searoute": (StageName.route, "route"),
    "compliance.eca_zones": (StageName.compliance, "route"),
    "weather.open_meteo_marine": (StageName.weather, "weather"),
    "fixtures.bunker_ports": (StageName.bunker, "price"),
    "fixtures.prices": (StageName.bunker, "price"),
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _default_executor() -> ToolExecutor:
    return ToolExecutor(metrics=PrometheusToolMetrics(), logger=StructuredToolLogger())


@dataclass
class NodeContext:
    """Everything a stage worker needs besides the state snapshot.

    Each session owns its context; the route cache may be shared between
    sessions as a best-effort memo.
    """

    settings: Settings = field(default_factory=get_settings)
    executor: ToolExecutor = field(default_factory=_default_executor)
    cancel_token: CancelToken = field(default_factory=CancelToken)
    route_cache: ToolCache = field(default_factory=ToolCache)
    http_client: httpx.AsyncClient | None = None
    trace_id: str = field(default_factory=lambda: uuid4().hex)
    clock: Callable[[], datetime] = _utcnow
    # Collaborators; replaced in tests
    route_fn: RouteFn = calculate_route
    weather_fn: WeatherFn | None = None

    def tool_context(self, state: VoyageState, tool_name: str) -> ToolContext:
        stage, latency_class = COLLABORATORS.get(tool_name, (None, "default"))
        return ToolContext(
            trace_id=self.trace_id,
            run_id=state.run_id,
            tool_name=tool_name,
            stage=stage.value if stage is not None else None,
            latency_class=latency_class,
        )

    async def fetch_weather(self, lookup: BaseModel) -> ToolResult[MarineConditions]:
        """Default weather collaborator: Open-Meteo with configured URLs."""
        assert isinstance(lookup, MarineLookup)
        if self.weather_fn is not None:
            return await self.weather_fn(lookup)
        return await fetch_marine_conditions(
            lookup,
            marine_url=self.settings.marine_weather_url,
            forecast_url=self.settings.forecast_weather_url,
            client=self.http_client,
        )

    async def call(
        self,
        state: VoyageState,
        tool_name: str,
        fn: Callable[[BaseModel], Awaitable[ToolResult[T]]],
        payload: BaseModel,
        timeout_ms: int,
        *,
        cache: ToolCache | None = None,
        cache_ttl_seconds: int = 0,
    ) -> ToolResult[T]:
        """Run one collaborator call through the executor."""
        return await self.executor.execute(
            self.tool_context(state, tool_name),
            ToolConfig(hard_timeout_ms=timeout_ms, cache_ttl_seconds=cache_ttl_seconds),
            fn,
            payload,
            self.cancel_token,
            cache=cache,
        )


def sync_collaborator(fn: Callable[[T], ToolResult]) -> Callable[[T], Awaitable[ToolResult]]:
    """Adapt a synchronous fixture adapter to the executor's async call shape."""

    async def call(payload: T) -> ToolResult:
        return fn(payload)

    return call


def error_kind_for(error: Exception) -> ErrorKind:
    """Map an exception from a collaborator or engine to the failure taxonomy."""
    if isinstance(error, UnknownPortError):
        return ErrorKind.missing_prerequisite
    if isinstance(
        error,
        (
            ToolTimeoutError,
            ToolCancelledError,
            ToolExecutionError,
            RouteCalculationError,
            httpx.HTTPError,
        ),
    ):
        return ErrorKind.external_call_failure
    return ErrorKind.internal


def resolve_vessel(request: VoyageRequest, settings: Settings) -> tuple[VesselProfile, str | None]:
    """Look up the requested vessel, falling back to the default profile.

    A speed given on the request overrides the vessel's operational speed.

    Returns:
        The profile and a user-visible warning when the default was used
    """
    speed = request.speed_knots
    warning: str | None = None
    found = fetch_vessel(request.vessel_name) if request.vessel_name else None
    if found is not None:
        vessel = found.value
        if speed is not None:
            vessel = vessel.model_copy(update={"operational_speed_knots": speed})
        return vessel, None

    if request.vessel_name:
        warning = f"Vessel '{request.vessel_name}' not found; using default vessel profile"
    else:
        warning = "No vessel specified; using default vessel profile"
    return default_vessel(speed or settings.default_speed_knots), warning


def stage_failure(
    stage: StageName,
    state: VoyageState,
    message: str,
    kind: ErrorKind,
    **kwargs: object,
) -> StageUpdate:
    """Build a failed StageUpdate carrying a structured error."""
    return StageUpdate(
        stage=stage,
        base_version=state.version,
        status=StageStatus.failed,
        error=StageError(message=message, kind=kind),
        **kwargs,  # type: ignore[arg-type]
    )


def stage_worker(stage: StageName) -> Callable[[WorkerFn], WorkerFn]:
    """Turn any escaping exception into a structured stage failure."""

    def wrap(fn: WorkerFn) -> WorkerFn:
        @functools.wraps(fn)
        async def run(state: VoyageState, ctx: "NodeContext") -> StageUpdate:
            try:
                return await fn(state, ctx)
            except Exception as e:
                logger.error(f"[{stage.value}_node] Unexpected failure: {e}")
                return stage_failure(
                    stage, state, f"Unexpected {stage.value} failure: {e}", error_kind_for(e)
                )

        return run

    return wrap
