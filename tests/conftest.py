"""Shared pytest fixtures for all test suites."""

import pytest

from tests.factories import (
    DEPARTURE,
    NOW,
    SGSIN_AEFJR_WAYPOINTS,
    fake_route_fn,
    fake_weather_fn,
)
from voyage.app.config import Settings
from voyage.app.models.intent import QueryIntent, VoyageRequest
from voyage.app.orchestration.context import NodeContext
from voyage.app.orchestration.state import VoyageState


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, planner_enabled=False, openai_api_key="")


@pytest.fixture
def node_context(settings: Settings) -> NodeContext:
    """Context wired to fake route and weather collaborators and a fixed clock."""
    return NodeContext(
        settings=settings,
        route_fn=fake_route_fn(SGSIN_AEFJR_WAYPOINTS),
        weather_fn=fake_weather_fn(),
        clock=lambda: NOW,
    )


@pytest.fixture
def voyage_request() -> VoyageRequest:
    return VoyageRequest(
        query="Plan route from Singapore to Fujairah with weather forecast and cheapest bunker",
        origin_port_code="SGSIN",
        destination_port_code="AEFJR",
        vessel_name="MV Coastal Runner",
        departure_at=DEPARTURE,
    )


@pytest.fixture
def voyage_state(voyage_request: VoyageRequest) -> VoyageState:
    """Fresh state with an intent needing every analysis."""
    return VoyageState(
        request=voyage_request,
        intent=QueryIntent(needs_weather=True, needs_bunker=True, complexity="high"),
    )
