"""Voyage request and intent models."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from voyage.app.models.common import StageName


class VoyageRequest(BaseModel):
    """A single voyage-planning request."""

    query: str
    origin_port_code: str
    destination_port_code: str
    vessel_name: str | None = None
    departure_at: datetime
    speed_knots: float | None = Field(default=None, gt=0)


class QueryIntent(BaseModel):
    """Which analyses the request asks for."""

    needs_route: bool = True
    needs_weather: bool = False
    needs_bunker: bool = False
    complexity: Literal["low", "medium", "high"] = "low"


class ExecutionPlan(BaseModel):
    """Advisory stage order proposed by an external planner."""

    execution_order: list[StageName]
    reasoning: str = ""
