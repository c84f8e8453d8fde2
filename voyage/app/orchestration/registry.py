"""Stage registry: prerequisites and outputs declared per stage worker."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import assert_never

import yaml
from pydantic import BaseModel, Field, ValidationError

from voyage.app.models.common import StageName
from voyage.app.orchestration.state import OUTPUT_FIELDS, VoyageState

REGISTRY_PATH = Path(__file__).parent.parent / "fixtures" / "agents.yaml"


class RegistryConfigError(Exception):
    """Stage registry file is malformed."""

    pass


class Prerequisite(str, Enum):
    """State a stage can require before it runs."""

    route_waypoints = "route_waypoints"
    vessel_timeline = "vessel_timeline"
    weather_forecast = "weather_forecast"
    compliance = "compliance"


class StageSpec(BaseModel):
    """Declared contract of one stage worker."""

    name: StageName
    description: str = ""
    critical: bool = False
    prerequisites: list[Prerequisite] = Field(default_factory=list)
    produces: list[str] = Field(default_factory=list)
    also_produces: list[str] = Field(default_factory=list)


def is_satisfied(prerequisite: Prerequisite, state: VoyageState) -> bool:
    """Check one prerequisite against the state."""
    match prerequisite:
        case Prerequisite.route_waypoints:
            return state.has_waypoints()
        case Prerequisite.vessel_timeline:
            return state.has_output("vessel_timeline")
        case Prerequisite.weather_forecast:
            return state.has_output("weather_forecast")
        case Prerequisite.compliance:
            return state.compliance is not None
        case _:
            assert_never(prerequisite)


def parse_registry(raw: object) -> dict[StageName, StageSpec]:
    """Validate raw registry data into stage specs.

    Raises:
        RegistryConfigError: On unknown stages, unknown prerequisites, or bad shape
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("stages"), dict):
        raise RegistryConfigError("Registry must contain a 'stages' mapping")

    specs: dict[StageName, StageSpec] = {}
    for name, body in raw["stages"].items():
        try:
            spec = StageSpec(name=name, **(body or {}))
        except ValidationError as e:
            raise RegistryConfigError(f"Invalid registry entry '{name}': {e}") from e
        if spec.name == StageName.finalize:
            raise RegistryConfigError("finalize is built in and cannot be registered")
        unknown = [o for o in spec.produces + spec.also_produces if o not in OUTPUT_FIELDS]
        if unknown:
            raise RegistryConfigError(f"Stage '{name}' declares unknown outputs: {unknown}")
        specs[spec.name] = spec

    missing = [s.value for s in StageName if s != StageName.finalize and s not in specs]
    if missing:
        raise RegistryConfigError(f"Registry is missing stages: {missing}")
    return specs


def load_registry(path: Path = REGISTRY_PATH) -> dict[StageName, StageSpec]:
    """Load and validate the stage registry from YAML."""
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise RegistryConfigError(f"Cannot read stage registry {path}: {e}") from e
    return parse_registry(raw)


@lru_cache
def get_registry() -> dict[StageName, StageSpec]:
    """Get the cached default registry."""
    return load_registry()
