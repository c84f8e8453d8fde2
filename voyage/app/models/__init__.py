"""Models package - re-exports for convenience."""

from voyage.app.models.bunker import (
    BunkerAnalysis,
    BunkerPlan,
    BunkerRecommendation,
    BunkerStop,
    CapacityConstraint,
    FoundPort,
    FuelPrice,
    MultiBunkerAnalysis,
    PortPrices,
)
from voyage.app.models.common import (
    ErrorKind,
    FuelQuantity,
    FuelType,
    Geo,
    Provenance,
    StageName,
    StageStatus,
)
from voyage.app.models.compliance import (
    ComplianceData,
    EcaZone,
    FuelSwitchPoint,
    RouteSegment,
    ZoneCrossing,
)
from voyage.app.models.intent import ExecutionPlan, QueryIntent, VoyageRequest
from voyage.app.models.report import FinalReport, MissingAnalysis
from voyage.app.models.rob import RobTrace, RobTracking, RobWaypoint
from voyage.app.models.route import Port, RouteData, TimelinePoint
from voyage.app.models.vessel import VesselProfile
from voyage.app.models.weather import (
    MarineConditions,
    WeatherAlert,
    WeatherConsumption,
    WeatherSample,
)

__all__ = [
    # Common
    "Geo",
    "FuelType",
    "FuelQuantity",
    "StageName",
    "StageStatus",
    "ErrorKind",
    "Provenance",
    # Route
    "Port",
    "RouteData",
    "TimelinePoint",
    # Compliance
    "EcaZone",
    "ZoneCrossing",
    "FuelSwitchPoint",
    "ComplianceData",
    "RouteSegment",
    # Weather
    "MarineConditions",
    "WeatherSample",
    "WeatherAlert",
    "WeatherConsumption",
    # Vessel
    "VesselProfile",
    # Bunker
    "FoundPort",
    "FuelPrice",
    "PortPrices",
    "BunkerRecommendation",
    "BunkerAnalysis",
    "BunkerStop",
    "BunkerPlan",
    "CapacityConstraint",
    "MultiBunkerAnalysis",
    # ROB
    "RobWaypoint",
    "RobTrace",
    "RobTracking",
    # Intent
    "VoyageRequest",
    "QueryIntent",
    "ExecutionPlan",
    # Report
    "FinalReport",
    "MissingAnalysis",
]
