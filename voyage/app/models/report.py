"""Final synthesis models."""

from datetime import datetime

from pydantic import BaseModel, Field

from voyage.app.models.common import StageName


class MissingAnalysis(BaseModel):
    """An analysis the request needed but the run could not produce."""

    stage: StageName
    reason: str


class FinalReport(BaseModel):
    """Recommendation built from whatever partial data exists."""

    recommendation: list[str]
    missing_analyses: list[MissingAnalysis] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    notices: list[str] = Field(default_factory=list)
    complete: bool
    generated_at: datetime
