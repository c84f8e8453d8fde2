"""External execution planner backed by OpenAI.

Security: Reads API key from settings only, never hardcoded.
The planner is advisory: any failure, empty answer, or missing key yields
None and the scheduler falls back to its deterministic order.
"""

import json
import logging
from typing import Protocol

from openai import AsyncOpenAI

from voyage.app.config import Settings, get_settings
from voyage.app.models.common import StageName
from voyage.app.models.intent import ExecutionPlan, QueryIntent, VoyageRequest

logger = logging.getLogger(__name__)

PLANNABLE_STAGES = [StageName.route, StageName.compliance, StageName.weather, StageName.bunker]


class ExecutionPlanner(Protocol):
    """Protocol for execution planner implementations."""

    async def plan(self, *, request: VoyageRequest, intent: QueryIntent) -> ExecutionPlan | None:
        """Propose a stage order for the request.

        Args:
            request: The voyage planning request
            intent: Keyword intent derived from the request

        Returns:
            ExecutionPlan, or None when no plan could be produced
        """
        ...


def parse_plan(content: str) -> ExecutionPlan | None:
    """Parse a JSON planner answer, dropping unknown or duplicate stage names."""
    data = json.loads(content)
    order: list[StageName] = []
    for raw in data.get("execution_order", []):
        try:
            stage = StageName(str(raw).strip().lower())
        except ValueError:
            logger.warning(f"Planner proposed unknown stage '{raw}', dropping it")
            continue
        if stage not in order and stage != StageName.finalize:
            order.append(stage)
    if not order:
        return None
    reasoning = data.get("reasoning", "")
    return ExecutionPlan(execution_order=order, reasoning=reasoning if isinstance(reasoning, str) else "")


class OpenAIExecutionPlanner:
    """OpenAI-backed execution planner."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", client: AsyncOpenAI | None = None):
        """Initialize OpenAI planner.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            client: Optional preconfigured client (for testing)
        """
        self.client = client or AsyncOpenAI(api_key=api_key)
        self.model = model

    async def plan(self, *, request: VoyageRequest, intent: QueryIntent) -> ExecutionPlan | None:
        """Ask the model for a stage order; None on any failure."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self._build_system_prompt()},
                    {"role": "user", "content": self._build_context(request, intent)},
                ],
                temperature=0,
                max_tokens=300,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content or ""
            if not content.strip():
                logger.warning("Planner returned empty response, using deterministic order")
                return None
            plan = parse_plan(content)
            if plan is None:
                logger.warning("Planner returned no usable stages, using deterministic order")
            return plan

        except Exception as e:
            logger.error(f"Planner call failed: {e}")
            logger.warning("Falling back to deterministic stage order")
            return None

    def _build_system_prompt(self) -> str:
        """Build system prompt for planning."""
        stages = ", ".join(s.value for s in PLANNABLE_STAGES)
        return f"""You plan the order of analysis stages for a maritime voyage request.

Available stages: {stages}.
- route computes the sea route and vessel timeline; everything else depends on it.
- compliance checks emission control areas along the route.
- weather fetches marine weather along the timeline and its fuel impact.
- bunker finds bunker ports, ranks fuel options, and tracks fuel on board.

Only include stages the request needs. Answer with JSON only:
{{"execution_order": ["route", ...], "reasoning": "<one sentence>"}}"""

    def _build_context(self, request: VoyageRequest, intent: QueryIntent) -> str:
        """Build user message from the request and intent."""
        lines = [
            f"Query: {request.query}",
            f"Origin: {request.origin_port_code}",
            f"Destination: {request.destination_port_code}",
            f"Departure: {request.departure_at.isoformat()}",
            f"Needs weather: {intent.needs_weather}",
            f"Needs bunker: {intent.needs_bunker}",
        ]
        if request.vessel_name:
            lines.append(f"Vessel: {request.vessel_name}")
        return "\n".join(lines)


def get_execution_planner(settings: Settings | None = None) -> ExecutionPlanner | None:
    """Factory returning the configured planner, or None when planning is off.

    Returns:
        OpenAIExecutionPlanner if enabled and an API key is configured, None otherwise
    """
    settings = settings or get_settings()
    if not settings.planner_enabled:
        logger.info("External planner disabled, using deterministic stage order")
        return None
    if not settings.openai_api_key:
        logger.warning("No OpenAI API key configured, using deterministic stage order")
        return None
    logger.info("Using OpenAI execution planner")
    return OpenAIExecutionPlanner(api_key=settings.openai_api_key, model=settings.openai_model)
