"""Structured logging for collaborator calls."""

import logging
from typing import Any

from voyage.app.tools.executor import ToolContext

logger = logging.getLogger(__name__)


class StructuredToolLogger:
    """Structured logger for collaborator calls.

    Records carry the owning stage and latency class next to the trace ids,
    and the message is prefixed with the stage the way node logs are.
    """

    def log_attempt(
        self,
        ctx: ToolContext,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        """Log one collaborator call with structured data."""
        log_data: dict[str, Any] = {
            "trace_id": ctx.trace_id,
            "run_id": ctx.run_id,
            "stage": ctx.stage,
            "tool": ctx.tool_name,
            "latency_class": ctx.latency_class,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "cache_hit": cache_hit,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        prefix = f"[{ctx.stage}_node] " if ctx.stage else ""
        log_msg = f"{prefix}Collaborator call: {ctx.tool_name} ({ctx.latency_class}) - {outcome}"

        if outcome in ("success", "cache_hit"):
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})
