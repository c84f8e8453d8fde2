"""Prometheus metrics for collaborator calls."""

from prometheus_client import Counter, Histogram

from voyage.app.tools.executor import ToolContext

# Collaborator call metrics
collaborator_latency_ms = Histogram(
    "voyage_collaborator_latency_ms",
    "Collaborator call latency in milliseconds",
    ["tool", "latency_class", "outcome"],
    buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 15000, 30000],
)

collaborator_errors_total = Counter(
    "voyage_collaborator_errors_total",
    "Total collaborator call errors",
    ["stage", "tool", "reason"],
)

collaborator_cache_hits_total = Counter(
    "voyage_collaborator_cache_hits_total",
    "Total collaborator cache hits",
    ["stage", "tool"],
)


def _stage_label(ctx: ToolContext) -> str:
    return ctx.stage or "none"


class PrometheusToolMetrics:
    """Prometheus-based collaborator metrics.

    Latency is bucketed per latency class so route, weather and price calls
    can be compared against their own timeouts. Errors and cache hits are
    attributed to the stage that made the call.
    """

    def record_latency(self, ctx: ToolContext, outcome: str, latency_ms: float) -> None:
        """Record call latency."""
        collaborator_latency_ms.labels(
            tool=ctx.tool_name, latency_class=ctx.latency_class, outcome=outcome
        ).observe(latency_ms)

    def inc_error(self, ctx: ToolContext, reason: str) -> None:
        """Increment error counter."""
        collaborator_errors_total.labels(
            stage=_stage_label(ctx), tool=ctx.tool_name, reason=reason
        ).inc()

    def inc_cache_hit(self, ctx: ToolContext) -> None:
        collaborator_cache_hits_total.labels(stage=_stage_label(ctx), tool=ctx.tool_name).inc()
