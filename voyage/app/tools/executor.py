"""Async collaborator executor with hard timeouts, cancellation, and caching.

Every external call made by a stage worker (route calculation, weather
lookup, port and price lookup) goes through ``ToolExecutor.execute``:
- Hard timeout per latency class (route, weather, price)
- No retries; the scheduler's attempt counters own retry policy
- Cancellation that aborts the in-flight call
- Best-effort memoization with TTLs
- Metrics and structured logging
"""

import asyncio
import hashlib
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from voyage.app.models.common import Provenance

T = TypeVar("T")


# Exception types
class ToolTimeoutError(Exception):
    """Collaborator call exceeded its hard timeout."""

    pass


class ToolExecutionError(Exception):
    """Collaborator call failed."""

    pass


class ToolCancelledError(Exception):
    """Collaborator call was cancelled."""

    pass


@dataclass
class ToolResult(Generic[T]):
    """Collaborator result with provenance metadata."""

    value: T
    provenance: Provenance


@dataclass(frozen=True)
class ToolContext:
    """Context for a collaborator call with tracing."""

    trace_id: str
    run_id: str | None
    tool_name: str
    # Owning stage and timeout class; None and "default" outside a run
    stage: str | None = None
    latency_class: str = "default"


@dataclass
class CancelToken:
    """Cancellation signal shared by every call in one planning session."""

    _event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation; in-flight calls are aborted."""
        self._event.set()

    def throw_if_cancelled(self) -> None:
        """Raise ToolCancelledError if cancelled."""
        if self.cancelled:
            raise ToolCancelledError("run cancelled")

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ToolConfig:
    """Configuration for a collaborator call."""

    hard_timeout_ms: int
    cache_ttl_seconds: int = 0


@dataclass
class CacheEntry(Generic[T]):
    """Cached collaborator result with metadata."""

    value: T
    cached_at: datetime
    ttl_seconds: int

    def is_fresh(self, now: datetime) -> bool:
        """Check if cache entry is still valid."""
        return (now - self.cached_at).total_seconds() < self.ttl_seconds


class ToolCache:
    """In-memory cache for collaborator results."""

    def __init__(self) -> None:
        self._cache: dict[str, CacheEntry[Any]] = {}

    def make_key(self, tool_name: str, payload: BaseModel) -> str:
        """Generate deterministic cache key from payload."""
        data = payload.model_dump(mode="json")
        sorted_json = json.dumps(data, sort_keys=True)
        hash_digest = hashlib.sha256(sorted_json.encode()).hexdigest()
        return f"{tool_name}:{hash_digest}"

    def get(self, key: str, now: datetime) -> Any | None:
        """Get cached value if fresh, None otherwise."""
        entry = self._cache.get(key)
        if entry and entry.is_fresh(now):
            return entry.value
        elif entry:
            del self._cache[key]
        return None

    def set(self, key: str, value: Any, ttl_seconds: int, now: datetime) -> None:
        """Store value in cache with TTL."""
        self._cache[key] = CacheEntry(value=value, cached_at=now, ttl_seconds=ttl_seconds)

    def __len__(self) -> int:
        return len(self._cache)


# Metrics interface (implemented by PrometheusToolMetrics)
class ToolMetrics:
    """Interface for collaborator call metrics."""

    def record_latency(self, ctx: ToolContext, outcome: str, latency_ms: float) -> None:
        """Record call latency."""
        pass

    def inc_error(self, ctx: ToolContext, reason: str) -> None:
        """Increment error counter."""
        pass

    def inc_cache_hit(self, ctx: ToolContext) -> None:
        """Increment cache hit counter."""
        pass


# Logging interface (implemented by StructuredToolLogger)
class ToolLogger:
    """Interface for structured logging."""

    def log_attempt(
        self,
        ctx: ToolContext,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        """Log a collaborator call."""
        pass


class ToolExecutor:
    """Runs collaborator calls under a timeout and a cancel token."""

    def __init__(
        self,
        metrics: ToolMetrics | None = None,
        logger: ToolLogger | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
        """
        self._metrics = metrics or ToolMetrics()
        self._logger = logger or ToolLogger()

    async def execute(
        self,
        ctx: ToolContext,
        config: ToolConfig,
        fn: Callable[[BaseModel], Awaitable[ToolResult[T]]],
        payload: BaseModel,
        cancel_token: CancelToken | None = None,
        *,
        cache: ToolCache | None = None,
    ) -> ToolResult[T]:
        """Execute one collaborator call.

        Args:
            ctx: Call context with trace_id/run_id
            config: Timeout and cache TTL
            fn: Async adapter call returning a ToolResult
            payload: Call input payload (also the cache key)
            cancel_token: Cancellation token (optional, defaults to not cancelled)
            cache: Cache store (optional; no caching without one)

        Returns:
            The adapter's ToolResult; cache hits carry cache_hit=True provenance

        Raises:
            ToolTimeoutError: Call exceeded hard timeout
            ToolCancelledError: Call was cancelled before or during execution
            ToolExecutionError: Any other failure, chained from the cause
        """
        start_time = time.monotonic()
        if cancel_token is None:
            cancel_token = CancelToken()

        cancel_token.throw_if_cancelled()

        now = datetime.now()
        cache_key: str | None = None
        if cache is not None and config.cache_ttl_seconds > 0:
            cache_key = cache.make_key(ctx.tool_name, payload)
            cached_entry = cache.get(cache_key, now)
            if cached_entry is not None:
                elapsed_ms = (time.monotonic() - start_time) * 1000
                self._metrics.record_latency(ctx, "cache_hit", elapsed_ms)
                self._metrics.inc_cache_hit(ctx)
                self._logger.log_attempt(ctx, "cache_hit", elapsed_ms, cache_hit=True)

                cached_result: ToolResult[T] = cached_entry
                provenance = cached_result.provenance.model_copy(update={"cache_hit": True})
                return ToolResult(value=cached_result.value, provenance=provenance)

        call = asyncio.ensure_future(fn(payload))
        cancel_wait = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {call, cancel_wait},
                timeout=config.hard_timeout_ms / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_wait.cancel()

        elapsed_ms = (time.monotonic() - start_time) * 1000

        if call not in done:
            call.cancel()
            if cancel_token.cancelled:
                self._metrics.record_latency(ctx, "cancelled", elapsed_ms)
                self._logger.log_attempt(ctx, "cancelled", elapsed_ms, error_reason="cancelled")
                raise ToolCancelledError(f"{ctx.tool_name} cancelled in flight")
            self._metrics.record_latency(ctx, "timeout", elapsed_ms)
            self._metrics.inc_error(ctx, "timeout")
            self._logger.log_attempt(ctx, "timeout", elapsed_ms, error_reason="timeout")
            raise ToolTimeoutError(
                f"Tool {ctx.tool_name} timed out after {config.hard_timeout_ms}ms"
            )

        try:
            result = call.result()
        except ToolCancelledError:
            self._metrics.record_latency(ctx, "cancelled", elapsed_ms)
            self._logger.log_attempt(ctx, "cancelled", elapsed_ms, error_reason="cancelled")
            raise
        except Exception as e:
            self._metrics.record_latency(ctx, "error", elapsed_ms)
            self._metrics.inc_error(ctx, "execution_error")
            self._logger.log_attempt(ctx, "error", elapsed_ms, error_reason=type(e).__name__)
            raise ToolExecutionError(f"Tool {ctx.tool_name} failed: {e}") from e

        self._metrics.record_latency(ctx, "success", elapsed_ms)
        self._logger.log_attempt(ctx, "success", elapsed_ms)

        if cache is not None and cache_key is not None:
            cache.set(cache_key, result, config.cache_ttl_seconds, now)

        return result
