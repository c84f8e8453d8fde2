"""Provenance helpers for collaborator adapters."""

from datetime import UTC, datetime

from voyage.app.models.common import Provenance


def provenance_for_fixture(source: str, ref_id: str | None = None) -> Provenance:
    """Create provenance for fixture-backed results.

    Args:
        source: Source identifier (e.g., "fixtures.ports")
        ref_id: Optional reference ID (e.g., a port code)

    Returns:
        Provenance with source=tool-specific string, fetched_at=now(UTC), cache_hit=False
    """
    return Provenance(
        source=f"tool.{source}",
        ref_id=f"{source}/{ref_id}" if ref_id else source,
        source_url=f"fixtures://{source}/{ref_id}" if ref_id else f"fixtures://{source}",
        fetched_at=datetime.now(UTC),
        cache_hit=False,
    )


def provenance_for_http(source: str, url: str, cache_hit: bool = False) -> Provenance:
    """Create provenance for HTTP-backed results.

    Args:
        source: Source identifier (e.g., "weather.open_meteo_marine")
        url: Full URL of the HTTP request
        cache_hit: Whether result came from cache

    Returns:
        Provenance with source=tool-specific string, fetched_at=now(UTC)
    """
    return Provenance(
        source=f"tool.{source}",
        ref_id=source,
        source_url=url,
        fetched_at=datetime.now(UTC),
        cache_hit=cache_hit,
    )


def provenance_for_engine(source: str, ref_id: str | None = None) -> Provenance:
    """Create provenance for locally computed results (route engine, zone checks)."""
    return Provenance(
        source=f"tool.{source}",
        ref_id=ref_id,
        fetched_at=datetime.now(UTC),
        cache_hit=False,
    )
