"""Broadband library — provider sources, normalization, caching, and bulk import parsing.

Public API:
    - RawProviderRecord / SourceError / BaseProviderSource: Source interface
    - NormalizedProvider / BroadbandResult: Pipeline result types
    - MirrorDatabaseSource, OpenDataSource, BroadbandMapSource, ArcGISSource: Sources
    - normalize: Collapse raw records into one entry per provider
    - BroadbandCache / CacheError / CacheStats: GEOID-keyed result cache
    - regional_approximation: Fallback result when no source has data
    - get_source / get_configured_sources: Source factory/registry
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from broadband_api.lib.broadband.arcgis import ArcGISSource
from broadband_api.lib.broadband.base import BaseProviderSource, RawProviderRecord, SourceError
from broadband_api.lib.broadband.broadband_map import BroadbandMapSource
from broadband_api.lib.broadband.cache import DEFAULT_TTL, BroadbandCache, CacheError, CacheStats
from broadband_api.lib.broadband.fallback import (
    REGIONAL_MESSAGE,
    REGIONAL_SOURCE,
    is_regional_approximation,
    regional_approximation,
)
from broadband_api.lib.broadband.mirror import MirrorDatabaseSource
from broadband_api.lib.broadband.normalize import normalize
from broadband_api.lib.broadband.opendata import OpenDataSource
from broadband_api.lib.broadband.results import BroadbandResult, NormalizedProvider
from broadband_api.lib.broadband.technology import TechnologyCodeSystem, normalize_code, technology_name

if TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from broadband_api.core.config import Settings

_SOURCES: dict[str, type[BaseProviderSource]] = {
    "mirror": MirrorDatabaseSource,
    "opendata": OpenDataSource,
    "broadband_map": BroadbandMapSource,
    "arcgis": ArcGISSource,
}


def get_available_sources() -> list[str]:
    """Return the names of all registered provider sources."""
    return sorted(_SOURCES.keys())


def get_source(name: str, **kwargs: Any) -> BaseProviderSource:
    """Get a provider source instance by name.

    Args:
        name: Source name (e.g., "opendata").
        **kwargs: Arguments forwarded to the source constructor.

    Raises:
        ValueError: If the source is not registered.
    """
    cls = _SOURCES.get(name)
    if cls is None:
        msg = f"Unknown broadband source: {name!r}. Available: {list(_SOURCES.keys())}"
        raise ValueError(msg)
    return cls(**kwargs)


def get_configured_sources(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[BaseProviderSource]:
    """Build the configured provider sources in priority order.

    Unknown and duplicate names are ignored.  The mirror source is only
    included when a session factory is available; sources missing
    credentials are skipped.

    Args:
        settings: Application settings.
        session_factory: Session factory for the mirrored database.
        client: Optional shared HTTP client for the remote sources.
    """
    source_kwargs: dict[str, dict[str, Any]] = {
        "opendata": {"timeout": settings.broadband_opendata_timeout, "client": client},
        "broadband_map": {
            "username": settings.broadband_map_username or "",
            "api_key": settings.broadband_map_api_key or "",
            "timeout": settings.broadband_map_timeout,
            "client": client,
        },
        "arcgis": {"timeout": settings.broadband_arcgis_timeout, "client": client},
    }
    if session_factory is not None:
        source_kwargs["mirror"] = {
            "session_factory": session_factory,
            "radius_degrees": settings.broadband_mirror_radius_degrees,
            "limit": settings.broadband_mirror_limit,
            "timeout": settings.broadband_mirror_timeout,
        }

    sources: list[BaseProviderSource] = []
    seen: set[str] = set()
    for name in settings.broadband_source_order_list:
        if name in seen or name not in source_kwargs:
            continue
        seen.add(name)
        source = get_source(name, **source_kwargs[name])
        if source.is_configured:
            sources.append(source)
        else:
            logger.debug(f"Broadband source {name} is not configured; skipping")

    return sources


__all__ = [
    "DEFAULT_TTL",
    "REGIONAL_MESSAGE",
    "REGIONAL_SOURCE",
    "ArcGISSource",
    "BaseProviderSource",
    "BroadbandCache",
    "BroadbandMapSource",
    "BroadbandResult",
    "CacheError",
    "CacheStats",
    "MirrorDatabaseSource",
    "NormalizedProvider",
    "OpenDataSource",
    "RawProviderRecord",
    "SourceError",
    "TechnologyCodeSystem",
    "get_available_sources",
    "get_configured_sources",
    "get_source",
    "is_regional_approximation",
    "normalize",
    "normalize_code",
    "regional_approximation",
    "technology_name",
]
