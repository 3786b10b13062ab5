"""Broadband service — resolves an address or coordinate pair to a provider list.

Resolution runs a fixed ladder: geocode, census block, cache, provider
sources in priority order, and finally the regional approximation.  Only
invalid input is raised to callers; every other failure is absorbed by
the next rung.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from broadband_api.lib.broadband import (
    DEFAULT_TTL,
    BaseProviderSource,
    BroadbandCache,
    BroadbandResult,
    RawProviderRecord,
    SourceError,
    get_configured_sources,
    normalize,
    regional_approximation,
)
from broadband_api.lib.census_block import BlockNotFoundError, CensusBlock, CensusBlockResolver
from broadband_api.lib.geocoder import GeocodeError, Geocoder, Location, build_geocoder

if TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from broadband_api.core.config import Settings

RESULT_MESSAGE = "Providers available at this location according to FCC data"
COORDINATES_SOURCE = "coordinates"
CACHE_SOURCE = "cache"
FALLBACK_SOURCE = "regional_approximation"


class InvalidInputError(ValueError):
    """Raised for an empty address or unusable coordinates, before any network call."""


class ResolutionState(StrEnum):
    """Pipeline states; a Resolution records the terminal one."""

    START = "start"
    GEOCODED = "geocoded"
    BLOCK_RESOLVED = "block_resolved"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    SOURCE_QUERIED = "source_queried"
    NORMALIZED = "normalized"
    ALL_SOURCES_FAILED = "all_sources_failed"


@dataclass(frozen=True)
class Coordinates:
    """A validated latitude/longitude pair."""

    latitude: float
    longitude: float

    @classmethod
    def parse(cls, latitude: object, longitude: object) -> Coordinates:
        """Build Coordinates from loosely typed values.

        Raises:
            InvalidInputError: If either value is non-numeric, not finite, or out of range.
        """
        lat = _to_float(latitude, "latitude")
        lon = _to_float(longitude, "longitude")
        if not -90 <= lat <= 90:
            msg = f"latitude must be between -90 and 90, got {lat}"
            raise InvalidInputError(msg)
        if not -180 <= lon <= 180:
            msg = f"longitude must be between -180 and 180, got {lon}"
            raise InvalidInputError(msg)
        return cls(latitude=lat, longitude=lon)


def _to_float(value: object, name: str) -> float:
    if isinstance(value, bool):
        msg = f"{name} must be numeric"
        raise InvalidInputError(msg)
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        msg = f"{name} must be numeric, got {value!r}"
        raise InvalidInputError(msg) from None
    if not math.isfinite(number):
        msg = f"{name} must be finite, got {value!r}"
        raise InvalidInputError(msg)
    return number


ResolutionTarget = str | Coordinates | tuple[float, float]


def build_target(
    address: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> ResolutionTarget:
    """Choose the resolution target from optional request parameters.

    Exactly one of ``address`` or the ``latitude``/``longitude`` pair must be given.

    Raises:
        InvalidInputError: If neither or both are given, or only one coordinate is.
    """
    has_coordinates = latitude is not None or longitude is not None
    if address is not None and has_coordinates:
        msg = "Provide either an address or lat/lng coordinates, not both"
        raise InvalidInputError(msg)
    if has_coordinates:
        if latitude is None or longitude is None:
            msg = "Both lat and lng are required"
            raise InvalidInputError(msg)
        return Coordinates.parse(latitude, longitude)
    if address is None:
        msg = "An address or lat/lng coordinates are required"
        raise InvalidInputError(msg)
    return address


@dataclass(frozen=True)
class Resolution:
    """Outcome of one resolution: the result plus how it was reached."""

    result: BroadbandResult
    state: ResolutionState
    location: Location
    census_block: CensusBlock | None = None
    source_name: str | None = None

    @property
    def is_regional_approximation(self) -> bool:
        return self.state == ResolutionState.ALL_SOURCES_FAILED


@dataclass(frozen=True)
class PropertyLocation:
    """Location fields of a stored property."""

    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class PropertyLocator(Protocol):
    """Read access to the property store."""

    async def get_property_location(self, property_id: str) -> PropertyLocation | None: ...


class BroadbandResolver:
    """Resolution orchestrator.

    Args:
        geocoder: Cascading geocoder for address input.
        block_resolver: Census block resolver.
        cache: GEOID-keyed result cache.
        sources: Provider sources in priority order.
        cache_ttl: TTL for cache writes.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        block_resolver: CensusBlockResolver,
        cache: BroadbandCache,
        sources: Sequence[BaseProviderSource],
        cache_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._geocoder = geocoder
        self._block_resolver = block_resolver
        self._cache = cache
        self._sources = list(sources)
        self._cache_ttl = cache_ttl

    @property
    def cache(self) -> BroadbandCache:
        return self._cache

    @property
    def sources(self) -> list[BaseProviderSource]:
        return list(self._sources)

    async def resolve_broadband(self, target: ResolutionTarget) -> BroadbandResult:
        """Resolve a target to a BroadbandResult.

        Raises:
            InvalidInputError: If the target is empty or malformed.
        """
        resolution = await self.resolve(target)
        return resolution.result

    async def resolve(self, target: ResolutionTarget) -> Resolution:
        """Run the full pipeline and report the terminal state.

        Args:
            target: Non-empty address, Coordinates, or a ``(lat, lon)`` pair.

        Raises:
            InvalidInputError: If the target is empty or malformed.
        """
        coordinates = _coerce_target(target)
        location = await self._locate(target, coordinates)
        state = ResolutionState.GEOCODED

        block = await self._find_block(location)
        geoid = block.geoid if block is not None else None
        if block is not None:
            state = ResolutionState.BLOCK_RESOLVED
            logger.debug(f"Resolution state {state} (block={geoid})")
            cached = await self._cache.get(block.geoid)
            if cached is not None:
                logger.info(f"Cache hit for block {block.geoid}")
                return Resolution(cached, ResolutionState.CACHE_HIT, location, block, CACHE_SOURCE)
        state = ResolutionState.CACHE_MISS
        logger.debug(f"Resolution state {state} (block={geoid or 'none'})")

        for source in self._sources:
            records = await self._query_source(source, location, geoid)
            if records is None:
                continue
            state = ResolutionState.SOURCE_QUERIED
            if not records:
                logger.debug(f"Source {source.source_name} returned no records")
                continue

            result = BroadbandResult(
                providers=normalize(records),
                message=RESULT_MESSAGE,
                source=source.source_label,
                error=False,
                geoid=geoid,
            )
            logger.info(
                f"Resolved {len(result.providers)} providers from {source.source_name} (block={geoid or 'none'})"
            )
            if geoid is not None:
                await self._cache.put(geoid, result, self._cache_ttl)
            return Resolution(result, ResolutionState.NORMALIZED, location, block, source.source_name)

        logger.info(f"No source returned data after {state}; using regional approximation")
        return Resolution(
            regional_approximation(geoid),
            ResolutionState.ALL_SOURCES_FAILED,
            location,
            block,
            FALLBACK_SOURCE,
        )

    async def resolve_for_property(self, store: PropertyLocator, property_id: str) -> Resolution:
        """Resolve broadband data for a stored property.

        Stored coordinates bypass geocoding; a property without them is
        resolved by its address.

        Raises:
            InvalidInputError: If the property does not exist or has no usable location.
        """
        prop = await store.get_property_location(property_id)
        if prop is None:
            msg = f"Property {property_id} not found"
            raise InvalidInputError(msg)
        if prop.latitude is not None and prop.longitude is not None:
            return await self.resolve(Coordinates.parse(prop.latitude, prop.longitude))
        if prop.address:
            return await self.resolve(prop.address)
        msg = f"Property {property_id} has neither coordinates nor an address"
        raise InvalidInputError(msg)

    async def find_census_block(self, target: ResolutionTarget) -> tuple[Location, CensusBlock]:
        """Locate the census block for a target without querying providers.

        Raises:
            InvalidInputError: If the target is empty or malformed.
            BlockNotFoundError: If no block contains the location.
        """
        coordinates = _coerce_target(target)
        location = await self._locate(target, coordinates)
        return location, await self._block_resolver.resolve_block(location)

    async def _locate(self, target: ResolutionTarget, coordinates: Coordinates | None) -> Location:
        if coordinates is not None:
            return Location(
                address="",
                city="",
                state="",
                zip="",
                latitude=coordinates.latitude,
                longitude=coordinates.longitude,
                source=COORDINATES_SOURCE,
            )
        try:
            location = await self._geocoder.geocode(str(target))
        except GeocodeError as e:
            raise InvalidInputError(str(e)) from e
        logger.debug(f"Geocoded address via {location.source}")
        return location

    async def _find_block(self, location: Location) -> CensusBlock | None:
        try:
            return await self._block_resolver.resolve_block(location)
        except BlockNotFoundError as e:
            logger.info(f"No census block ({e.message}); querying sources by coordinates")
            return None

    async def _query_source(
        self,
        source: BaseProviderSource,
        location: Location,
        geoid: str | None,
    ) -> list[RawProviderRecord] | None:
        """Query one source, by block when possible.  Returns None if the source failed or cannot answer."""
        try:
            if geoid is not None and source.supports_block:
                return await source.fetch_by_block(geoid)
            if source.supports_coordinates:
                return await source.fetch_by_coordinates(location.latitude, location.longitude)
        except SourceError as e:
            logger.warning(f"Source {source.source_name} failed, trying next: {e.message}")
            return None
        except Exception:
            logger.exception(f"Unexpected error from source {source.source_name}, trying next")
            return None
        logger.debug(f"Source {source.source_name} cannot answer without a census block; skipping")
        return None


def _coerce_target(target: object) -> Coordinates | None:
    """Validate a target.  Returns Coordinates for coordinate input, None for an address."""
    if isinstance(target, Coordinates):
        return target
    if isinstance(target, str):
        if not target.strip():
            msg = "Address must not be empty"
            raise InvalidInputError(msg)
        return None
    if isinstance(target, tuple | list) and len(target) == 2:
        return Coordinates.parse(target[0], target[1])
    msg = f"Unsupported resolution target: {type(target).__name__}"
    raise InvalidInputError(msg)


def build_broadband_resolver(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    client: httpx.AsyncClient | None = None,
) -> BroadbandResolver:
    """Construct the resolver and its collaborators from settings.

    Args:
        settings: Application settings.
        session_factory: Session factory for the cache and mirrored tables.
        client: Optional shared HTTP client for all outbound calls.
    """
    geocoder = build_geocoder(settings, client=client)
    block_resolver = CensusBlockResolver(geocoder=geocoder, timeout=settings.census_block_timeout, client=client)
    cache_ttl = timedelta(hours=settings.broadband_cache_ttl_hours)
    cache = BroadbandCache(session_factory, default_ttl=cache_ttl)
    sources = get_configured_sources(settings, session_factory=session_factory, client=client)

    geocoder_names = [g.provider_name for g in geocoder.providers] + ["synthetic"]
    source_names = [s.source_name for s in sources]
    logger.info(f"Broadband resolver configured: geocoders={geocoder_names}, sources={source_names}")
    return BroadbandResolver(geocoder, block_resolver, cache, sources, cache_ttl=cache_ttl)
