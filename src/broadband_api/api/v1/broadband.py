"""Broadband API endpoints — provider lookup, census block lookup, and cache statistics."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from broadband_api.core.dependencies import get_broadband_resolver
from broadband_api.lib.census_block import BlockNotFoundError
from broadband_api.schemas.broadband import (
    BroadbandLookupResponse,
    CacheStatsResponse,
    CensusBlockLookupResponse,
    LocationResponse,
    LookupMetadata,
    census_block_response,
)
from broadband_api.services.broadband_service import (
    BroadbandResolver,
    InvalidInputError,
    ResolutionTarget,
    build_target,
)

broadband_router = APIRouter(prefix="/broadband", tags=["broadband"])

Resolver = Annotated[BroadbandResolver, Depends(get_broadband_resolver)]


def _target(address: str | None, lat: float | None, lng: float | None) -> ResolutionTarget:
    try:
        return build_target(address=address, latitude=lat, longitude=lng)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@broadband_router.get("", response_model=BroadbandLookupResponse)
async def lookup_broadband(
    resolver: Resolver,
    address: str | None = Query(None, max_length=500, description="Free-text street address"),  # noqa: B008
    lat: float | None = Query(None, ge=-90, le=90, description="Latitude (with lng)"),  # noqa: B008
    lng: float | None = Query(None, ge=-180, le=180, description="Longitude (with lat)"),  # noqa: B008
) -> BroadbandLookupResponse:
    """Resolve the broadband providers available at an address or coordinate pair.

    When no address-specific data exists the response carries the regional
    approximation, flagged by ``metadata.is_regional_approximation``.
    """
    target = _target(address, lat, lng)
    try:
        resolution = await resolver.resolve(target)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e

    block = resolution.census_block
    return BroadbandLookupResponse(
        result=resolution.result,
        metadata=LookupMetadata(
            state=resolution.state,
            source=resolution.source_name,
            geoid=block.geoid if block is not None else None,
            is_regional_approximation=resolution.is_regional_approximation,
            location=LocationResponse.model_validate(resolution.location),
            census_block=census_block_response(block) if block is not None else None,
        ),
    )


@broadband_router.get("/census-block", response_model=CensusBlockLookupResponse)
async def lookup_census_block(
    resolver: Resolver,
    address: str | None = Query(None, max_length=500, description="Free-text street address"),  # noqa: B008
    lat: float | None = Query(None, ge=-90, le=90, description="Latitude (with lng)"),  # noqa: B008
    lng: float | None = Query(None, ge=-180, le=180, description="Longitude (with lat)"),  # noqa: B008
) -> CensusBlockLookupResponse:
    """Find the 2020 census block containing an address or coordinate pair."""
    target = _target(address, lat, lng)
    try:
        location, block = await resolver.find_census_block(target)
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except BlockNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e

    return CensusBlockLookupResponse(
        location=LocationResponse.model_validate(location),
        census_block=census_block_response(block),
    )


@broadband_router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(resolver: Resolver) -> CacheStatsResponse:
    """Report broadband cache entry counts."""
    stats = await resolver.cache.get_stats()
    return CacheStatsResponse.model_validate(stats.model_dump())
