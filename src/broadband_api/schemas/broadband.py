"""Pydantic v2 schemas for broadband lookup endpoints."""

from datetime import datetime

from pydantic import BaseModel

from broadband_api.lib.broadband.results import BroadbandResult, NormalizedProvider
from broadband_api.lib.census_block import CensusBlock


class LocationResponse(BaseModel):
    """Where the pipeline placed the target."""

    model_config = {"from_attributes": True}

    address: str
    city: str
    state: str
    zip: str
    latitude: float
    longitude: float
    source: str


class CensusBlockResponse(BaseModel):
    """Census block containing a location."""

    model_config = {"from_attributes": True}

    geoid: str
    state: str
    county: str
    tract: str
    block: str
    latitude: float
    longitude: float
    name: str


class LookupMetadata(BaseModel):
    """How a lookup was resolved."""

    state: str
    source: str | None = None
    geoid: str | None = None
    is_regional_approximation: bool = False
    location: LocationResponse
    census_block: CensusBlockResponse | None = None


class BroadbandLookupResponse(BaseModel):
    """Response for a broadband lookup."""

    result: BroadbandResult
    metadata: LookupMetadata


class CensusBlockLookupResponse(BaseModel):
    """Response for a census block lookup."""

    location: LocationResponse
    census_block: CensusBlockResponse


class CacheStatsResponse(BaseModel):
    """Response for broadband cache statistics."""

    total_entries: int
    live_entries: int
    expired_entries: int
    oldest_fetched_at: datetime | None = None
    newest_fetched_at: datetime | None = None


def census_block_response(block: CensusBlock) -> CensusBlockResponse:
    return CensusBlockResponse.model_validate(block.model_dump())


__all__ = [
    "BroadbandLookupResponse",
    "BroadbandResult",
    "CacheStatsResponse",
    "CensusBlockLookupResponse",
    "CensusBlockResponse",
    "LocationResponse",
    "LookupMetadata",
    "NormalizedProvider",
    "census_block_response",
]
