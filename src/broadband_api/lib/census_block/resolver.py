"""Census Block Resolver.

Uses the Census Geocoding "geographies" endpoint
(https://geocoding.geo.census.gov/geocoder/geographies/coordinates) to map a
coordinate pair to its 2020 census block.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from broadband_api.lib.transport import http_client

if TYPE_CHECKING:
    from broadband_api.lib.geocoder import Geocoder, Location

CENSUS_GEOGRAPHIES_URL = "https://geocoding.geo.census.gov/geocoder/geographies/coordinates"
BLOCK_LAYER = "2020 Census Blocks"
DEFAULT_TIMEOUT = 10.0


class CensusBlock(BaseModel):
    """A census block and its representative interior point."""

    model_config = ConfigDict(frozen=True)

    geoid: str
    state: str
    county: str
    tract: str
    block: str
    latitude: float
    longitude: float
    name: str


class BlockNotFoundError(Exception):
    """Raised when no census block can be resolved for a coordinate pair.

    Covers zero block matches, non-2xx responses, transport failures, and
    malformed payloads.

    Args:
        message: Human-readable error description.
        status_code: Optional HTTP status code from the census service.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class _BlockGeography(BaseModel):
    GEOID: str
    STATE: str
    COUNTY: str
    TRACT: str
    BLOCK: str
    INTPTLAT: float
    INTPTLON: float
    NAME: str = ""


class _GeographiesResult(BaseModel):
    geographies: dict[str, list[_BlockGeography]] = Field(default_factory=dict)


class _GeographiesResponse(BaseModel):
    result: _GeographiesResult = Field(default_factory=_GeographiesResult)


class CensusBlockResolver:
    """Resolve coordinates (or addresses, via a Geocoder) to a CensusBlock.

    Args:
        geocoder: Geocoder used by resolve_block_for_address().
        timeout: Per-request timeout in seconds.
        client: Optional shared HTTP client.
    """

    def __init__(
        self,
        geocoder: Geocoder | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._geocoder = geocoder
        self._timeout = timeout
        self._client = client

    async def resolve_block(self, location: Location) -> CensusBlock:
        """Resolve the census block containing a location's coordinates.

        Raises:
            BlockNotFoundError: If the service fails or returns no block.
        """
        return await self.resolve_coordinates(location.latitude, location.longitude)

    async def resolve_block_for_address(self, address: str) -> CensusBlock:
        """Geocode an address, then resolve its census block.

        Raises:
            GeocodeError: If the address is empty.
            BlockNotFoundError: If the service fails or returns no block.
            RuntimeError: If the resolver was built without a geocoder.
        """
        if self._geocoder is None:
            msg = "CensusBlockResolver was created without a geocoder"
            raise RuntimeError(msg)
        location = await self._geocoder.geocode(address)
        return await self.resolve_block(location)

    async def resolve_coordinates(self, latitude: float, longitude: float) -> CensusBlock:
        """Resolve the census block for a raw coordinate pair.

        Raises:
            BlockNotFoundError: If the service fails or returns no block.
        """
        params = {
            "x": longitude,
            "y": latitude,
            "benchmark": "Public_AR_Current",
            "vintage": "Current_Current",
            "layers": BLOCK_LAYER,
            "format": "json",
        }
        logger.debug(f"Resolving census block for lat={latitude}, lng={longitude}")

        try:
            async with http_client(self._client, self._timeout) as client:
                response = await client.get(CENSUS_GEOGRAPHIES_URL, params=params, timeout=self._timeout)
                response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Census block lookup timed out")
            raise BlockNotFoundError("Census block lookup timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Census block lookup HTTP error {e.response.status_code}")
            raise BlockNotFoundError(
                f"Census API returned HTTP {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Census block lookup connection error")
            raise BlockNotFoundError("Connection to census service failed") from e
        except ValueError as e:
            raise BlockNotFoundError(f"Invalid JSON response: {e}") from e

        return self._parse_response(data, latitude, longitude)

    def _parse_response(self, data: object, latitude: float, longitude: float) -> CensusBlock:
        """Parse the first block-layer match from a geographies response."""
        try:
            parsed = _GeographiesResponse.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Failed to parse census block response: {e.error_count()} errors")
            raise BlockNotFoundError("Malformed census block response") from e

        blocks = parsed.result.geographies.get(BLOCK_LAYER) or []
        if not blocks:
            logger.warning(f"No census block found for lat={latitude}, lng={longitude}")
            raise BlockNotFoundError("No census block found for these coordinates")

        block = blocks[0]
        logger.debug(f"Found census block {block.GEOID}")
        return CensusBlock(
            geoid=block.GEOID,
            state=block.STATE,
            county=block.COUNTY,
            tract=block.TRACT,
            block=block.BLOCK,
            latitude=block.INTPTLAT,
            longitude=block.INTPTLON,
            name=block.NAME,
        )
