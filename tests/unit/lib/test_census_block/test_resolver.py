"""Unit tests for the census block resolver."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from broadband_api.lib.census_block import BlockNotFoundError, CensusBlock, CensusBlockResolver
from broadband_api.lib.census_block.resolver import CENSUS_GEOGRAPHIES_URL
from broadband_api.lib.geocoder import Location

BLOCK_RESPONSE = {
    "result": {
        "input": {"location": {"x": -77.0365, "y": 38.8977}},
        "geographies": {
            "2020 Census Blocks": [
                {
                    "GEOID": "110010062021034",
                    "STATE": "11",
                    "COUNTY": "001",
                    "TRACT": "006202",
                    "BLOCK": "1034",
                    "INTPTLAT": "+38.8976763",
                    "INTPTLON": "-077.0365298",
                    "NAME": "Block 1034",
                    "OID": 210403997036012,
                }
            ]
        },
    }
}

WHITE_HOUSE = Location(
    address="1600 Pennsylvania Ave NW, Washington, DC 20500",
    city="Washington",
    state="DC",
    zip="20500",
    latitude=38.8977,
    longitude=-77.0365,
    source="census",
)


class TestResolveCoordinates:
    """Tests for resolve_coordinates() parsing and request shape."""

    @pytest.mark.asyncio
    async def test_parses_first_block(self, mock_http) -> None:
        client, transport = mock_http(lambda request: httpx.Response(200, json=BLOCK_RESPONSE))
        block = await CensusBlockResolver(client=client).resolve_coordinates(38.8977, -77.0365)

        assert block == CensusBlock(
            geoid="110010062021034",
            state="11",
            county="001",
            tract="006202",
            block="1034",
            latitude=38.8976763,
            longitude=-77.0365298,
            name="Block 1034",
        )
        params = transport.requests[0].url.params
        assert str(transport.requests[0].url).startswith(CENSUS_GEOGRAPHIES_URL)
        assert params["x"] == "-77.0365"
        assert params["y"] == "38.8977"
        assert params["layers"] == "2020 Census Blocks"
        assert params["vintage"] == "Current_Current"
        assert params["format"] == "json"

    @pytest.mark.asyncio
    async def test_zero_blocks_raises(self, mock_http) -> None:
        """Coordinates outside covered territory have no block."""
        empty = {"result": {"geographies": {"2020 Census Blocks": []}}}
        client, _ = mock_http(lambda request: httpx.Response(200, json=empty))
        with pytest.raises(BlockNotFoundError, match="No census block"):
            await CensusBlockResolver(client=client).resolve_coordinates(0.0, 0.0)

    @pytest.mark.asyncio
    async def test_missing_layer_raises(self, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(200, json={"result": {"geographies": {}}}))
        with pytest.raises(BlockNotFoundError):
            await CensusBlockResolver(client=client).resolve_coordinates(38.9, -77.0)

    @pytest.mark.asyncio
    async def test_http_error_raises_with_status(self, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(500))
        with pytest.raises(BlockNotFoundError) as exc_info:
            await CensusBlockResolver(client=client).resolve_coordinates(38.9, -77.0)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_timeout_raises(self, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        client, _ = mock_http(handler)
        with pytest.raises(BlockNotFoundError, match="timed out"):
            await CensusBlockResolver(client=client).resolve_coordinates(38.9, -77.0)

    @pytest.mark.asyncio
    async def test_malformed_payload_raises(self, mock_http) -> None:
        bad = {"result": {"geographies": {"2020 Census Blocks": [{"GEOID": "1"}]}}}
        client, _ = mock_http(lambda request: httpx.Response(200, json=bad))
        with pytest.raises(BlockNotFoundError, match="Malformed"):
            await CensusBlockResolver(client=client).resolve_coordinates(38.9, -77.0)


class TestResolveBlock:
    """Tests for the Location and address entry points."""

    @pytest.mark.asyncio
    async def test_resolve_block_uses_location_coordinates(self, mock_http) -> None:
        client, transport = mock_http(lambda request: httpx.Response(200, json=BLOCK_RESPONSE))
        block = await CensusBlockResolver(client=client).resolve_block(WHITE_HOUSE)

        assert block.geoid == "110010062021034"
        assert transport.requests[0].url.params["y"] == "38.8977"

    @pytest.mark.asyncio
    async def test_resolve_block_for_address_geocodes_first(self, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(200, json=BLOCK_RESPONSE))
        geocoder = MagicMock()
        geocoder.geocode = AsyncMock(return_value=WHITE_HOUSE)

        block = await CensusBlockResolver(geocoder=geocoder, client=client).resolve_block_for_address(
            "1600 Pennsylvania Ave, Washington DC"
        )

        geocoder.geocode.assert_awaited_once_with("1600 Pennsylvania Ave, Washington DC")
        assert block.geoid == "110010062021034"

    @pytest.mark.asyncio
    async def test_resolve_block_for_address_requires_geocoder(self) -> None:
        with pytest.raises(RuntimeError, match="without a geocoder"):
            await CensusBlockResolver().resolve_block_for_address("anything")
