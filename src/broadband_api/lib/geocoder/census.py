"""US Census Bureau geocoder provider.

Uses the Census Geocoding API (https://geocoding.geo.census.gov/geocoder/)
for address-to-coordinate resolution.
"""

import httpx
from loguru import logger

from broadband_api.lib.geocoder.base import BaseGeocoder, GeocodingProviderError, Location
from broadband_api.lib.transport import http_client

CENSUS_API_URL = "https://geocoding.geo.census.gov/geocoder/locations/onelineaddress"
DEFAULT_TIMEOUT = 10.0


class CensusGeocoder(BaseGeocoder):
    """US Census Bureau one-line address geocoder."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client

    @property
    def provider_name(self) -> str:
        return "census"

    async def geocode(self, address: str) -> Location | None:
        """Geocode an address using the Census Bureau API.

        Args:
            address: Free-text address string.

        Returns:
            Location or None if the provider responded but found no match.

        Raises:
            GeocodingProviderError: On transport or service errors (timeout, HTTP error, connection).
        """
        params = {
            "address": address,
            "benchmark": "Public_AR_Current",
            "format": "json",
        }

        try:
            async with http_client(self._client, self._timeout) as client:
                response = await client.get(CENSUS_API_URL, params=params, timeout=self._timeout)
                response.raise_for_status()

            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Census geocoder timeout for address (redacted)")
            raise GeocodingProviderError("census", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Census geocoder HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                "census", f"Provider returned HTTP {e.response.status_code}", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Census geocoder connection error")
            raise GeocodingProviderError("census", "Connection to geocoding provider failed") from e
        except ValueError as e:
            logger.warning("Census geocoder returned a non-JSON body")
            raise GeocodingProviderError("census", f"Invalid JSON response: {e}") from e

        return self._parse_response(data, address)

    def _parse_response(self, data: dict, address: str) -> Location | None:
        """Parse Census API response into a Location.

        Args:
            data: Raw JSON response from Census API.
            address: The address that was submitted (used when no formatted form is returned).

        Returns:
            Location or None if no match found.
        """
        try:
            matches = data.get("result", {}).get("addressMatches", [])
            if not matches:
                return None

            best = matches[0]
            coords = best.get("coordinates", {})
            lon = coords.get("x")
            lat = coords.get("y")
            if lat is None or lon is None:
                return None

            components = best.get("addressComponents") or {}
            return Location(
                address=best.get("matchedAddress") or address,
                city=components.get("city", ""),
                state=components.get("state", ""),
                zip=components.get("zip", ""),
                latitude=float(lat),
                longitude=float(lon),
                source=self.provider_name,
            )
        except (AttributeError, KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse Census geocoder response: {e}")
            raise GeocodingProviderError("census", f"Failed to parse response: {e}") from e
