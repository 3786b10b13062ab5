"""OpenCage geocoder provider.

Uses the OpenCage Geocoding API (https://opencagedata.com/api) for
address-to-coordinate resolution with locality components.  Requires an API key.
"""

import httpx
from loguru import logger

from broadband_api.lib.geocoder.base import BaseGeocoder, GeocodingProviderError, Location
from broadband_api.lib.geocoder.states import to_state_code
from broadband_api.lib.transport import http_client

OPENCAGE_API_URL = "https://api.opencagedata.com/geocode/v1/json"
DEFAULT_TIMEOUT = 10.0

# Component keys that may carry the locality name, in preference order
_LOCALITY_KEYS = ("city", "town", "village", "hamlet", "municipality")


class OpenCageGeocoder(BaseGeocoder):
    """OpenCage Data geocoder provider."""

    def __init__(
        self,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def provider_name(self) -> str:
        return "opencage"

    @property
    def requires_api_key(self) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def geocode(self, address: str) -> Location | None:
        """Geocode an address using the OpenCage API.

        Args:
            address: Free-text address string.

        Returns:
            Location or None if no match found.

        Raises:
            GeocodingProviderError: On transport or service errors.
        """
        params: dict[str, str | int] = {
            "q": address,
            "key": self._api_key,
            "limit": 1,
            "no_annotations": 1,
            "countrycode": "us",
        }

        try:
            async with http_client(self._client, self._timeout) as client:
                response = await client.get(OPENCAGE_API_URL, params=params, timeout=self._timeout)
                response.raise_for_status()

            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("OpenCage geocoder timeout for address (redacted)")
            raise GeocodingProviderError("opencage", "Geocoding request timed out") from e
        except httpx.HTTPStatusError as e:
            # 401/402/403 are key and quota problems; all are provider failures
            logger.warning(f"OpenCage geocoder HTTP error {e.response.status_code}")
            raise GeocodingProviderError(
                "opencage",
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("OpenCage geocoder connection error")
            raise GeocodingProviderError("opencage", "Connection to geocoding provider failed") from e
        except ValueError as e:
            raise GeocodingProviderError("opencage", f"Invalid JSON response: {e}") from e

        return self._parse_response(data, address)

    def _parse_response(self, data: dict, address: str) -> Location | None:
        """Parse OpenCage API response into a Location.

        Args:
            data: Raw JSON response from OpenCage.
            address: The submitted address, used when no formatted form is returned.

        Returns:
            Location or None if no match found.
        """
        results = (data.get("results") if isinstance(data, dict) else None) or []
        if not results:
            return None

        best = results[0]
        try:
            geometry = best["geometry"]
            lat = float(geometry["lat"])
            lng = float(geometry["lng"])
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to parse OpenCage response: {e}")
            raise GeocodingProviderError("opencage", f"Failed to parse response: {e}") from e

        components = best.get("components") or {}
        city = next((components[key] for key in _LOCALITY_KEYS if components.get(key)), "")
        state = components.get("state_code") or to_state_code(components.get("state", ""))

        try:
            return Location(
                address=best.get("formatted") or address,
                city=city,
                state=state.upper(),
                zip=components.get("postcode", ""),
                latitude=lat,
                longitude=lng,
                source=self.provider_name,
            )
        except ValueError as e:
            raise GeocodingProviderError("opencage", f"Out-of-range coordinates: {e}") from e
