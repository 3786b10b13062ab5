"""Cascading geocoder: live providers in order, then the deterministic synthetic fallback."""

from collections.abc import Sequence

from loguru import logger

from broadband_api.lib.geocoder.base import BaseGeocoder, GeocodeError, GeocodingProviderError, Location
from broadband_api.lib.geocoder.synthetic import SyntheticGeocoder


class Geocoder:
    """Resolve free-text addresses to a Location without ever failing on the network.

    Each provider is tried in order.  A provider error or an empty answer moves
    on to the next provider; when all are exhausted the synthetic fallback
    answers.  Only empty input raises.

    Args:
        providers: Live geocoders in fallback order (may be empty).
    """

    def __init__(self, providers: Sequence[BaseGeocoder] = ()) -> None:
        self._providers = list(providers)
        self._fallback = SyntheticGeocoder()

    @property
    def providers(self) -> list[BaseGeocoder]:
        return list(self._providers)

    async def geocode(self, address: str) -> Location:
        """Geocode an address.

        Args:
            address: Non-empty free-text address.

        Returns:
            The first provider's match, or the synthetic Location.

        Raises:
            GeocodeError: If the address is empty or whitespace-only.
        """
        cleaned = address.strip() if address else ""
        if not cleaned:
            msg = "Address must not be empty"
            raise GeocodeError(msg)

        for provider in self._providers:
            try:
                location = await provider.geocode(cleaned)
            except GeocodingProviderError as e:
                logger.warning(f"Geocoder {provider.provider_name} failed, trying next: {e.message}")
                continue
            if location is not None:
                logger.debug(f"Geocoded address via {provider.provider_name}")
                return location
            logger.debug(f"Geocoder {provider.provider_name} returned no match")

        logger.info("All geocoding providers exhausted; using synthetic location")
        return await self._fallback.geocode(cleaned)
