"""Abstract base geocoder interface and the Location result type."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Location:
    """A resolved address: formatted text, locality components, and coordinates.

    ``source`` names the provider that produced it (``"synthetic"`` for the
    deterministic fallback).
    """

    address: str
    city: str
    state: str
    zip: str
    latitude: float
    longitude: float
    source: str = "unknown"

    def __post_init__(self) -> None:
        if not (-90 <= self.latitude <= 90):
            msg = f"latitude must be between -90 and 90, got {self.latitude}"
            raise ValueError(msg)
        if not (-180 <= self.longitude <= 180):
            msg = f"longitude must be between -180 and 180, got {self.longitude}"
            raise ValueError(msg)

    @property
    def is_synthetic(self) -> bool:
        return self.source == "synthetic"


class GeocodeError(ValueError):
    """Raised when an address cannot be geocoded at all (empty input)."""


class GeocodingProviderError(Exception):
    """Raised when a geocoding provider experiences a transport or service error.

    Distinguishes provider failures (timeout, HTTP error, connection error)
    from a successful response with no match (which returns None).

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
    """

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class BaseGeocoder(ABC):
    """Abstract geocoder interface. All providers must implement this."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this geocoder provider."""

    @property
    def requires_api_key(self) -> bool:
        """Whether this provider requires an API key to function."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @abstractmethod
    async def geocode(self, address: str) -> Location | None:
        """Geocode a single address.

        Args:
            address: Free-text address string.

        Returns:
            Location, or None if the provider answered but found no match.

        Raises:
            GeocodingProviderError: On transport, HTTP, or parse failures.
        """
