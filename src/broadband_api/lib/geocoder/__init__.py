"""Geocoder library — pluggable address geocoding with a deterministic fallback.

Public API:
    - Location: Resolved address dataclass
    - BaseGeocoder: Abstract provider interface
    - GeocodeError / GeocodingProviderError: Input and provider failures
    - CensusGeocoder: US Census Bureau one-line address provider
    - OpenCageGeocoder: OpenCage Data provider
    - SyntheticGeocoder / synthesize_location: Deterministic hash-based fallback
    - Geocoder: Cascading geocoder that never fails on the network
    - get_geocoder: Provider factory/registry
    - get_configured_geocoders: Providers that are configured, in fallback order
    - build_geocoder: Cascading geocoder built from settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from broadband_api.lib.geocoder.base import BaseGeocoder, GeocodeError, GeocodingProviderError, Location
from broadband_api.lib.geocoder.cascade import Geocoder
from broadband_api.lib.geocoder.census import CensusGeocoder
from broadband_api.lib.geocoder.opencage import OpenCageGeocoder
from broadband_api.lib.geocoder.synthetic import SyntheticGeocoder, synthesize_location

if TYPE_CHECKING:
    import httpx

    from broadband_api.core.config import Settings

# Live provider registry; the synthetic fallback is built into Geocoder
_PROVIDERS: dict[str, type[BaseGeocoder]] = {
    "census": CensusGeocoder,
    "opencage": OpenCageGeocoder,
}


def get_available_providers() -> list[str]:
    """Return the names of all registered geocoder providers.

    Returns:
        Sorted list of provider name strings.
    """
    return sorted(_PROVIDERS.keys())


def get_geocoder(provider: str = "census", **kwargs: Any) -> BaseGeocoder:
    """Get a geocoder instance by provider name.

    Args:
        provider: Provider name (e.g., "census").
        **kwargs: Additional arguments forwarded to the provider constructor
            (e.g., ``timeout=2.0``).

    Returns:
        An instance of the requested geocoder provider.

    Raises:
        ValueError: If the provider is not registered.
    """
    cls = _PROVIDERS.get(provider)
    if cls is None:
        msg = f"Unknown geocoder provider: {provider!r}. Available: {list(_PROVIDERS.keys())}"
        raise ValueError(msg)
    return cls(**kwargs)


def get_configured_geocoders(settings: Settings, client: httpx.AsyncClient | None = None) -> list[BaseGeocoder]:
    """Get geocoder instances for all providers that are properly configured.

    Args:
        settings: Application settings.
        client: Optional shared HTTP client passed to every provider.

    Returns:
        List of configured BaseGeocoder instances, in fallback order.
    """
    provider_kwargs: dict[str, dict[str, Any]] = {
        "census": {"timeout": settings.geocoder_census_timeout},
        "opencage": {
            "api_key": settings.geocoder_opencage_api_key or "",
            "timeout": settings.geocoder_opencage_timeout,
        },
    }

    providers: list[BaseGeocoder] = []
    seen: set[str] = set()
    for name in settings.geocoder_fallback_order_list:
        if name in seen or name not in provider_kwargs:
            continue
        seen.add(name)
        geocoder = get_geocoder(name, client=client, **provider_kwargs[name])
        if geocoder.is_configured:
            providers.append(geocoder)

    return providers


def build_geocoder(settings: Settings, client: httpx.AsyncClient | None = None) -> Geocoder:
    """Build the cascading Geocoder from settings."""
    return Geocoder(get_configured_geocoders(settings, client=client))


__all__ = [
    "BaseGeocoder",
    "CensusGeocoder",
    "GeocodeError",
    "Geocoder",
    "GeocodingProviderError",
    "Location",
    "OpenCageGeocoder",
    "SyntheticGeocoder",
    "build_geocoder",
    "get_available_providers",
    "get_configured_geocoders",
    "get_geocoder",
    "synthesize_location",
]
