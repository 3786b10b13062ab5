"""Regional-approximation result returned when no source has data for a location.

The provider list is a fixed set of nationally common providers.  It is
marked through ``source`` and ``message`` so consumers can tell it apart
from address-level data, and it is never written to the cache.
"""

from broadband_api.lib.broadband.results import BroadbandResult, NormalizedProvider

REGIONAL_SOURCE = "Regional approximation - not address specific"
REGIONAL_MESSAGE = (
    "Using regional approximation: no address-specific FCC data was found for this location. "
    "Availability shown is typical of the region and may not reflect service at this address."
)

_REGIONAL_PROVIDERS: tuple[tuple[str, tuple[str, ...], int, int], ...] = (
    ("AT&T", ("Fiber", "DSL"), 1000, 1000),
    ("Spectrum", ("Cable",), 940, 35),
    ("T-Mobile", ("Fixed Wireless",), 245, 31),
)


def regional_approximation(geoid: str | None = None) -> BroadbandResult:
    """Build a fresh regional-approximation result."""
    return BroadbandResult(
        providers=[
            NormalizedProvider(
                name=name,
                technologies=list(technologies),
                max_download=download,
                max_upload=upload,
                source=REGIONAL_SOURCE,
            )
            for name, technologies, download, upload in _REGIONAL_PROVIDERS
        ],
        message=REGIONAL_MESSAGE,
        source=REGIONAL_SOURCE,
        error=False,
        geoid=geoid,
    )


def is_regional_approximation(result: BroadbandResult) -> bool:
    """Whether a result is the regional approximation rather than location data."""
    return result.source == REGIONAL_SOURCE
