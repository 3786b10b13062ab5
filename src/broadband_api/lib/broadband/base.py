"""Provider data source interface and the raw record every source emits."""

from abc import ABC
from dataclasses import dataclass


@dataclass(frozen=True)
class RawProviderRecord:
    """A single provider/technology row from a data source.

    Speeds are in Mbps.  Several records may share a ``provider_id`` (one per
    technology offered at the location).
    """

    provider_id: str
    provider_name: str
    technology_code: str
    technology: str
    max_download: float
    max_upload: float
    source: str


class SourceError(Exception):
    """Raised when a provider data source fails (transport, status, payload, or storage).

    Args:
        source_name: Name of the failing source.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the upstream service.
    """

    def __init__(self, source_name: str, message: str, status_code: int | None = None) -> None:
        self.source_name = source_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{source_name}: {message}")


def parse_speed(value: object) -> float:
    """Coerce an advertised speed to a non-negative float, defaulting to 0."""
    try:
        speed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if speed != speed or speed < 0:  # NaN or negative
        return 0.0
    return speed


class BaseProviderSource(ABC):
    """Abstract broadband-availability source.

    A source supports lookup by census block, by coordinates, or both; the
    unsupported method raises NotImplementedError.
    """

    #: Registry name, e.g. "opendata"
    source_name: str = ""
    #: Human-readable label carried into results, e.g. "FCC Open Data API"
    source_label: str = ""

    @property
    def supports_block(self) -> bool:
        """Whether fetch_by_block() is implemented."""
        return False

    @property
    def supports_coordinates(self) -> bool:
        """Whether fetch_by_coordinates() is implemented."""
        return False

    @property
    def is_configured(self) -> bool:
        """Whether this source has all required configuration (e.g., credentials)."""
        return True

    async def fetch_by_block(self, geoid: str) -> list[RawProviderRecord]:
        """Fetch raw provider records for a census block.

        Raises:
            SourceError: On any upstream failure.
        """
        raise NotImplementedError(f"{self.source_name} does not support census-block lookup")

    async def fetch_by_coordinates(self, latitude: float, longitude: float) -> list[RawProviderRecord]:
        """Fetch raw provider records near a coordinate pair.

        Raises:
            SourceError: On any upstream failure.
        """
        raise NotImplementedError(f"{self.source_name} does not support coordinate lookup")
