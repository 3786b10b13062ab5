"""Deterministic synthetic geocoder used when no live provider can answer.

The result is derived only from a SHA-256 digest of the (whitespace- and
case-normalized) input, so the same address always yields the same Location.
It keeps the pipeline usable offline and in tests; it is never a real geocode.
"""

import hashlib
import re

from broadband_api.lib.geocoder.base import BaseGeocoder, GeocodeError, Location
from broadband_api.lib.geocoder.states import STATE_CENTROIDS, ZIP_PREFIXES

SYNTHETIC_SOURCE = "synthetic"

# (city, state) candidates selected by the digest
CANDIDATE_LOCALITIES: tuple[tuple[str, str], ...] = (
    ("Los Angeles", "CA"),
    ("San Francisco", "CA"),
    ("San Diego", "CA"),
    ("New York", "NY"),
    ("Chicago", "IL"),
    ("Miami", "FL"),
    ("Seattle", "WA"),
    ("Portland", "OR"),
    ("Austin", "TX"),
    ("Dallas", "TX"),
    ("Houston", "TX"),
    ("Denver", "CO"),
    ("Boston", "MA"),
    ("Philadelphia", "PA"),
    ("Atlanta", "GA"),
    ("Phoenix", "AZ"),
    ("Las Vegas", "NV"),
    ("Washington", "DC"),
)

# Offsets are drawn from [-MAX_OFFSET_DEGREES, MAX_OFFSET_DEGREES)
MAX_OFFSET_DEGREES = 0.05
_OFFSET_STEPS = 1000

_WHITESPACE_RE = re.compile(r"\s+")


def _digest(address: str) -> bytes:
    key = _WHITESPACE_RE.sub(" ", address.strip()).casefold()
    return hashlib.sha256(key.encode("utf-8")).digest()


def _slice_int(digest: bytes, index: int) -> int:
    """Read the ``index``-th 4-byte big-endian unsigned integer from the digest."""
    start = index * 4
    return int.from_bytes(digest[start : start + 4], "big")


def _offset(value: int) -> float:
    step = (2 * MAX_OFFSET_DEGREES) / _OFFSET_STEPS
    return (value % _OFFSET_STEPS) * step - MAX_OFFSET_DEGREES


def synthesize_location(address: str) -> Location:
    """Build the deterministic fallback Location for an address.

    Args:
        address: Free-text address string.

    Returns:
        A Location with ``source == "synthetic"``.

    Raises:
        GeocodeError: If the address is empty or whitespace-only.
    """
    cleaned = _WHITESPACE_RE.sub(" ", address.strip()) if address else ""
    if not cleaned:
        msg = "Address must not be empty"
        raise GeocodeError(msg)

    digest = _digest(cleaned)
    city, state = CANDIDATE_LOCALITIES[_slice_int(digest, 0) % len(CANDIDATE_LOCALITIES)]
    base_lat, base_lon = STATE_CENTROIDS[state]
    zip_code = f"{ZIP_PREFIXES[state]}{_slice_int(digest, 3) % 1000:03d}"

    return Location(
        address=cleaned,
        city=city,
        state=state,
        zip=zip_code,
        latitude=round(base_lat + _offset(_slice_int(digest, 1)), 6),
        longitude=round(base_lon + _offset(_slice_int(digest, 2)), 6),
        source=SYNTHETIC_SOURCE,
    )


class SyntheticGeocoder(BaseGeocoder):
    """Geocoder adapter around synthesize_location(); always answers."""

    @property
    def provider_name(self) -> str:
        return SYNTHETIC_SOURCE

    async def geocode(self, address: str) -> Location:
        return synthesize_location(address)
