"""ORM model registry — import all models so Alembic autogenerate discovers them."""

from broadband_api.models.broadband_availability import BroadbandAvailability
from broadband_api.models.broadband_cache import BroadbandCache
from broadband_api.models.broadband_provider import BroadbandProvider

__all__ = [
    "BroadbandAvailability",
    "BroadbandCache",
    "BroadbandProvider",
]
