"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str, *, lower: bool = False) -> list[str]:
    """Split a comma-separated settings value into trimmed, non-empty items."""
    if not value.strip():
        return []
    items = [item.strip() for item in value.split(",") if item.strip()]
    return [item.lower() for item in items] if lower else items


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (PostgreSQL via asyncpg in production)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # Geocoding: general
    geocoder_fallback_order: str = Field(
        default="opencage,census",
        description="Comma-separated primary geocoder order; the synthetic fallback always runs last",
    )

    # Geocoding: OpenCage
    geocoder_opencage_api_key: str | None = Field(
        default=None,
        description="OpenCage Geocoding API key (provider is skipped when unset)",
    )
    geocoder_opencage_timeout: float = Field(
        default=10.0,
        description="OpenCage request timeout in seconds",
        gt=0,
    )

    # Geocoding: Census one-line address
    geocoder_census_timeout: float = Field(
        default=10.0,
        description="Census address geocoder request timeout in seconds",
        gt=0,
    )

    @property
    def geocoder_fallback_order_list(self) -> list[str]:
        """Parse fallback order string into a list of provider names.

        Returns:
            List of provider names in fallback order.
        """
        return _split_csv(self.geocoder_fallback_order, lower=True)

    # Census block lookup
    census_block_timeout: float = Field(
        default=10.0,
        description="Census geographies (block lookup) request timeout in seconds",
        gt=0,
    )

    # Broadband provider sources
    broadband_source_order: str = Field(
        default="mirror,opendata,broadband_map,arcgis",
        description="Comma-separated provider source priority; the first non-empty answer wins",
    )
    broadband_opendata_timeout: float = Field(
        default=15.0,
        description="FCC open-data request timeout in seconds",
        gt=0,
    )
    broadband_map_username: str | None = Field(
        default=None,
        description="FCC National Broadband Map account username",
    )
    broadband_map_api_key: str | None = Field(
        default=None,
        description="FCC National Broadband Map API token (hash_value header)",
    )
    broadband_map_timeout: float = Field(
        default=15.0,
        description="FCC National Broadband Map request timeout in seconds",
        gt=0,
    )
    broadband_arcgis_timeout: float = Field(
        default=15.0,
        description="FCC ArcGIS map service request timeout in seconds",
        gt=0,
    )
    broadband_mirror_timeout: float = Field(
        default=5.0,
        description="Mirrored-database query timeout in seconds",
        gt=0,
    )
    broadband_mirror_radius_degrees: float = Field(
        default=0.01,
        description="Bounding-box half-width in degrees for mirrored-database lookups (~1 km)",
        gt=0,
        le=1,
    )
    broadband_mirror_limit: int = Field(
        default=50,
        description="Maximum availability rows returned by a mirrored-database lookup",
        gt=0,
    )
    broadband_cache_ttl_hours: int = Field(
        default=24,
        description="Time-to-live for cached census-block results, in hours",
        gt=0,
    )

    @property
    def broadband_source_order_list(self) -> list[str]:
        """Parse source order string into a list of source names."""
        return _split_csv(self.broadband_source_order, lower=True)

    # Import
    import_batch_size: int = Field(
        default=1000,
        description="Rows per CSV chunk and per upsert batch when importing FCC data",
        gt=0,
    )
    import_data_dir: str = Field(
        default="./data",
        description="Directory holding fcc-providers.csv and fcc-availability.csv",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return _split_csv(self.cors_origins)

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
