"""Mirrored-database source: FCC bulk availability data imported into local tables.

The bulk files carry one representative point per block, not block
geometry, so candidates are the rows whose point falls inside a bounding
box of ``radius_degrees`` around the target (about 1 km at 0.01).
"""

import asyncio

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from broadband_api.lib.broadband.base import BaseProviderSource, RawProviderRecord, SourceError, parse_speed
from broadband_api.lib.broadband.technology import (
    BDC_TECHNOLOGIES,
    TechnologyCodeSystem,
    normalize_code,
    technology_name,
)
from broadband_api.models.broadband_availability import BroadbandAvailability
from broadband_api.models.broadband_provider import BroadbandProvider

DEFAULT_RADIUS_DEGREES = 0.01
DEFAULT_LIMIT = 50
DEFAULT_TIMEOUT = 5.0


class MirrorDatabaseSource(BaseProviderSource):
    """Bounding-box lookup against the ``broadband_availability`` table.

    Args:
        session_factory: Async session factory for the mirror database.
        radius_degrees: Half-width of the bounding box in degrees.
        limit: Maximum availability rows read per lookup.
        timeout: Query timeout in seconds.
    """

    source_name = "mirror"
    source_label = "FCC Broadband Data (local mirror)"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        radius_degrees: float = DEFAULT_RADIUS_DEGREES,
        limit: int = DEFAULT_LIMIT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._session_factory = session_factory
        self._radius = radius_degrees
        self._limit = limit
        self._timeout = timeout

    @property
    def supports_coordinates(self) -> bool:
        return True

    async def fetch_by_coordinates(self, latitude: float, longitude: float) -> list[RawProviderRecord]:
        query = (
            select(
                BroadbandAvailability.frn,
                BroadbandAvailability.technology_code,
                BroadbandAvailability.technology_name,
                BroadbandAvailability.max_download,
                BroadbandAvailability.max_upload,
                BroadbandProvider.provider_name,
                BroadbandProvider.provider_dba_name,
            )
            .join(BroadbandProvider, BroadbandAvailability.frn == BroadbandProvider.frn)
            .where(
                BroadbandAvailability.latitude.between(latitude - self._radius, latitude + self._radius),
                BroadbandAvailability.longitude.between(longitude - self._radius, longitude + self._radius),
            )
            # nearest points first so the row limit keeps the closest blocks
            .order_by(
                func.abs(BroadbandAvailability.latitude - latitude) + func.abs(BroadbandAvailability.longitude - longitude),
                BroadbandAvailability.frn,
                BroadbandAvailability.technology_code,
            )
            .limit(self._limit)
        )

        try:
            async with asyncio.timeout(self._timeout), self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except TimeoutError as e:
            logger.warning(f"{self.source_name} query timed out after {self._timeout}s")
            raise SourceError(self.source_name, "Query timed out") from e
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"{self.source_name} query failed: {type(e).__name__}")
            raise SourceError(self.source_name, f"Database error: {type(e).__name__}") from e

        records: list[RawProviderRecord] = []
        for row in rows:
            code = normalize_code(row.technology_code)
            # Table names take precedence; the imported name only covers codes the table lacks
            if code not in BDC_TECHNOLOGIES and row.technology_name:
                tech = row.technology_name
            else:
                tech = technology_name(code, TechnologyCodeSystem.BDC)
            records.append(
                RawProviderRecord(
                    provider_id=row.frn,
                    provider_name=row.provider_dba_name or row.provider_name,
                    technology_code=code,
                    technology=tech,
                    max_download=parse_speed(row.max_download),
                    max_upload=parse_speed(row.max_upload),
                    source=self.source_label,
                )
            )
        logger.debug(f"{self.source_name} matched {len(records)} rows near ({latitude:.4f}, {longitude:.4f})")
        return records
