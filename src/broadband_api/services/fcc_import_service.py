"""FCC import service — loads bulk provider and availability CSVs into the mirrored tables.

Providers are upserted on ``frn`` and availability rows on
``(frn, block_id, technology_code)``, so re-running an import with newer
files replaces values in place.
"""

import time
from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from broadband_api.core.database import upsert_insert
from broadband_api.lib.broadband.importer import parse_availability_chunks, parse_provider_chunks
from broadband_api.models.broadband_availability import BroadbandAvailability
from broadband_api.models.broadband_provider import BroadbandProvider

PROVIDERS_FILENAME = "fcc-providers.csv"
AVAILABILITY_FILENAME = "fcc-availability.csv"

# asyncpg allows 32767 bind parameters; availability rows bind 12 columns each
_UPSERT_SUB_BATCH = 1000

_PROVIDER_UPDATE_COLUMNS = (
    "provider_name",
    "provider_dba_name",
    "holding_company_name",
    "holding_company_final",
    "provider_type",
    "data_as_of",
)

_AVAILABILITY_UPDATE_COLUMNS = (
    "technology_name",
    "max_download",
    "max_upload",
    "state_abbr",
    "county",
    "latitude",
    "longitude",
    "data_as_of",
)


@dataclass
class ImportSummary:
    """Row counts from an import run."""

    providers: int = 0
    availability: int = 0
    skipped: int = 0

    def __add__(self, other: "ImportSummary") -> "ImportSummary":
        return ImportSummary(
            providers=self.providers + other.providers,
            availability=self.availability + other.availability,
            skipped=self.skipped + other.skipped,
        )


async def _upsert(
    session: AsyncSession,
    model: type[BroadbandProvider] | type[BroadbandAvailability],
    records: list[dict],
    index_elements: list[str],
    update_columns: tuple[str, ...],
) -> None:
    insert = upsert_insert(session)
    for i in range(0, len(records), _UPSERT_SUB_BATCH):
        batch = records[i : i + _UPSERT_SUB_BATCH]
        stmt = insert(model).values(batch)
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={**{col: stmt.excluded[col] for col in update_columns}, "updated_at": func.now()},
        )
        await session.execute(stmt)


def _dedupe(records: list[dict], key: tuple[str, ...]) -> list[dict]:
    """Keep the last record per key; a single ON CONFLICT statement cannot touch a row twice."""
    unique: dict[tuple, dict] = {}
    for record in records:
        unique[tuple(record[k] for k in key)] = record
    return list(unique.values())


async def import_providers(session: AsyncSession, file_path: Path, batch_size: int = 1000) -> ImportSummary:
    """Upsert providers from a providers CSV, committing per chunk.

    Args:
        session: Database session.
        file_path: Path to the providers CSV.
        batch_size: Rows per chunk.

    Returns:
        Counts of providers written and rows skipped.
    """
    summary = ImportSummary()
    for chunk in parse_provider_chunks(file_path, batch_size=batch_size):
        summary.skipped += chunk.skipped
        records = _dedupe(chunk.records, ("frn",))
        if not records:
            continue
        await _upsert(session, BroadbandProvider, records, ["frn"], _PROVIDER_UPDATE_COLUMNS)
        await session.commit()
        summary.providers += len(records)
        logger.debug(f"Upserted {len(records)} providers")

    logger.info(f"Imported {summary.providers} providers from {file_path.name} ({summary.skipped} skipped)")
    return summary


async def import_availability(session: AsyncSession, file_path: Path, batch_size: int = 1000) -> ImportSummary:
    """Upsert availability rows from an availability CSV, committing per chunk.

    Rows whose FRN has no provider record are skipped.

    Args:
        session: Database session.
        file_path: Path to the availability CSV.
        batch_size: Rows per chunk.

    Returns:
        Counts of availability rows written and rows skipped.
    """
    summary = ImportSummary()
    for chunk in parse_availability_chunks(file_path, batch_size=batch_size):
        summary.skipped += chunk.skipped
        frns = {r["frn"] for r in chunk.records}
        known = set(
            (await session.scalars(select(BroadbandProvider.frn).where(BroadbandProvider.frn.in_(frns)))).all()
        )

        records = [r for r in chunk.records if r["frn"] in known]
        unknown = len(chunk.records) - len(records)
        if unknown:
            logger.warning(f"Skipping {unknown} availability rows with unknown FRNs")
            summary.skipped += unknown

        records = _dedupe(records, ("frn", "block_id", "technology_code"))
        if not records:
            continue
        await _upsert(
            session,
            BroadbandAvailability,
            records,
            ["frn", "block_id", "technology_code"],
            _AVAILABILITY_UPDATE_COLUMNS,
        )
        await session.commit()
        summary.availability += len(records)
        logger.debug(f"Upserted {len(records)} availability rows")

    logger.info(
        f"Imported {summary.availability} availability rows from {file_path.name} ({summary.skipped} skipped)"
    )
    return summary


async def import_fcc_data(
    session: AsyncSession,
    providers_path: Path | None = None,
    availability_path: Path | None = None,
    batch_size: int = 1000,
) -> ImportSummary:
    """Import providers, then availability.

    Providers must load first so availability rows can be matched to FRNs.

    Raises:
        FileNotFoundError: If a given path does not exist.
        ValueError: If a CSV is missing required columns.
    """
    start = time.monotonic()
    summary = ImportSummary()
    for path in (providers_path, availability_path):
        if path is not None and not path.is_file():
            msg = f"File not found: {path}"
            raise FileNotFoundError(msg)

    if providers_path is not None:
        summary += await import_providers(session, providers_path, batch_size=batch_size)
    if availability_path is not None:
        summary += await import_availability(session, availability_path, batch_size=batch_size)

    elapsed = time.monotonic() - start
    logger.info(
        f"FCC import complete in {elapsed:.1f}s: {summary.providers} providers, "
        f"{summary.availability} availability rows, {summary.skipped} skipped"
    )
    return summary
