"""Chunked parsing of FCC bulk provider and availability CSV files.

Produces plain record dicts keyed by ORM column name, ready for bulk
upsert into ``broadband_providers`` and ``broadband_availability``.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd
from loguru import logger

from broadband_api.lib.broadband.technology import TechnologyCodeSystem, normalize_code, technology_name

PROVIDER_COLUMN_MAP: dict[str, str] = {
    "frn": "frn",
    "providerName": "provider_name",
    "providerDbaName": "provider_dba_name",
    "holdingCompanyName": "holding_company_name",
    "holdingCompanyFinal": "holding_company_final",
    "providerType": "provider_type",
    "dataAsOf": "data_as_of",
}

AVAILABILITY_COLUMN_MAP: dict[str, str] = {
    "frn": "frn",
    "techCode": "technology_code",
    "techName": "technology_name",
    "maxAdDown": "max_download",
    "maxAdUp": "max_upload",
    "blockId": "block_id",
    "stateAbbr": "state_abbr",
    "county": "county",
    "latitude": "latitude",
    "longitude": "longitude",
    "dataAsOf": "data_as_of",
}

_NUMERIC_AVAILABILITY_COLUMNS = ("max_download", "max_upload", "latitude", "longitude")


@dataclass
class ParsedChunk:
    """Records parsed from one CSV chunk, plus the count of rows dropped."""

    records: list[dict] = field(default_factory=list)
    skipped: int = 0


def _read_chunks(file_path: Path, column_map: dict[str, str], batch_size: int) -> Iterator[pd.DataFrame]:
    logger.info(f"Parsing {file_path} with batch_size={batch_size}")
    reader = pd.read_csv(file_path, chunksize=batch_size, dtype=str, keep_default_na=False)
    for chunk in reader:
        chunk.columns = chunk.columns.str.strip()
        missing = [c for c in column_map if c not in chunk.columns]
        if missing:
            msg = f"{file_path.name} is missing columns: {', '.join(missing)}"
            raise ValueError(msg)
        chunk = chunk[list(column_map)].rename(columns=column_map)
        yield chunk.apply(lambda col: col.str.strip())


def parse_provider_chunks(file_path: Path, batch_size: int = 1000) -> Iterator[ParsedChunk]:
    """Parse a providers CSV.

    Rows without an FRN are skipped.  Blank optional text fields become None;
    a blank ``providerName`` falls back to the DBA name, then the FRN.

    Raises:
        ValueError: If required columns are missing.
    """
    for chunk in _read_chunks(file_path, PROVIDER_COLUMN_MAP, batch_size):
        parsed = ParsedChunk()
        for row in chunk.to_dict(orient="records"):
            if not row["frn"]:
                parsed.skipped += 1
                continue
            record = {key: (value or None) for key, value in row.items()}
            record["provider_name"] = row["provider_name"] or row["provider_dba_name"] or row["frn"]
            record["data_as_of"] = row["data_as_of"]
            parsed.records.append(record)
        yield parsed


def parse_availability_chunks(file_path: Path, batch_size: int = 1000) -> Iterator[ParsedChunk]:
    """Parse an availability CSV.

    Speeds and coordinates are coerced to floats (blank or invalid values
    become 0).  A blank ``techName`` is filled from the BDC technology table.
    Rows without an FRN are skipped.

    Raises:
        ValueError: If required columns are missing.
    """
    for chunk in _read_chunks(file_path, AVAILABILITY_COLUMN_MAP, batch_size):
        for column in _NUMERIC_AVAILABILITY_COLUMNS:
            chunk[column] = pd.to_numeric(chunk[column], errors="coerce").fillna(0.0).astype(float)

        parsed = ParsedChunk()
        for row in chunk.to_dict(orient="records"):
            if not row["frn"]:
                parsed.skipped += 1
                continue
            code = normalize_code(row["technology_code"])
            row["technology_code"] = code
            row["technology_name"] = row["technology_name"] or technology_name(code, TechnologyCodeSystem.BDC)
            row["max_download"] = max(row["max_download"], 0.0)
            row["max_upload"] = max(row["max_upload"], 0.0)
            parsed.records.append(row)
        yield parsed
