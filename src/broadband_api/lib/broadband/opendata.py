"""FCC open-data (Socrata) source: Form 477 fixed broadband deployment by census block.

Queries the ``jdr4-3q4p`` dataset on https://opendata.fcc.gov by ``blockcode``.
"""

import httpx
from pydantic import AliasChoices, Field, TypeAdapter, ValidationError

from broadband_api.lib.broadband.base import RawProviderRecord, SourceError, parse_speed
from broadband_api.lib.broadband.http_source import DEFAULT_TIMEOUT, HttpProviderSource, UpstreamRow
from broadband_api.lib.broadband.technology import TechnologyCodeSystem, normalize_code, technology_name

OPENDATA_URL = "https://opendata.fcc.gov/resource/jdr4-3q4p.json"
DEFAULT_LIMIT = 50


class OpenDataRow(UpstreamRow):
    """One Form 477 deployment row as served by the Socrata API."""

    frn: str | None = Field(default=None, validation_alias=AliasChoices("frn", "provider_id"))
    provider_name: str | None = Field(
        default=None, validation_alias=AliasChoices("providername", "providerName", "dbaname")
    )
    techcode: str = Field(validation_alias=AliasChoices("techcode", "technologyCode"))
    maxaddown: float | str | None = Field(default=None, validation_alias=AliasChoices("maxaddown", "maxDownload"))
    maxadup: float | str | None = Field(default=None, validation_alias=AliasChoices("maxadup", "maxUpload"))


_ROWS = TypeAdapter(list[OpenDataRow])


class OpenDataSource(HttpProviderSource):
    """FCC open-data API, looked up by census block GEOID."""

    source_name = "opendata"
    source_label = "FCC Open Data API"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._limit = limit

    @property
    def supports_block(self) -> bool:
        return True

    async def fetch_by_block(self, geoid: str) -> list[RawProviderRecord]:
        data = await self._get_json(OPENDATA_URL, params={"blockcode": geoid, "$limit": self._limit})
        try:
            rows = _ROWS.validate_python(data)
        except ValidationError as e:
            raise SourceError(self.source_name, f"Malformed payload: {e.error_count()} validation errors") from e
        return [self._to_record(row) for row in rows]

    def _to_record(self, row: OpenDataRow) -> RawProviderRecord:
        name = row.provider_name or "Unknown Provider"
        code = normalize_code(row.techcode)
        return RawProviderRecord(
            provider_id=row.frn or name,
            provider_name=name,
            technology_code=code,
            technology=technology_name(code, TechnologyCodeSystem.FORM_477),
            max_download=parse_speed(row.maxaddown),
            max_upload=parse_speed(row.maxadup),
            source=self.source_label,
        )
