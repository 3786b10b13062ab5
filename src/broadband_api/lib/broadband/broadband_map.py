"""FCC National Broadband Map source: fixed availability at a location.

Requires a broadbandmap.fcc.gov account; requests are authenticated with the
``username`` and ``hash_value`` (API token) headers.
"""

import httpx
from pydantic import AliasChoices, Field, ValidationError

from broadband_api.lib.broadband.base import RawProviderRecord, SourceError, parse_speed
from broadband_api.lib.broadband.http_source import DEFAULT_TIMEOUT, HttpProviderSource, UpstreamRow
from broadband_api.lib.broadband.technology import TechnologyCodeSystem, normalize_code, technology_name

BROADBAND_MAP_URL = "https://broadbandmap.fcc.gov/nbm/map/api/published/fixed/location"


class MapTechnology(UpstreamRow):
    tech_code: str = Field(validation_alias=AliasChoices("techCode", "technologyCode", "technology"))
    max_ad_down: float | str | None = Field(default=None, validation_alias=AliasChoices("maxAdDown", "maxDownload"))
    max_ad_up: float | str | None = Field(default=None, validation_alias=AliasChoices("maxAdUp", "maxUpload"))


class MapProviderRecord(UpstreamRow):
    frn: str | None = None
    provider_id: str | None = Field(default=None, validation_alias=AliasChoices("providerId", "provider_id"))
    provider_name: str | None = Field(default=None, validation_alias=AliasChoices("providerName", "provider_name"))
    dba_name: str | None = Field(default=None, validation_alias=AliasChoices("dbaName", "brandName"))
    technologies: list[MapTechnology] = Field(default_factory=list)


class MapLocationResponse(UpstreamRow):
    provider_records: list[MapProviderRecord] = Field(
        default_factory=list, validation_alias=AliasChoices("providerRecords", "data")
    )


class BroadbandMapSource(HttpProviderSource):
    """FCC National Broadband Map location API, looked up by coordinates.

    Args:
        username: Broadband map account username.
        api_key: Broadband map API token.
        timeout: Per-request timeout in seconds.
        client: Optional shared HTTP client.
    """

    source_name = "broadband_map"
    source_label = "FCC National Broadband Map"

    def __init__(
        self,
        username: str = "",
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, client=client)
        self._username = username
        self._api_key = api_key

    @property
    def supports_coordinates(self) -> bool:
        return True

    @property
    def is_configured(self) -> bool:
        return bool(self._username and self._api_key)

    async def fetch_by_coordinates(self, latitude: float, longitude: float) -> list[RawProviderRecord]:
        headers = {
            "Accept": "application/json",
            "username": self._username,
            "hash_value": self._api_key,
        }
        data = await self._get_json(
            BROADBAND_MAP_URL,
            params={"latitude": latitude, "longitude": longitude},
            headers=headers,
        )
        try:
            parsed = MapLocationResponse.model_validate(data)
        except ValidationError as e:
            raise SourceError(self.source_name, f"Malformed payload: {e.error_count()} validation errors") from e

        records: list[RawProviderRecord] = []
        for provider in parsed.provider_records:
            name = provider.dba_name or provider.provider_name or "Unknown Provider"
            provider_id = provider.frn or provider.provider_id or name
            for tech in provider.technologies:
                code = normalize_code(tech.tech_code)
                records.append(
                    RawProviderRecord(
                        provider_id=provider_id,
                        provider_name=name,
                        technology_code=code,
                        technology=technology_name(code, TechnologyCodeSystem.BDC),
                        max_download=parse_speed(tech.max_ad_down),
                        max_upload=parse_speed(tech.max_ad_up),
                        source=self.source_label,
                    )
                )
        return records
