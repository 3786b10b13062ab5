"""FCC ArcGIS map-service source: point-intersect query against the broadband data layer.

ArcGIS reports query failures as HTTP 200 with an ``error`` object, which is
treated like any other upstream failure.
"""

from pydantic import AliasChoices, Field, ValidationError

from broadband_api.lib.broadband.base import RawProviderRecord, SourceError, parse_speed
from broadband_api.lib.broadband.http_source import HttpProviderSource, UpstreamRow
from broadband_api.lib.broadband.technology import TechnologyCodeSystem, normalize_code, technology_name

ARCGIS_QUERY_URL = "https://broadbandmap.fcc.gov/arcgis/rest/services/BroadbandData/MapServer/2/query"


class ArcGISAttributes(UpstreamRow):
    frn: str | None = Field(default=None, validation_alias=AliasChoices("FRN", "frn"))
    provider_name: str | None = Field(default=None, validation_alias=AliasChoices("ProviderName", "DBAName"))
    tech_code: str = Field(validation_alias=AliasChoices("TechCode", "Technology"))
    max_ad_down: float | str | None = Field(default=None, validation_alias=AliasChoices("MaxAdDown", "MaxDown"))
    max_ad_up: float | str | None = Field(default=None, validation_alias=AliasChoices("MaxAdUp", "MaxUp"))


class ArcGISFeature(UpstreamRow):
    attributes: ArcGISAttributes


class ArcGISError(UpstreamRow):
    code: int | None = None
    message: str = ""


class ArcGISQueryResponse(UpstreamRow):
    features: list[ArcGISFeature] = Field(default_factory=list)
    error: ArcGISError | None = None


class ArcGISSource(HttpProviderSource):
    """FCC broadband ArcGIS map service, looked up by coordinates."""

    source_name = "arcgis"
    source_label = "FCC Broadband Map (ArcGIS)"

    @property
    def supports_coordinates(self) -> bool:
        return True

    async def fetch_by_coordinates(self, latitude: float, longitude: float) -> list[RawProviderRecord]:
        params = {
            "f": "json",
            "geometry": f"{longitude},{latitude}",
            "geometryType": "esriGeometryPoint",
            "inSR": 4326,
            "spatialRel": "esriSpatialRelIntersects",
            "outFields": "*",
            "returnGeometry": "false",
        }
        data = await self._get_json(ARCGIS_QUERY_URL, params=params)
        try:
            parsed = ArcGISQueryResponse.model_validate(data)
        except ValidationError as e:
            raise SourceError(self.source_name, f"Malformed payload: {e.error_count()} validation errors") from e

        if parsed.error is not None:
            raise SourceError(
                self.source_name,
                f"Query failed: {parsed.error.message or 'unknown error'}",
                status_code=parsed.error.code,
            )

        records: list[RawProviderRecord] = []
        for feature in parsed.features:
            attrs = feature.attributes
            name = attrs.provider_name or "Unknown Provider"
            code = normalize_code(attrs.tech_code)
            records.append(
                RawProviderRecord(
                    provider_id=attrs.frn or name,
                    provider_name=name,
                    technology_code=code,
                    technology=technology_name(code, TechnologyCodeSystem.FORM_477),
                    max_download=parse_speed(attrs.max_ad_down),
                    max_upload=parse_speed(attrs.max_ad_up),
                    source=self.source_label,
                )
            )
        return records
