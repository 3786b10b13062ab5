"""Normalized provider and resolution result types shared by the pipeline, cache, and API."""

from pydantic import BaseModel, Field


class NormalizedProvider(BaseModel):
    """One provider at a location, aggregated across its raw technology records.

    ``technologies`` holds unique human-readable names in first-seen order;
    ``max_download``/``max_upload`` are maxima across all of the provider's records.
    """

    name: str
    technologies: list[str] = Field(default_factory=list)
    max_download: int = Field(default=0, ge=0, description="Maximum advertised download speed (Mbps)")
    max_upload: int = Field(default=0, ge=0, description="Maximum advertised upload speed (Mbps)")
    source: str


class BroadbandResult(BaseModel):
    """Provider list for a location, in first-seen provider order."""

    providers: list[NormalizedProvider] = Field(default_factory=list)
    message: str
    source: str
    error: bool = False
    geoid: str | None = None
