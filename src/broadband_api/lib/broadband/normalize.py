"""Provider normalizer: collapse per-technology raw records into one entry per provider."""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from broadband_api.lib.broadband.base import RawProviderRecord
from broadband_api.lib.broadband.results import NormalizedProvider


def _whole_mbps(speed: float) -> int:
    # halves round up, so 2.5 Mbps reports as 3
    return math.floor(speed + 0.5)


@dataclass
class _ProviderAggregate:
    name: str
    source: str
    technologies: list[str] = field(default_factory=list)
    max_download: float = 0.0
    max_upload: float = 0.0


def normalize(records: Iterable[RawProviderRecord]) -> list[NormalizedProvider]:
    """Group raw records by provider identifier.

    Providers are emitted in first-seen order.  Each provider's technology
    names are de-duplicated (first-seen order) and its speeds are the maxima
    across all of its records, rounded half-up to whole Mbps on output.

    Args:
        records: Raw records from a single provider source.

    Returns:
        One NormalizedProvider per distinct ``provider_id``.
    """
    providers: dict[str, _ProviderAggregate] = {}

    for record in records:
        entry = providers.get(record.provider_id)
        if entry is None:
            entry = _ProviderAggregate(name=record.provider_name, source=record.source)
            providers[record.provider_id] = entry
        elif not entry.name and record.provider_name:
            entry.name = record.provider_name

        if record.technology and record.technology not in entry.technologies:
            entry.technologies.append(record.technology)
        entry.max_download = max(entry.max_download, record.max_download)
        entry.max_upload = max(entry.max_upload, record.max_upload)

    return [
        NormalizedProvider(
            name=entry.name or provider_id,
            technologies=entry.technologies,
            max_download=_whole_mbps(entry.max_download),
            max_upload=_whole_mbps(entry.max_upload),
            source=entry.source,
        )
        for provider_id, entry in providers.items()
    ]
