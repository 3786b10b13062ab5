"""Census block lookup — coordinate pair to 2020 census block GEOID."""

from broadband_api.lib.census_block.resolver import BlockNotFoundError, CensusBlock, CensusBlockResolver

__all__ = [
    "BlockNotFoundError",
    "CensusBlock",
    "CensusBlockResolver",
]
