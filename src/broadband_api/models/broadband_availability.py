"""BroadbandAvailability model — per-block, per-technology availability rows mirrored from FCC data."""

from sqlalchemy import Double, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from broadband_api.models.base import Base, TimestampMixin, UUIDMixin


class BroadbandAvailability(Base, UUIDMixin, TimestampMixin):
    """One provider technology offered in a census block, with a representative point."""

    __tablename__ = "broadband_availability"

    frn: Mapped[str] = mapped_column(String(10), ForeignKey("broadband_providers.frn"), nullable=False)
    technology_code: Mapped[str] = mapped_column(String(10), nullable=False)
    technology_name: Mapped[str] = mapped_column(Text, nullable=False)
    max_download: Mapped[float] = mapped_column(Double, nullable=False)
    max_upload: Mapped[float] = mapped_column(Double, nullable=False)
    block_id: Mapped[str] = mapped_column(String(15), nullable=False)
    state_abbr: Mapped[str] = mapped_column(String(2), nullable=False)
    county: Mapped[str] = mapped_column(String(100), nullable=False)
    latitude: Mapped[float] = mapped_column(Double, nullable=False)
    longitude: Mapped[float] = mapped_column(Double, nullable=False)
    data_as_of: Mapped[str] = mapped_column(String(20), nullable=False)

    provider = relationship("BroadbandProvider", back_populates="availability", lazy="raise")

    __table_args__ = (
        UniqueConstraint("frn", "block_id", "technology_code", name="uq_availability_frn_block_tech"),
        Index("ix_broadband_availability_lat_lng", "latitude", "longitude"),
        Index("ix_broadband_availability_block_id", "block_id"),
    )
