"""BroadbandProvider model — FCC-registered providers from the bulk data files."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from broadband_api.models.base import Base, TimestampMixin, UUIDMixin


class BroadbandProvider(Base, UUIDMixin, TimestampMixin):
    """A broadband provider identified by its FCC Registration Number (FRN)."""

    __tablename__ = "broadband_providers"

    frn: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    provider_name: Mapped[str] = mapped_column(Text, nullable=False)
    provider_dba_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    holding_company_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    holding_company_final: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    data_as_of: Mapped[str] = mapped_column(String(20), nullable=False)

    availability = relationship("BroadbandAvailability", back_populates="provider", lazy="raise")
