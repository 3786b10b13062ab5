"""BroadbandCache model — resolved provider lists keyed by census block GEOID."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from broadband_api.models.base import Base, JSONType


class BroadbandCache(Base):
    """Cached BroadbandResult for one census block, valid until ``expires_at``."""

    __tablename__ = "broadband_cache"

    geoid: Mapped[str] = mapped_column(String(15), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_broadband_cache_expires_at", "expires_at"),)
