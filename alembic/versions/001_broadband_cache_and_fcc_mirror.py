"""Create broadband_cache, broadband_providers, and broadband_availability tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Resolved results keyed by census block
    op.create_table(
        "broadband_cache",
        sa.Column("geoid", sa.String(15), nullable=False),
        sa.Column("payload", sa.JSON().with_variant(postgresql.JSONB(), "postgresql"), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("geoid"),
    )
    op.create_index("ix_broadband_cache_expires_at", "broadband_cache", ["expires_at"])

    # FCC bulk data mirror
    op.create_table(
        "broadband_providers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("frn", sa.String(10), nullable=False),
        sa.Column("provider_name", sa.Text(), nullable=False),
        sa.Column("provider_dba_name", sa.Text(), nullable=True),
        sa.Column("holding_company_name", sa.Text(), nullable=True),
        sa.Column("holding_company_final", sa.Text(), nullable=True),
        sa.Column("provider_type", sa.String(50), nullable=True),
        sa.Column("data_as_of", sa.String(20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("frn"),
    )

    op.create_table(
        "broadband_availability",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("frn", sa.String(10), nullable=False),
        sa.Column("technology_code", sa.String(10), nullable=False),
        sa.Column("technology_name", sa.Text(), nullable=False),
        sa.Column("max_download", sa.Double(), nullable=False),
        sa.Column("max_upload", sa.Double(), nullable=False),
        sa.Column("block_id", sa.String(15), nullable=False),
        sa.Column("state_abbr", sa.String(2), nullable=False),
        sa.Column("county", sa.String(100), nullable=False),
        sa.Column("latitude", sa.Double(), nullable=False),
        sa.Column("longitude", sa.Double(), nullable=False),
        sa.Column("data_as_of", sa.String(20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["frn"], ["broadband_providers.frn"]),
        sa.UniqueConstraint("frn", "block_id", "technology_code", name="uq_availability_frn_block_tech"),
    )
    op.create_index("ix_broadband_availability_lat_lng", "broadband_availability", ["latitude", "longitude"])
    op.create_index("ix_broadband_availability_block_id", "broadband_availability", ["block_id"])


def downgrade() -> None:
    op.drop_index("ix_broadband_availability_block_id", table_name="broadband_availability")
    op.drop_index("ix_broadband_availability_lat_lng", table_name="broadband_availability")
    op.drop_table("broadband_availability")
    op.drop_table("broadband_providers")
    op.drop_index("ix_broadband_cache_expires_at", table_name="broadband_cache")
    op.drop_table("broadband_cache")
