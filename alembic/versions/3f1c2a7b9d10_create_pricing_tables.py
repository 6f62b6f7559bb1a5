"""create rate catalog and quotation tables

Revision ID: 3f1c2a7b9d10
Revises:
Create Date: 2026-10-18 10:02:41.118203

Unique constraints on rate_entries (sport, size_tier) and court_sizes (sport)
are what make concurrent default seeding safe; don't drop them.
Tables that already exist (created by Base.metadata.create_all()) are skipped.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3f1c2a7b9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name):
    """Check if a table exists."""
    bind = op.get_bind()
    insp = inspect(bind)
    return table_name in insp.get_table_names()


def upgrade() -> None:
    if not _table_exists("rate_entries"):
        op.create_table(
            "rate_entries",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("sport", sa.String(), nullable=False),
            sa.Column("size_tier", sa.String(), nullable=False),
            sa.Column("base_area_rate", sa.Numeric(12, 2), nullable=False),
            sa.Column("tier_multiplier", sa.Numeric(6, 3), nullable=False),
            sa.Column("add_on_prices", sa.JSON(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint("sport", "size_tier", name="uq_rate_entries_sport_tier"),
        )
        op.create_index("ix_rate_entries_id", "rate_entries", ["id"])

    if not _table_exists("court_sizes"):
        op.create_table(
            "court_sizes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("sport", sa.String(), nullable=False, unique=True),
            sa.Column("standard_area", sa.Numeric(12, 2), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_court_sizes_id", "court_sizes", ["id"])

    if not _table_exists("quotations"):
        op.create_table(
            "quotations",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("sport", sa.String(), nullable=False),
            sa.Column("size_tier", sa.String(), nullable=False),
            sa.Column("court_specification", sa.JSON(), nullable=False),
            sa.Column("resolved_area", sa.Numeric(12, 2), nullable=False),
            sa.Column("total", sa.Numeric(12, 2), nullable=False),
            sa.Column("currency", sa.String(), nullable=False),
            sa.Column("rates_snapshot_version", sa.Integer(), nullable=False),
            sa.Column("rates_snapshot", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_quotations_created_at", "quotations", ["created_at"])

    if not _table_exists("quotation_line_items"):
        op.create_table(
            "quotation_line_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quotation_id", sa.String(), sa.ForeignKey("quotations.id"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("code", sa.String(), nullable=False),
            sa.Column("label", sa.String(), nullable=False),
            sa.Column("pricing", sa.String(), nullable=False),
            sa.Column("unit_rate", sa.Numeric(12, 2), nullable=False),
            sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
            sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
            sa.UniqueConstraint("quotation_id", "position", name="uq_line_items_quotation_position"),
        )
        op.create_index("ix_quotation_line_items_id", "quotation_line_items", ["id"])


def downgrade() -> None:
    op.drop_table("quotation_line_items")
    op.drop_table("quotations")
    op.drop_table("court_sizes")
    op.drop_table("rate_entries")
