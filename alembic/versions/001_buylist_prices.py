"""buylist_prices table

Revision ID: 001_buylist_prices
Revises: None
Create Date: 2025-08-21
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001_buylist_prices"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "buylist_prices",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("edition", sa.String(255), nullable=False, server_default=""),
        sa.Column("rarity", sa.String(32), nullable=False, server_default=""),
        sa.Column("condition", sa.String(64), nullable=True),
        sa.Column("foil", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "price",
            sa.DECIMAL(10, 2),
            nullable=True,
            comment="Buylist price in USD; NULL when out of stock or unparsable",
        ),
        sa.Column("price_mode", sa.String(16), nullable=False, comment="'cash', 'credit' or 'both'"),
        sa.Column(
            "recorded_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_buylist_prices_name_edition_recorded",
        "buylist_prices",
        ["name", "edition", "recorded_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_buylist_prices_name_edition_recorded", table_name="buylist_prices")
    op.drop_table("buylist_prices")
