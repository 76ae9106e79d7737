"""
CK Buylist: Buylist Price Model

Append-only log of every observed buylist price. Each run inserts one row
per scraped record; rows are never updated.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BOOLEAN, DECIMAL, TIMESTAMP, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ckbuylist.models.base import Base


class BuylistPrice(Base):
    """
    One price observation.

    Index: (name, edition, recorded_at) supports per-card history scans.
    """

    __tablename__ = "buylist_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    edition: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    rarity: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    condition: Mapped[str | None] = mapped_column(String(64), nullable=True)
    foil: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    price: Mapped[Decimal | None] = mapped_column(
        DECIMAL(10, 2),
        nullable=True,
        comment="Buylist price in USD; NULL when out of stock or unparsable",
    )
    price_mode: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="'cash', 'credit' or 'both'",
    )
    recorded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_buylist_prices_name_edition_recorded", "name", "edition", "recorded_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<BuylistPrice name={self.name!r} edition={self.edition!r} "
            f"price={self.price} mode={self.price_mode} at={self.recorded_at}>"
        )
