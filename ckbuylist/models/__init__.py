"""
Models package: export all SQLAlchemy models.
"""

from ckbuylist.models.base import Base
from ckbuylist.models.buylist_price import BuylistPrice

__all__ = ["Base", "BuylistPrice"]
