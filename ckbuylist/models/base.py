"""
SQLAlchemy 2.0 async DeclarativeBase for CK Buylist.

All models inherit from this Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all CK Buylist database models."""
    pass
