"""
CK Buylist: Identity key policy

Decides when two listings are "the same card", both for de-duplication
across result pages and for matching rows in the output sheet. The fields
that participate are configurable; the default is (name, edition, rarity).
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from typing import Any

from ckbuylist.scraper import CardRecord

IDENTITY_FIELD_NAMES = ("name", "edition", "rarity", "condition", "collector_number", "foil")


def normalize_identity_value(value: Any) -> str:
    """Trim and case-fold one identity component."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "foil" if value else ""
    return str(value).strip().casefold()


class IdentityKeyPolicy:
    """Builds normalized identity keys from a fixed list of record fields."""

    def __init__(self, fields: Sequence[str] = ("name", "edition", "rarity")) -> None:
        unknown = [f for f in fields if f not in IDENTITY_FIELD_NAMES]
        if unknown:
            raise ValueError(f"Unknown identity fields: {', '.join(unknown)}")
        if not fields:
            raise ValueError("Identity key needs at least one field")
        self.fields: tuple[str, ...] = tuple(fields)

    def key(self, record: CardRecord) -> tuple[str, ...]:
        return tuple(normalize_identity_value(getattr(record, f)) for f in self.fields)

    def key_from_values(self, values: Sequence[Any]) -> tuple[str, ...]:
        """Key for raw values laid out in ``self.fields`` order (e.g. a sheet row)."""
        padded = list(values) + [""] * (len(self.fields) - len(values))
        return tuple(normalize_identity_value(v) for v in padded[: len(self.fields)])

    def fingerprint(self, records: Iterable[CardRecord]) -> str:
        """Stable digest of every key on a page, in page order."""
        joined = "::".join("||".join(self.key(r)) for r in records)
        return hashlib.sha1(joined.encode("utf-8")).hexdigest()
