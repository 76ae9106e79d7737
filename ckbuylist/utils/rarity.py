"""
CK Buylist: Rarity label normalization

The Filters tab accepts either full rarity names or Card Kingdom's single
letter codes. Normalization is opt-in (``CK_NORMALIZE_RARITY``); when off,
labels are sent to the site exactly as typed.
"""

from __future__ import annotations

from collections.abc import Iterable

_RARITY_MAP: dict[str, str] = {
    "c": "Common",
    "common": "Common",
    "u": "Uncommon",
    "uncommon": "Uncommon",
    "r": "Rare",
    "rare": "Rare",
    "m": "Mythic",
    "mythic": "Mythic",
    "mythic rare": "Mythic",
    "s": "Special",
    "special": "Special",
}


def normalize_rarity(label: str) -> str:
    """Map a rarity label to its canonical name, leaving unknown labels untouched."""
    key = (label or "").strip().lower()
    return _RARITY_MAP.get(key, label)


def normalize_rarities(labels: Iterable[str], enabled: bool) -> list[str]:
    """Apply ``normalize_rarity`` to every non-empty label when ``enabled``."""
    cleaned = [label for label in labels if label and label.strip()]
    if not enabled:
        return cleaned
    return [normalize_rarity(label) for label in cleaned]


def split_rarity_cell(cell: str) -> tuple[str, ...]:
    """Parse a comma-separated rarity cell, keeping sheet order and dropping repeats."""
    seen: list[str] = []
    for part in (cell or "").split(","):
        part = part.strip()
        if part and part not in seen:
            seen.append(part)
    return tuple(seen)
