"""CK Buylist: Card Kingdom buylist price tracker backed by Google Sheets."""

__version__ = "0.1.0"
