"""Storage layers - in-memory rewrite cache and SQLite conversion ledger."""

from .cache import ConversionCache
from .ledger import ConversionLedger

__all__ = ["ConversionCache", "ConversionLedger"]
