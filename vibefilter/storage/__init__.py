# Path: vibefilter/storage/__init__.py
# Purpose: Package initializer for catalog persistence.
# Layer: vibefilter/storage.
# Details: Exposes the storage protocols and the SQLite implementation.

from .base import CatalogStore, ExpansionCache
from .sqlite_store import SQLiteStore

__all__ = ["CatalogStore", "ExpansionCache", "SQLiteStore"]
