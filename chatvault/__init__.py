"""
chatvault - Import Instagram and Snapchat chat exports into one local store.

This package provides functionality to:
- Stream-parse export archives (zip or single JSON) into a SQLite store
- Merge the same person's contacts across platforms into one timeline
- Search, tag, and chart the imported history
"""

__version__ = "0.1.0"

from chatvault.config import get_config, Config
from chatvault.store import SQLiteStore
from chatvault.ingest.dispatcher import ArchiveDispatcher

__all__ = [
    "get_config",
    "Config",
    "SQLiteStore",
    "ArchiveDispatcher",
]
