"""od-db: embedded document store, one JSON file per document.

Layout:
    od-db/
    ├── config.json                    # Optional, read with a fallback
    ├── castConfig.json                # Optional, read with a fallback
    └── <collection>/
        └── <id>.json                  # One document per file
    od-db-backup/
        └── 2026-2-18-1/               # Dated snapshots, 30-day retention
"""

from oddb.backup import BackupManager, DirectoryCopier
from oddb.db import Database
from oddb.errors import OdDbError, PolicyViolation, StoreIOError
from oddb.filters import MISSING, FilterEvaluator, matches
from oddb.store import DocumentStore

__all__ = [
    "BackupManager",
    "Database",
    "DirectoryCopier",
    "DocumentStore",
    "FilterEvaluator",
    "MISSING",
    "OdDbError",
    "PolicyViolation",
    "StoreIOError",
    "matches",
]
