"""Database facade over a store root: collections, JSON config files and backups."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from oddb.backup import BackupManager
from oddb.store import DocumentStore

if TYPE_CHECKING:
    from oddb.config import OdDbConfig

T = TypeVar("T")

CONFIG_FILE = "config.json"
CAST_CONFIG_FILE = "castConfig.json"


class Database:
    """Entry point for a store root directory."""

    def __init__(
        self,
        root: Path,
        *,
        production: bool = False,
        json_indent: int | None = 2,
        retention_days: int = 30,
    ) -> None:
        self.root = Path(root)
        self.production = production
        self.json_indent = json_indent
        self.retention_days = retention_days
        self.root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_config(cls, config: OdDbConfig) -> Database:
        return cls(
            config.root,
            production=config.is_production,
            json_indent=config.json_indent,
            retention_days=config.retention_days,
        )

    def collection(self, name: str) -> DocumentStore:
        return DocumentStore(
            name, self.root, production=self.production, json_indent=self.json_indent
        )

    def _read_json(self, filename: str, fallback: T) -> T | Any:
        path = self.root / filename
        if not path.exists():
            return fallback
        return json.loads(path.read_text(encoding="utf-8"))

    def get_configs(self, fallback: T) -> T | Any:
        """Contents of config.json, or `fallback` when the file is absent."""
        return self._read_json(CONFIG_FILE, fallback)

    def get_cast_config(self, fallback: T) -> T | Any:
        """Contents of castConfig.json, or `fallback` when the file is absent."""
        return self._read_json(CAST_CONFIG_FILE, fallback)

    def backup(self) -> Path:
        manager = BackupManager(self.root, retention_days=self.retention_days)
        return manager.backup()
