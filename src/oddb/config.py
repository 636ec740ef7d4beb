"""Configuration loading from environment variables and oddb.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_FILENAME = "oddb.toml"
_DEFAULT_ROOT_NAME = "od-db"

PRODUCTION = "production"


@dataclass
class OdDbConfig:
    """Top-level od-db configuration."""

    root: Path = field(default_factory=lambda: Path.cwd() / _DEFAULT_ROOT_NAME)
    environment: str = "development"
    retention_days: int = 30
    json_indent: int | None = 2
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == PRODUCTION


def load_config(config_path: Path | None = None) -> OdDbConfig:
    """Load configuration from environment variables and optional oddb.toml.

    Priority: environment variables > oddb.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        candidate = Path.cwd() / _CONFIG_FILENAME
        if candidate.exists():
            file_data = tomllib.loads(candidate.read_text())

    store_data = file_data.get("store", {})
    backup_data = file_data.get("backup", {})

    root = os.getenv("ODDB_ROOT", store_data.get("root"))
    indent = os.getenv("ODDB_JSON_INDENT", store_data.get("json_indent", 2))

    return OdDbConfig(
        root=Path(root) if root else Path.cwd() / _DEFAULT_ROOT_NAME,
        environment=os.getenv("ODDB_ENV", file_data.get("environment", "development")),
        retention_days=int(
            os.getenv("ODDB_RETENTION_DAYS", backup_data.get("retention_days", 30))
        ),
        json_indent=int(indent) if indent not in (None, "") else None,
        log_level=os.getenv("ODDB_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
