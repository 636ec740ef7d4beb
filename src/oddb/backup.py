"""Dated snapshots of the whole store root with a retention window.

Layout:
    <parent>/
    ├── od-db/                         # store root
    └── od-db-backup/
        ├── 2026-2-17-1/               # {year}-{month}-{day}-{sequence}
        ├── 2026-2-18-1/
        └── 2026-2-18-2/               # second backup of the same day

Snapshots older than the retention window are pruned at the start of each
run, before the new snapshot is written.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
BACKUP_SUFFIX = "-backup"
PARTIAL_SUFFIX = ".partial"


# ── Snapshot naming ──────────────────────────────────────────


@dataclass(frozen=True, order=True)
class SnapshotName:
    """Parsed `{year}-{month}-{day}-{sequence}` directory name."""

    day: date
    sequence: int

    def format(self) -> str:
        return f"{self.day.year}-{self.day.month}-{self.day.day}-{self.sequence}"


def parse_snapshot_name(name: str) -> SnapshotName | None:
    """Parse a snapshot directory name. Returns None for anything else."""
    parts = name.split("-")
    if len(parts) != 4 or not all(p.isdigit() for p in parts):
        return None
    year, month, day, sequence = (int(p) for p in parts)
    try:
        return SnapshotName(date(year, month, day), sequence)
    except ValueError:
        return None


def snapshots_to_prune(
    names: Iterable[str], today: date, retention_days: int = DEFAULT_RETENTION_DAYS
) -> list[str]:
    """Names whose date is strictly earlier than `today - retention_days`."""
    cutoff = today - timedelta(days=retention_days)
    expired = []
    for name in names:
        parsed = parse_snapshot_name(name)
        if parsed is not None and parsed.day < cutoff:
            expired.append(name)
    return expired


def next_sequence(names: Iterable[str], today: date) -> int:
    """1-based sequence for a new snapshot taken on `today`."""
    parsed = [parse_snapshot_name(name) for name in names]
    return sum(1 for p in parsed if p is not None and p.day == today) + 1


# ── Tree copy ────────────────────────────────────────────────


class EntryKind(enum.Enum):
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    FILE = "file"


def classify(entry: os.DirEntry) -> EntryKind:
    """Classify without following symlinks."""
    if entry.is_symlink():
        return EntryKind.SYMLINK
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    return EntryKind.FILE


class DirectoryCopier:
    """Copy a directory tree, recreating symlinks instead of following them.

    Traversal uses an explicit stack, so depth is not bounded by recursion.
    Errors are not caught.
    """

    def copy(self, source: Path, destination: Path) -> int:
        """Copy `source` into `destination`. Returns the number of entries copied."""
        copied = 0
        stack: list[tuple[Path, Path]] = [(Path(source), Path(destination))]
        while stack:
            src_dir, dst_dir = stack.pop()
            dst_dir.mkdir(parents=True, exist_ok=True)
            with os.scandir(src_dir) as entries:
                for entry in entries:
                    target = dst_dir / entry.name
                    kind = classify(entry)
                    if kind is EntryKind.DIRECTORY:
                        stack.append((Path(entry.path), target))
                    elif kind is EntryKind.SYMLINK:
                        os.symlink(os.readlink(entry.path), target)
                    else:
                        shutil.copyfile(entry.path, target, follow_symlinks=False)
                    copied += 1
        return copied


# ── Backup ───────────────────────────────────────────────────


class BackupManager:
    """Prune expired snapshots and write a new one for today."""

    def __init__(
        self,
        root: Path,
        backup_root: Path | None = None,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], date] = date.today,
        copier: DirectoryCopier | None = None,
    ) -> None:
        self.root = Path(root)
        self.backup_root = (
            Path(backup_root)
            if backup_root
            else self.root.parent / f"{self.root.name}{BACKUP_SUFFIX}"
        )
        self.retention_days = retention_days
        self._clock = clock
        self._copier = copier or DirectoryCopier()

    def list_snapshots(self) -> list[str]:
        """Names of entries in the backup root that parse as snapshots."""
        if not self.backup_root.is_dir():
            return []
        parsed = [(parse_snapshot_name(n), n) for n in os.listdir(self.backup_root)]
        return [name for snapshot, name in sorted(p for p in parsed if p[0] is not None)]

    def prune(self, names: Iterable[str], today: date) -> list[str]:
        """Remove snapshots outside the retention window. Returns removed names."""
        removed = []
        for name in snapshots_to_prune(names, today, self.retention_days):
            path = self.backup_root / name
            if not path.exists():
                logger.warning("Snapshot %s no longer exists", path)
                continue
            shutil.rmtree(path)
            removed.append(name)
            logger.info("Removed %s", name)
        return removed

    def backup(self) -> Path:
        """Snapshot the store root. Returns the new snapshot directory.

        The copy is staged next to the final name and renamed into place, so
        a failed run leaves no half-written snapshot behind.
        """
        logger.info("Backing up %s...", self.root)
        today = self._clock()
        self.backup_root.mkdir(parents=True, exist_ok=True)
        existing = os.listdir(self.backup_root)

        logger.info("Removing old backups...")
        removed = set(self.prune(existing, today))
        remaining = [name for name in existing if name not in removed]

        sequence = next_sequence(remaining, today)
        # Snapshots removed by hand leave gaps; skip names already taken.
        while (self.backup_root / SnapshotName(today, sequence).format()).exists():
            sequence += 1
        name = SnapshotName(today, sequence).format()
        destination = self.backup_root / name
        staging = self.backup_root / f".{name}{PARTIAL_SUFFIX}"
        if staging.exists():
            shutil.rmtree(staging)

        logger.info("Creating backup %s...", name)
        try:
            copied = self._copier.copy(self.root, staging)
            os.rename(staging, destination)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        logger.info("Backup ready: %s (%d entries)", destination, copied)
        return destination
