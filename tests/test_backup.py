"""Tests for snapshot naming, retention and tree copy."""

from __future__ import annotations

import os
import shutil
import pytest
from datetime import date, timedelta
from pathlib import Path

from oddb.backup import (
    BackupManager,
    DirectoryCopier,
    SnapshotName,
    next_sequence,
    parse_snapshot_name,
    snapshots_to_prune,
)

TODAY = date(2026, 2, 18)


def _name(d: date, seq: int = 1) -> str:
    return SnapshotName(d, seq).format()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    root = tmp_path / "od-db"
    (root / "users").mkdir(parents=True)
    (root / "users" / "u1.json").write_text('{"id": "u1"}', encoding="utf-8")
    (root / "config.json").write_text("{}", encoding="utf-8")
    return root


@pytest.fixture
def manager(root: Path) -> BackupManager:
    return BackupManager(root, clock=lambda: TODAY)


class TestSnapshotName:
    def test_format_not_zero_padded(self):
        assert SnapshotName(date(2026, 2, 8), 3).format() == "2026-2-8-3"

    def test_parse(self):
        assert parse_snapshot_name("2026-2-8-3") == SnapshotName(date(2026, 2, 8), 3)

    def test_parse_padded(self):
        assert parse_snapshot_name("2026-02-08-1") == SnapshotName(date(2026, 2, 8), 1)

    @pytest.mark.parametrize("name", ["notes", "2026-2-8", "2026-13-1-1", ".2026-2-8-1.partial"])
    def test_parse_invalid(self, name):
        assert parse_snapshot_name(name) is None


class TestRetention:
    def test_prune_selection(self):
        names = [_name(TODAY - timedelta(days=n)) for n in (40, 31, 30, 29, 1)]
        assert snapshots_to_prune(names, TODAY) == names[:2]

    def test_unparseable_names_kept(self):
        assert snapshots_to_prune(["README", "tmp"], TODAY) == []

    def test_next_sequence(self):
        names = [_name(TODAY, 1), _name(TODAY, 2), _name(TODAY - timedelta(days=1))]
        assert next_sequence(names, TODAY) == 3
        assert next_sequence([], TODAY) == 1


class TestDirectoryCopier:
    def test_copies_tree(self, root: Path, tmp_path: Path):
        (root / "users" / "nested" / "deep").mkdir(parents=True)
        (root / "users" / "nested" / "deep" / "x.json").write_bytes(b"\x00\xffdata")

        dest = tmp_path / "copy"
        DirectoryCopier().copy(root, dest)
        assert (dest / "users" / "u1.json").read_text(encoding="utf-8") == '{"id": "u1"}'
        assert (dest / "users" / "nested" / "deep" / "x.json").read_bytes() == b"\x00\xffdata"

    def test_symlinks_preserved(self, root: Path, tmp_path: Path):
        os.symlink("users/u1.json", root / "latest")
        os.symlink("/does/not/exist", root / "dangling")

        dest = tmp_path / "copy"
        DirectoryCopier().copy(root, dest)
        assert (dest / "latest").is_symlink()
        assert os.readlink(dest / "latest") == "users/u1.json"
        assert os.readlink(dest / "dangling") == "/does/not/exist"

    def test_missing_source_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            DirectoryCopier().copy(tmp_path / "nope", tmp_path / "dest")


class TestBackup:
    def test_default_backup_root(self, manager: BackupManager, root: Path):
        assert manager.backup_root == root.parent / "od-db-backup"

    def test_creates_snapshot(self, manager: BackupManager):
        snapshot = manager.backup()
        assert snapshot.name == "2026-2-18-1"
        assert (snapshot / "users" / "u1.json").exists()
        assert (snapshot / "config.json").exists()

    def test_same_day_sequence(self, manager: BackupManager):
        first = manager.backup()
        second = manager.backup()
        assert first.name == "2026-2-18-1"
        assert second.name == "2026-2-18-2"

    def test_sequence_skips_taken_name(self, manager: BackupManager):
        manager.backup()
        manager.backup()
        shutil.rmtree(manager.backup_root / "2026-2-18-1")

        third = manager.backup()
        assert third.name == "2026-2-18-3"
        assert (third / "users" / "u1.json").exists()
        assert sorted(os.listdir(manager.backup_root)) == ["2026-2-18-2", "2026-2-18-3"]

    def test_failed_rename_cleans_staging(self, manager: BackupManager, monkeypatch):
        def fail_rename(src, dst):
            raise OSError("rename refused")

        monkeypatch.setattr("oddb.backup.os.rename", fail_rename)
        with pytest.raises(OSError, match="rename refused"):
            manager.backup()
        assert os.listdir(manager.backup_root) == []

    def test_retention(self, manager: BackupManager):
        backup_root = manager.backup_root
        ages = {n: _name(TODAY - timedelta(days=n)) for n in (40, 31, 29, 1)}
        for name in ages.values():
            (backup_root / name).mkdir(parents=True)
            (backup_root / name / "marker").write_text("x")

        manager.backup()
        assert sorted(manager.list_snapshots()) == sorted(
            [ages[29], ages[1], "2026-2-18-1"]
        )

    def test_foreign_entries_untouched(self, manager: BackupManager):
        (manager.backup_root / "notes").mkdir(parents=True)
        manager.backup()
        assert (manager.backup_root / "notes").is_dir()

    def test_no_partial_left_on_failure(self, root: Path):
        class FailingCopier(DirectoryCopier):
            def copy(self, source, destination):
                Path(destination).mkdir(parents=True)
                raise OSError("disk full")

        manager = BackupManager(root, clock=lambda: TODAY, copier=FailingCopier())
        with pytest.raises(OSError, match="disk full"):
            manager.backup()
        assert os.listdir(manager.backup_root) == []

    def test_custom_retention(self, root: Path):
        manager = BackupManager(root, clock=lambda: TODAY, retention_days=7)
        old = manager.backup_root / _name(TODAY - timedelta(days=8))
        old.mkdir(parents=True)
        manager.backup()
        assert not old.exists()
