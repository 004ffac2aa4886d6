# BlockSync Backup Tests
# Tests for store snapshots, restore and pruning

import logging
import os
from pathlib import Path

import pytest

from blocksync.errors import BackupError
from blocksync.sync.backup import BACKUP_MARKER, BackupManager


@pytest.fixture
def store_file(temp_dir: Path) -> Path:
    path = temp_dir / "store" / "blocks.bsz"
    path.parent.mkdir()
    path.write_bytes(b"original store bytes")
    return path


def _age(path: Path, seconds_ago: int) -> None:
    stat = path.stat()
    os.utime(path, (stat.st_atime - seconds_ago, stat.st_mtime - seconds_ago))


class TestSnapshot:
    """Tests for BackupManager.snapshot."""

    def test_byte_identical_copy(self, store_file: Path):
        manager = BackupManager()
        handle = manager.snapshot(store_file)

        assert handle.path.parent == store_file.parent
        assert handle.path.name.startswith(f"blocks{BACKUP_MARKER}")
        assert handle.path.suffix == ".bsz"
        assert handle.path.read_bytes() == store_file.read_bytes()
        assert handle.source_path == store_file
        assert handle.size == len(b"original store bytes")

    def test_custom_directory(self, store_file: Path, temp_dir: Path):
        manager = BackupManager(temp_dir / "backups")
        handle = manager.snapshot(store_file)
        assert handle.path.parent == temp_dir / "backups"

    def test_unique_names(self, store_file: Path):
        manager = BackupManager()
        first = manager.snapshot(store_file)
        second = manager.snapshot(store_file)
        assert first.path != second.path
        assert first.path.exists() and second.path.exists()

    def test_missing_source_raises(self, temp_dir: Path):
        with pytest.raises(BackupError):
            BackupManager().snapshot(temp_dir / "missing.bsz")


class TestRestore:
    """Tests for BackupManager.restore."""

    def test_restore_overwrites_target(self, store_file: Path):
        manager = BackupManager()
        handle = manager.snapshot(store_file)
        store_file.write_bytes(b"changed")

        manager.restore(handle, store_file)

        assert store_file.read_bytes() == b"original store bytes"

    def test_restore_from_path(self, store_file: Path):
        manager = BackupManager()
        handle = manager.snapshot(store_file)
        store_file.unlink()

        manager.restore(handle.path, store_file)

        assert store_file.read_bytes() == b"original store bytes"

    def test_missing_backup_raises(self, store_file: Path, temp_dir: Path):
        with pytest.raises(BackupError):
            BackupManager().restore(temp_dir / "nope.bsz", store_file)


class TestListAndPrune:
    """Tests for listing and pruning."""

    def test_list_newest_first(self, store_file: Path):
        manager = BackupManager()
        old = manager.snapshot(store_file)
        new = manager.snapshot(store_file)
        _age(old.path, 60)

        listed = manager.list_backups(store_file)

        assert [h.path for h in listed] == [new.path, old.path]
        assert manager.latest(store_file).path == new.path

    def test_list_ignores_other_stores(self, store_file: Path):
        manager = BackupManager()
        manager.snapshot(store_file)
        other = store_file.with_name("other.bsz")
        other.write_bytes(b"x")
        manager.snapshot(other)

        assert len(manager.list_backups(store_file)) == 1

    def test_latest_none(self, store_file: Path):
        assert BackupManager().latest(store_file) is None

    def test_prune_keeps_newest(self, store_file: Path):
        manager = BackupManager(keep_count=2)
        handles = [manager.snapshot(store_file) for _ in range(4)]
        for age, handle in zip((40, 30, 20, 10), handles):
            _age(handle.path, age)

        deleted = manager.prune(store_file)

        assert sorted(deleted) == sorted([handles[0].path, handles[1].path])
        assert [h.path for h in manager.list_backups(store_file)] == [handles[3].path, handles[2].path]

    def test_prune_explicit_keep_count(self, store_file: Path):
        manager = BackupManager(keep_count=5)
        for _ in range(3):
            manager.snapshot(store_file)
        assert len(manager.prune(store_file, keep_count=1)) == 2
        assert len(manager.list_backups(store_file)) == 1

    def test_prune_failure_is_logged(self, store_file: Path, monkeypatch: pytest.MonkeyPatch, caplog):
        manager = BackupManager(keep_count=0)
        handle = manager.snapshot(store_file)

        def refuse(self, missing_ok=False):
            raise PermissionError("read-only")

        monkeypatch.setattr(Path, "unlink", refuse)
        with caplog.at_level(logging.WARNING):
            deleted = manager.prune(store_file)

        assert deleted == []
        assert handle.path.exists()
        assert "Could not delete old backup" in caplog.text
