# BlockSync Test Fixtures
# Pytest fixtures for BlockSync tests

import os
import tempfile
from collections.abc import Callable, Generator
from datetime import datetime
from pathlib import Path
from typing import Optional

import pytest
import yaml

from blocksync.errors import FatalStoreError, StoreError
from blocksync.sync.backup import BackupManager
from blocksync.sync.ledger import ChangeLedger
from blocksync.sync.naming import NamingRules
from blocksync.sync.orchestrator import SyncOrchestrator
from blocksync.sync.store import ArchiveStore, StoreResult

BASE_TIME = datetime(2024, 1, 10, 9, 30)


class FlakyStore(ArchiveStore):
    """
    ArchiveStore with injectable failures.

    fail_names: entry names whose add() raises StoreError.
    reject_names: entry names whose add() reports a failed StoreResult.
    fail_save: save() overwrites the container with garbage and raises.
    fail_open: open() raises FatalStoreError.
    on_add: called after every successful add with the entry name.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_names: set[str] = set()
        self.reject_names: set[str] = set()
        self.fail_save = False
        self.fail_open = False
        self.on_add: Optional[Callable[[str], None]] = None
        self.added: list[tuple[str, str]] = []
        self.save_calls = 0

    def open(self, path: Path) -> None:
        if self.fail_open:
            raise FatalStoreError(f"Cannot open {path}")
        super().open(path)

    def add(self, name: str, category: str, content_source: Path) -> StoreResult:
        if name in self.fail_names:
            raise StoreError(f"Injected failure for {name}")
        if name in self.reject_names:
            return StoreResult.failed(f"Rejected {name}")
        result = super().add(name, category, content_source)
        self.added.append((name, category))
        if self.on_add is not None:
            self.on_add(name)
        return result

    def save(self) -> None:
        self.save_calls += 1
        if self.fail_save:
            assert self.path is not None
            self.path.write_bytes(b"half-written container")
            raise FatalStoreError(f"Injected save failure for {self.path}")
        super().save()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def temp_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a temporary home directory."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("BLOCKSYNC_CONFIG", raising=False)
    return home


@pytest.fixture
def rules() -> NamingRules:
    return NamingRules()


@pytest.fixture
def make_source() -> Callable[..., Path]:
    """Return a helper writing a source file with a fixed modification time."""

    def _make(path: Path, content: str = "content", mtime: datetime = BASE_TIME) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
        return path

    return _make


@pytest.fixture
def source_tree(temp_dir: Path, make_source: Callable[..., Path]) -> Path:
    """
    Create a source tree:

        source/AT_Foo.docx
        source/Legal/AT_My Clause.docx
        source/Legal/Contracts/AT_Notice.docx
        source/Notes.docx          (ignored, no prefix)
        source/AT_Readme.txt       (ignored, wrong extension)
    """
    root = temp_dir / "source"
    make_source(root / "AT_Foo.docx", "foo")
    make_source(root / "Legal" / "AT_My Clause.docx", "clause")
    make_source(root / "Legal" / "Contracts" / "AT_Notice.docx", "notice")
    make_source(root / "Notes.docx", "notes")
    make_source(root / "AT_Readme.txt", "readme")
    return root


@pytest.fixture
def store_path(temp_dir: Path) -> Path:
    """Create an empty store container."""
    return ArchiveStore.create(temp_dir / "store" / "blocks.bsz")


@pytest.fixture
def ledger(temp_dir: Path) -> ChangeLedger:
    return ChangeLedger(temp_dir / "state" / "ledger.txt")


@pytest.fixture
def backups(temp_dir: Path) -> BackupManager:
    return BackupManager(temp_dir / "backups", keep_count=3)


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def orchestrator(flaky_store: FlakyStore, ledger: ChangeLedger, backups: BackupManager) -> SyncOrchestrator:
    return SyncOrchestrator(flaky_store, ledger, backups)


@pytest.fixture
def sample_config(temp_dir: Path, source_tree: Path, store_path: Path) -> dict:
    """Create sample configuration dict."""
    return {
        "paths": {
            "source_directory": str(source_tree),
            "store_path": str(store_path),
            "export_directory": str(temp_dir / "export"),
            "state_dir": str(temp_dir / "state"),
        },
        "import": {"confirm_new": False},
        "backup": {"keep_count": 3, "directory": str(temp_dir / "backups")},
        "output": {
            "verbose": False,
            "colored": False,
            "enable_logging": False,
            "log_dir": str(temp_dir / "logs"),
        },
    }


@pytest.fixture
def config_file(temp_home: Path, sample_config: dict) -> Path:
    """Create a configuration file."""
    config_dir = temp_home / ".config" / "blocksync"
    config_dir.mkdir(parents=True)
    config_path = config_dir / "config.yaml"

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(sample_config, f, default_flow_style=False)

    return config_path
