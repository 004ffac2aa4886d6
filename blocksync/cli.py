"""Click-based CLI for BlockSync - entry source file synchronization."""

from __future__ import annotations

import signal
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import click
import yaml

from blocksync import __version__
from blocksync.config import (
    BlockSyncConfig,
    ensure_config_exists,
    get_config_path,
    load_config,
    validate_config_file,
)
from blocksync.errors import ConfigurationError, ErrorKind, FatalStoreError, RollbackError
from blocksync.logger import setup_logging
from blocksync.output import Console
from blocksync.sync.naming import EntryIdentity
from blocksync.sync.orchestrator import ExportOptions, ImportOptions, SyncOrchestrator
from blocksync.sync.store import ArchiveStore

EXIT_FAILURE = 1
EXIT_ROLLBACK_FAILED = 2


class AppContext:
    """Shared state for all commands of one invocation."""

    def __init__(self, config: BlockSyncConfig, config_path: Path, console: Console):
        self.config = config
        self.config_path = config_path
        self.console = console

    def orchestrator(self) -> SyncOrchestrator:
        return SyncOrchestrator.from_config(self.config, status_callback=self._status)

    def _status(self, message: str) -> None:
        if self.console.verbose:
            self.console.print(f"[dim]{message}[/dim]")

    def store_path(self, value: Optional[Path]) -> Path:
        return _require_path(value, self.config.paths.store_path, "store", "--store")

    def source_directory(self, value: Optional[Path]) -> Path:
        return _require_path(value, self.config.paths.source_directory, "source directory", "SOURCE")

    def export_directory(self, value: Optional[Path]) -> Path:
        return _require_path(value, self.config.paths.export_directory, "export directory", "OUTPUT")


def _require_path(value: Optional[Path], configured: Optional[str], label: str, hint: str) -> Path:
    if value is not None:
        return value.expanduser().resolve()
    if configured:
        return Path(configured).resolve()
    raise click.ClickException(f"No {label} given. Pass {hint} or set it in the configuration file.")


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl+C into a cancel request checked between items."""
    cancel = threading.Event()
    try:
        previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    except ValueError:
        # Not on the main thread
        yield cancel
        return
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _exit_for(error_kind: Optional[ErrorKind], success: bool) -> None:
    if error_kind == ErrorKind.ROLLBACK_FAILED:
        sys.exit(EXIT_ROLLBACK_FAILED)
    if not success or error_kind is not None:
        sys.exit(EXIT_FAILURE)


pass_app = click.make_pass_decorator(AppContext)


@click.group()
@click.version_option(version=__version__, prog_name="blocksync")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Configuration file (default: $BLOCKSYNC_CONFIG or ~/.config/blocksync/config.yaml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool, no_color: bool) -> None:
    """BlockSync - keep entry source files and a document store in sync.

    Scans a directory tree for AT_<name>.docx files, tracks what was
    imported and when, and imports new and modified files into the store
    with a backup taken before every change.

    \b
    AT_Foo.docx              -> Foo (InternalAutotext)
    Legal/AT_My Clause.docx  -> My_Clause (InternalAutotext\\Legal)
    """
    path = config_path or get_config_path()
    try:
        config = load_config(path, missing_ok=True)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILURE)

    verbose = verbose or config.output.verbose
    console = Console(verbose=verbose, colored=config.output.colored and not no_color)
    setup_logging(
        verbose=verbose,
        log_dir=Path(config.output.log_dir),
        enable_file=config.output.enable_logging,
        retention_days=config.output.log_retention_days,
        console=console.rich,
    )
    ctx.obj = AppContext(config, path, console)


# ============================================================================
# Query / Import / Export
# ============================================================================


@cli.command()
@click.argument("source", required=False, type=click.Path(path_type=Path))
@pass_app
def query(app: AppContext, source: Optional[Path]) -> None:
    """Show new, modified, missing and removed entries without changing anything.

    SOURCE is the directory to scan (default: paths.source_directory).
    """
    result = app.orchestrator().query(app.source_directory(source))
    app.console.print_query_result(result)
    _exit_for(result.error_kind, result.success)


@cli.command("import")
@click.argument("source", required=False, type=click.Path(path_type=Path))
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--all", "-a", "import_all", is_flag=True, help="Import every valid file, not only changed ones")
@click.option("--yes", "-y", is_flag=True, help="Do not ask before creating new entries")
@click.option("--flat", is_flag=True, help="Import every entry into a single category")
@click.option("--category", default=None, help="Category used with --flat")
@pass_app
def import_(
    app: AppContext,
    source: Optional[Path],
    store: Optional[Path],
    import_all: bool,
    yes: bool,
    flat: bool,
    category: Optional[str],
) -> None:
    """Import new and modified source files into the store.

    SOURCE is the directory to scan (default: paths.source_directory).
    A backup of the store is taken first; on a fatal error the store is
    restored from it. Press Ctrl+C to stop after the current file.
    """
    source_dir = app.source_directory(source)
    store_path = app.store_path(store)

    options = ImportOptions.from_config(app.config.import_options)
    if import_all:
        options.only_changed = False
    if yes:
        options.confirm_new = False
    if flat or category:
        options.flat = True
    if category:
        options.flat_category = category

    def confirm(new_entries) -> bool:
        app.console.print_new_entries(new_entries)
        return app.console.confirm("Create these entries in the store?", default=True)

    with _cancel_on_interrupt() as cancel:
        result = app.orchestrator().run_import(source_dir, store_path, options, confirm=confirm, cancel=cancel)

    if result.error_kind == ErrorKind.ABORTED:
        app.console.print_warning(result.error_message or "Import cancelled")
        sys.exit(EXIT_FAILURE)
    if result.error_kind == ErrorKind.CONFIGURATION:
        app.console.print_error(result.error_message or "Invalid configuration")
        sys.exit(EXIT_FAILURE)
    if result.scan is not None and result.scan.invalid:
        app.console.print_warning(f"{len(result.scan.invalid)} invalid file(s) skipped, run 'blocksync query' for details")

    app.console.print_import_result(result)
    _exit_for(result.error_kind, result.success)


@cli.command("import-file")
@click.argument("file", type=click.Path(path_type=Path))
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--root", type=click.Path(path_type=Path), default=None, help="Directory the category is derived from")
@click.option("--force", "-f", is_flag=True, help="Import even if the file is unchanged")
@click.option("--category", default=None, help="Import into this category instead of the derived one")
@pass_app
def import_file(
    app: AppContext,
    file: Path,
    store: Optional[Path],
    root: Optional[Path],
    force: bool,
    category: Optional[str],
) -> None:
    """Import a single source file.

    Without --root the file becomes a root-level entry.
    """
    options = ImportOptions.from_config(app.config.import_options)
    options.flat = bool(category)
    if category:
        options.flat_category = category

    result = app.orchestrator().import_file(
        file.expanduser().resolve(),
        app.store_path(store),
        root=root.expanduser().resolve() if root else None,
        force=force,
        options=options,
    )

    if result.error_kind == ErrorKind.CONFIGURATION:
        app.console.print_error(result.error_message or "Invalid file")
        sys.exit(EXIT_FAILURE)
    if result.success and not result.imported:
        app.console.print_info(f"{file.name} is up to date, use --force to import anyway")
        return

    app.console.print_import_result(result)
    _exit_for(result.error_kind, result.success)


@cli.command()
@click.argument("output", required=False, type=click.Path(path_type=Path))
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--flat", is_flag=True, default=None, help="Write all files into OUTPUT without category folders")
@click.option("--name", "-n", "names", multiple=True, help="Export only this entry (repeatable)")
@click.option("--category", default=None, help="Export only entries below this category")
@pass_app
def export(
    app: AppContext,
    output: Optional[Path],
    store: Optional[Path],
    flat: Optional[bool],
    names: tuple[str, ...],
    category: Optional[str],
) -> None:
    """Export store entries as source files.

    OUTPUT is the target directory (default: paths.export_directory).
    Existing files are never overwritten.
    """
    options = ExportOptions.from_config(app.config.export)
    if flat:
        options.flat = True
    options.names = list(names) or None
    options.category_prefix = category

    with _cancel_on_interrupt() as cancel:
        result = app.orchestrator().run_export(
            app.store_path(store), app.export_directory(output), options, cancel=cancel
        )

    if result.error_kind in (ErrorKind.CONFIGURATION, ErrorKind.FATAL):
        app.console.print_error(result.error_message or "Export failed")
        sys.exit(EXIT_FAILURE)

    app.console.print_export_result(result)
    if not result.success:
        sys.exit(EXIT_FAILURE)


# ============================================================================
# Backups
# ============================================================================


@cli.command()
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--backup", "-b", "backup", type=click.Path(path_type=Path), help="Backup to restore (default: latest)")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def rollback(app: AppContext, store: Optional[Path], backup: Optional[Path], yes: bool) -> None:
    """Restore the store from a backup."""
    store_path = app.store_path(store)
    orchestrator = app.orchestrator()

    target = backup.expanduser().resolve() if backup else None
    if target is not None and not target.is_file():
        app.console.print_error(f"Backup file not found: {target}")
        sys.exit(EXIT_FAILURE)
    if target is None:
        latest = orchestrator.backups.latest(store_path)
        if latest is None:
            app.console.print_error(f"No backups found for {store_path}")
            sys.exit(EXIT_FAILURE)
        target = latest.path

    if not yes and not app.console.confirm(f"Replace {store_path.name} with {target.name}?", default=False):
        app.console.print_warning("Rollback cancelled")
        sys.exit(EXIT_FAILURE)

    try:
        restored = orchestrator.rollback(store_path, target)
    except RollbackError as e:
        app.console.print_rollback_error(e)
        sys.exit(EXIT_ROLLBACK_FAILED)

    app.console.print_success(f"Store restored from {restored}")


@cli.group()
def backups() -> None:
    """Store backup commands."""
    pass


@backups.command("list")
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@pass_app
def backups_list(app: AppContext, store: Optional[Path]) -> None:
    """List backups of the store, newest first."""
    store_path = app.store_path(store)
    app.console.print_backups(app.orchestrator().backups.list_backups(store_path), store_path)


@backups.command("prune")
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--keep", "-k", type=click.IntRange(min=0), default=None, help="Number of backups to keep")
@pass_app
def backups_prune(app: AppContext, store: Optional[Path], keep: Optional[int]) -> None:
    """Delete the oldest backups."""
    store_path = app.store_path(store)
    deleted = app.orchestrator().backups.prune(store_path, keep)
    if deleted:
        for path in deleted:
            app.console.print(f"  [red]×[/red] {path.name}")
        app.console.print_success(f"Deleted {len(deleted)} backup(s)")
    else:
        app.console.print_info("Nothing to prune")


# ============================================================================
# Ledger
# ============================================================================


@cli.group()
def ledger() -> None:
    """Change ledger commands."""
    pass


@ledger.command("show")
@pass_app
def ledger_show(app: AppContext) -> None:
    """Show imported entries and their timestamps."""
    tracker = app.orchestrator().ledger
    app.console.print_ledger(tracker.entries(), tracker.ledger_path)
    last = tracker.last_import_date()
    if last is not None:
        app.console.print(f"[dim]Last import: {last:%Y-%m-%d %H:%M}[/dim]")


@ledger.command("remove")
@click.argument("name")
@click.argument("category", required=False)
@click.option("--store", "-s", "store", type=click.Path(path_type=Path), help="Store file")
@click.option("--ledger-only", is_flag=True, help="Forget the entry without touching the store")
@pass_app
def ledger_remove(
    app: AppContext,
    name: str,
    category: Optional[str],
    store: Optional[Path],
    ledger_only: bool,
) -> None:
    """Remove an entry from the store and the ledger.

    CATEGORY defaults to the root category.
    """
    identity = EntryIdentity(name, category or app.config.naming.root_category)
    orchestrator = app.orchestrator()

    if ledger_only:
        if orchestrator.ledger.remove(identity):
            app.console.print_success(f"Removed {identity} from the ledger")
            return
        app.console.print_error(f"Not in ledger: {identity}")
        sys.exit(EXIT_FAILURE)

    result = orchestrator.remove_entry(identity, app.store_path(store))
    app.console.print_removal_result(result)
    _exit_for(result.error_kind, result.success)


@ledger.command("purge")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_app
def ledger_purge(app: AppContext, yes: bool) -> None:
    """Forget every imported entry. The next import treats all files as new."""
    if not yes and not app.console.confirm("Clear the ledger and manifest?", default=False):
        app.console.print_warning("Purge cancelled")
        sys.exit(EXIT_FAILURE)
    count = app.orchestrator().ledger.purge()
    app.console.print_success(f"Removed {count} ledger entr{'y' if count == 1 else 'ies'}")


@ledger.command("cleanup")
@pass_app
def ledger_cleanup(app: AppContext) -> None:
    """Drop ledger entries whose source file no longer exists."""
    removed = app.orchestrator().ledger.cleanup_orphans()
    for entry in removed:
        app.console.print(f"  [red]×[/red] {entry.name} [dim]({entry.category})[/dim]")
    if removed:
        app.console.print_success(f"Removed {len(removed)} orphaned entr{'y' if len(removed) == 1 else 'ies'}")
    else:
        app.console.print_info("No orphaned entries")


# ============================================================================
# Store
# ============================================================================


@cli.group()
def store() -> None:
    """Document store commands."""
    pass


@store.command("init")
@click.argument("path", required=False, type=click.Path(path_type=Path))
@pass_app
def store_init(app: AppContext, path: Optional[Path]) -> None:
    """Create an empty store file."""
    store_path = app.store_path(path)
    try:
        ArchiveStore.create(store_path)
    except FileExistsError as e:
        app.console.print_error(str(e))
        sys.exit(EXIT_FAILURE)
    app.console.print_success(f"Created store: {store_path}")


@store.command("list")
@click.option("--store", "-s", "store_option", type=click.Path(path_type=Path), help="Store file")
@click.option("--category", default="", help="Only entries below this category")
@pass_app
def store_list(app: AppContext, store_option: Optional[Path], category: str) -> None:
    """List the entries held by the store."""
    store_path = app.store_path(store_option)
    archive = ArchiveStore()
    try:
        archive.open(store_path)
        entries = archive.list_entries(category)
    except FatalStoreError as e:
        app.console.print_error(str(e))
        sys.exit(EXIT_FAILURE)
    finally:
        archive.close()
    app.console.print_store_entries(entries, store_path)


# ============================================================================
# Configuration
# ============================================================================


@cli.group()
def config() -> None:
    """Configuration file commands."""
    pass


@config.command("init")
@pass_app
def config_init(app: AppContext) -> None:
    """Create a configuration file with default values."""
    path, created = ensure_config_exists(app.config_path)
    if created:
        app.console.print_success(f"Created configuration: {path}")
    else:
        app.console.print_info(f"Configuration already exists: {path}")


@config.command("show")
@pass_app
def config_show(app: AppContext) -> None:
    """Show the effective configuration."""
    app.console.print_config_summary(
        str(app.config_path), app.config.paths.store_path, app.config.paths.source_directory
    )
    data = app.config.model_dump(mode="json", by_alias=True)
    app.console.print(yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True), markup=False)


@config.command("validate")
@click.argument("file", required=False, type=click.Path(path_type=Path))
@pass_app
def config_validate(app: AppContext, file: Optional[Path]) -> None:
    """Check a configuration file for errors."""
    path = file or app.config_path
    valid, errors = validate_config_file(path)
    if valid:
        app.console.print_success(f"Configuration is valid: {path}")
        return
    app.console.print_error(f"Configuration is invalid: {path}")
    for error in errors:
        app.console.print(f"  [red]✗[/red] {error}")
    sys.exit(EXIT_FAILURE)


@config.command("path")
@pass_app
def config_path_cmd(app: AppContext) -> None:
    """Print the configuration file path."""
    click.echo(str(app.config_path))


if __name__ == "__main__":
    cli()
