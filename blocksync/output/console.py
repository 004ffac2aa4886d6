# BlockSync Console Output
# Rich-based console output for user-friendly display

from pathlib import Path
from typing import Optional

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table

from blocksync.errors import RollbackError
from blocksync.sync.backup import BackupHandle
from blocksync.sync.ledger import LedgerEntry
from blocksync.sync.orchestrator import (
    BatchResult,
    ChangeStatus,
    ExportResult,
    ImportResult,
    QueryResult,
    RemovalResult,
)
from blocksync.sync.scanner import FileDescriptor
from blocksync.sync.store import StoreEntry

_STATUS_STYLES = {
    ChangeStatus.NEW: ("[yellow]+[/yellow]", "yellow", "new"),
    ChangeStatus.MODIFIED: ("[cyan]~[/cyan]", "cyan", "modified"),
    ChangeStatus.UP_TO_DATE: ("[green]✓[/green]", "green", "up to date"),
    ChangeStatus.MISSING: ("[red]![/red]", "red", "missing"),
    ChangeStatus.REMOVED: ("[dim]×[/dim]", "dim", "removed"),
}


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


class Console:
    """
    Console output manager using Rich.

    Provides formatted output for scan, import, export and backup operations.
    """

    def __init__(self, *, verbose: bool = False, colored: bool = True):
        """
        Initialize console.

        Args:
            verbose: Enable verbose output.
            colored: Enable colored output.
        """
        self.verbose = verbose
        self._console = RichConsole(force_terminal=colored, no_color=not colored)

    @property
    def rich(self) -> RichConsole:
        """Underlying Rich console, shared with the logging handler."""
        return self._console

    def print(self, *args, **kwargs) -> None:
        """Print to console."""
        self._console.print(*args, **kwargs)

    def print_error(self, message: str) -> None:
        """Print error message."""
        self._console.print(f"[red]Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print warning message."""
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self._console.print(f"[green]{message}[/green]")

    def print_info(self, message: str) -> None:
        """Print info message."""
        self._console.print(f"[blue]{message}[/blue]")

    # Query

    def print_query_result(self, result: QueryResult) -> None:
        """
        Print the classification of a source directory.

        Up-to-date rows are only listed in verbose mode; invalid files are
        always listed with their reason.
        """
        if not result.success or result.scan is None:
            self.print_error(result.error_message or "Scan failed")
            return

        scan = result.scan
        self._console.print(
            f"\n[bold]{scan.root_path}[/bold]  "
            f"[dim]{scan.total_files_scanned} files in {result.scan_time:.2f}s[/dim]"
        )

        rows = [d for d in result.details if self.verbose or d.status != ChangeStatus.UP_TO_DATE]
        if rows:
            table = Table(show_header=True, header_style="bold")
            table.add_column("", width=1)
            table.add_column("Name")
            table.add_column("Category")
            table.add_column("Status")
            table.add_column("Modified", style="dim")
            table.add_column("Last import", style="dim")
            for detail in rows:
                icon, style, label = _STATUS_STYLES[detail.status]
                name = detail.identity.name if detail.identity else Path(detail.path or "").name
                category = detail.identity.category if detail.identity else "-"
                table.add_row(
                    icon,
                    name,
                    category,
                    f"[{style}]{label}[/{style}]",
                    _fmt_time(detail.current_modified),
                    _fmt_time(detail.last_imported),
                )
            self._console.print(table)
        else:
            self._console.print("  [green]✓[/green] Everything is up to date")

        if scan.invalid:
            self._console.print(f"\n[red]{len(scan.invalid)} invalid file(s):[/red]")
            for descriptor in scan.invalid:
                self._console.print(f"    [red]✗[/red] {descriptor.relative_path}: {descriptor.validation_error}")

        if scan.skipped_directories:
            self.print_warning(f"{len(scan.skipped_directories)} directory(ies) could not be read, result is partial")
            if self.verbose:
                for directory in scan.skipped_directories:
                    self._console.print(f"    [dim]{directory}[/dim]")

        parts = [
            f"[yellow]{result.count(ChangeStatus.NEW)} new[/yellow]",
            f"[cyan]{result.count(ChangeStatus.MODIFIED)} modified[/cyan]",
            f"[green]{result.count(ChangeStatus.UP_TO_DATE)} up to date[/green]",
            f"[red]{result.count(ChangeStatus.MISSING)} missing[/red]",
            f"[dim]{result.count(ChangeStatus.REMOVED)} removed[/dim]",
        ]
        self._console.print(
            Panel(
                ", ".join(parts) + f"\nInvalid: {result.invalid_count}  Ignored: {result.ignored_count}",
                title="Summary",
                border_style="blue",
            )
        )

    def print_new_entries(self, descriptors: list[FileDescriptor]) -> None:
        """List files that would create new store entries."""
        self._console.print(f"\n[bold]{len(descriptors)} new entr{'y' if len(descriptors) == 1 else 'ies'}:[/bold]")
        for descriptor in descriptors:
            self._console.print(f"    [yellow]+[/yellow] {descriptor.name} [dim]({descriptor.category})[/dim]")

    # Batches

    def print_import_result(self, result: ImportResult) -> None:
        """Print import batch summary."""
        if self.verbose:
            for descriptor in result.imported:
                self._console.print(f"    [green]✓[/green] {descriptor.name} [dim]({descriptor.category})[/dim]")
        self._print_failures(result)

        if result.rollback_failed:
            self._print_rollback_failed(result)
            return

        body = (
            f"Imported: {result.imported_count}\n"
            f"Failed: {result.failed_count}\n"
            f"Skipped: {result.skipped_count}\n"
            f"Time: {result.processing_time:.2f}s"
        )
        if result.backup is not None:
            body += f"\nBackup: {result.backup.path}"
        if result.rolled_back:
            body += "\n[yellow]Store restored from backup[/yellow]"
        if result.error_message:
            body += f"\n{result.error_message}"

        if result.success and not result.cancelled:
            title_style = "yellow" if result.has_failures else "green"
            self._console.print(Panel(body, title="Import completed", border_style=title_style))
        elif result.cancelled:
            self._console.print(Panel(body, title="Import cancelled", border_style="yellow"))
        else:
            self._console.print(Panel(body, title="Import failed", border_style="red"))

    def print_removal_result(self, result: RemovalResult) -> None:
        """Print outcome of an explicit entry removal."""
        if result.rollback_failed:
            self._print_rollback_failed(result)
            return
        if not result.success:
            self.print_error(result.error_message or f"Could not remove {result.identity}")
            return

        store = "removed" if result.removed_from_store else "not present"
        ledger = "removed" if result.removed_from_ledger else "not present"
        self.print_success(f"{result.identity}: store {store}, ledger {ledger}")

    def print_export_result(self, result: ExportResult) -> None:
        """Print export batch summary."""
        if self.verbose:
            for path in result.exported:
                self._console.print(f"    [green]✓[/green] {path}")
        for failure in result.failed:
            self._console.print(f"    [red]✗[/red] {failure}")

        body = (
            f"Exported: {result.exported_count}\n"
            f"Failed: {result.failed_count}\n"
            f"Directory: {result.export_directory}\n"
            f"Time: {result.processing_time:.2f}s"
        )
        if result.error_message:
            body += f"\n{result.error_message}"
        if result.success:
            border = "yellow" if result.failed or result.cancelled else "green"
            self._console.print(Panel(body, title="Export completed", border_style=border))
        else:
            self._console.print(Panel(body, title="Export failed", border_style="red"))

    def _print_failures(self, result: BatchResult) -> None:
        for failure in result.failed:
            self._console.print(f"    [red]✗[/red] {failure}")

    def print_rollback_error(self, error: RollbackError) -> None:
        """Print a failed explicit rollback."""
        self._rollback_failed_panel(str(error), error.backup_path or "-")

    def _print_rollback_failed(self, result: BatchResult) -> None:
        self._rollback_failed_panel(result.error_message or "", result.backup.path if result.backup else "-")

    def _rollback_failed_panel(self, message: str, backup: Path | str) -> None:
        self._console.print(
            Panel(
                f"[bold red]STORE MAY BE INCONSISTENT[/bold red]\n"
                f"{message}\n"
                f"Backup left at: {backup}\n"
                f"Restore it manually or run 'blocksync rollback --backup {backup}'",
                title="Rollback failed",
                border_style="bold red",
            )
        )

    # Listings

    def print_backups(self, backups: list[BackupHandle], store_path: Path) -> None:
        """Print snapshots of a store, newest first."""
        if not backups:
            self._console.print(f"[dim]No backups found for {store_path}[/dim]")
            return

        table = Table(show_header=True, header_style="bold", title=f"Backups of {store_path.name}")
        table.add_column("#", justify="right")
        table.add_column("Backup")
        table.add_column("Created", style="dim")
        table.add_column("Size", justify="right", style="dim")
        for index, handle in enumerate(backups, start=1):
            table.add_row(str(index), handle.path.name, handle.created_at.strftime("%Y-%m-%d %H:%M:%S"), str(handle.size))
        self._console.print(table)

    def print_ledger(self, entries: list[LedgerEntry], ledger_path: Optional[Path] = None) -> None:
        """Print ledger entries."""
        if not entries:
            self._console.print("[dim]Ledger is empty[/dim]")
            return

        table = Table(show_header=True, header_style="bold", title=str(ledger_path) if ledger_path else None)
        table.add_column("Name")
        table.add_column("Category")
        table.add_column("Last modified")
        table.add_column("Imported", style="dim")
        if self.verbose:
            table.add_column("Source", style="dim")
        for entry in entries:
            row = [entry.name, entry.category, _fmt_time(entry.last_modified), _fmt_time(entry.imported_at)]
            if self.verbose:
                row.append(entry.source_path)
            table.add_row(*row)
        self._console.print(table)

    def print_store_entries(self, entries: list[StoreEntry], store_path: Path) -> None:
        """Print store entries."""
        if not entries:
            self._console.print(f"[dim]No entries in {store_path}[/dim]")
            return

        table = Table(show_header=True, header_style="bold", title=f"{store_path.name} ({len(entries)} entries)")
        table.add_column("Name")
        table.add_column("Category")
        for entry in entries:
            table.add_row(entry.name, entry.category)
        self._console.print(table)

    def print_config_summary(self, config_path: str, store_path: Optional[str], source_directory: Optional[str]) -> None:
        """Print configuration summary."""
        self._console.print(
            Panel(
                f"Config: {config_path}\n"
                f"Store: {store_path or '-'}\n"
                f"Source directory: {source_directory or '-'}",
                title="BlockSync Configuration",
                border_style="blue",
            )
        )

    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask for confirmation.

        Args:
            message: Confirmation message.
            default: Default value if user just presses enter.

        Returns:
            True if confirmed.
        """
        suffix = " [Y/n]" if default else " [y/N]"
        response = self._console.input(f"{message}{suffix}: ").strip().lower()

        if not response:
            return default

        return response in ("y", "yes", "j", "ja")


def create_console(*, verbose: bool = False, colored: bool = True) -> Console:
    """
    Create a console instance.

    Args:
        verbose: Enable verbose output.
        colored: Enable colored output.

    Returns:
        Console instance.
    """
    return Console(verbose=verbose, colored=colored)
