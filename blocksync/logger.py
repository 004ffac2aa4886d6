# BlockSync Logging
# Console and per-run file logging, run log retention, exchange records

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from blocksync.sync.naming import EntryIdentity

logger = logging.getLogger(__name__)
exchange_logger = logging.getLogger("blocksync.exchange")

LOG_FILE_PREFIX = "blocksync_"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    enable_file: bool = True,
    retention_days: int = 30,
    console: Optional[Console] = None,
) -> Optional[Path]:
    """
    Configure the blocksync logger hierarchy.

    Attaches a RichHandler for the console and, when enabled, a file handler
    writing to a new "blocksync_YYYYmmdd_HHMMSS.log" in log_dir. Run logs
    older than retention_days are removed.

    Returns:
        Path of the run log file, or None when file logging is off.
    """
    root = logging.getLogger("blocksync")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(logging.DEBUG)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.addHandler(console_handler)

    if not enable_file or log_dir is None:
        return None

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.warning("File logging disabled, cannot write to %s: %s", log_dir, e)
        return None

    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(file_handler)

    cleanup_old_logs(log_dir, retention_days)
    return log_file


def cleanup_old_logs(log_dir: Path, retention_days: int) -> list[Path]:
    """Delete run logs older than retention_days. Failures are logged and skipped."""
    if not log_dir.is_dir():
        return []

    cutoff = time.time() - retention_days * 86400
    deleted: list[Path] = []
    for path in log_dir.glob(f"{LOG_FILE_PREFIX}*.log"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted.append(path)
        except OSError as e:
            logger.warning("Could not delete old log %s: %s", path, e)
    return deleted


def log_exchange(
    operation: str,
    path: Path | str,
    identity: Optional["EntryIdentity"],
    *,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """Record one imported, exported or removed entry."""
    name = identity.name if identity else "-"
    category = identity.category if identity else "-"
    if success:
        exchange_logger.info("%s OK name=%s category=%s path=%s", operation, name, category, path)
    else:
        exchange_logger.warning(
            "%s FAILED name=%s category=%s path=%s error=%s", operation, name, category, path, error or "unknown"
        )
