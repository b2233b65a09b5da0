"""
SyncProgress - Per-file progress output and user hooks.
"""

import logging
from typing import Callable, Optional

from .sync_stats import SyncStats


class SyncProgress:
    """
    Reports per-file progress and forwards events to optional hooks.

    Hook failures are logged and never interrupt the run.
    """

    def __init__(
        self,
        show_files: bool = False,
        log_interval: int = 50,
        on_progress: Optional[Callable[[str, str], None]] = None,
        on_error: Optional[Callable[[str, Exception], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_files: If True, print each file as it's handled
            log_interval: Log a summary line every N files (when not show_files)
            on_progress: Hook called with (relative path, status)
            on_error: Hook called with (relative path, exception)
            logger: Optional logger instance
        """
        self.show_files = show_files
        self.log_interval = log_interval
        self.on_progress = on_progress
        self.on_error = on_error
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0

    def _call_hook(self, hook, *args) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception as e:
            self.logger.warning(f"Progress hook failed: {e}")

    def on_file_processed(self, path: str, outputs: int, failed: int = 0) -> None:
        """Called when a file has been processed."""
        status = 'processed' if failed == 0 else 'partial'
        if self.show_files:
            suffix = f", {failed} failed" if failed else ""
            print(f"  [OK] {path} -> {outputs} outputs{suffix}")
        self._call_hook(self.on_progress, path, status)

    def on_file_skipped(self, path: str, reason: str) -> None:
        """Called when a file is skipped."""
        if self.show_files:
            print(f"  [SKIP] {path} -> {reason}")
        self._call_hook(self.on_progress, path, 'skipped')

    def on_file_error(self, path: str, error: Exception) -> None:
        """Called for each failed unit of a file."""
        if self.show_files:
            print(f"  [ERROR] {path} -> {error}")
        self._call_hook(self.on_error, path, error)

    def on_dry_run(self, path: str, variants: int) -> None:
        """Called in dry-run mode."""
        if self.show_files:
            print(f"  [DRY RUN] {path} -> would generate {variants} outputs")
        self._call_hook(self.on_progress, path, 'dry-run')

    def on_progress_update(self, stats: SyncStats) -> None:
        """Log a summary line every log_interval files."""
        total_done = stats.completed_count
        if not self.show_files and total_done - self.last_logged >= self.log_interval:
            self.last_logged = total_done
            self.logger.info(
                f"Progress: {stats.processed} processed, {stats.skipped} skipped, "
                f"{stats.errors} errors ({total_done}/{stats.total_files})"
            )
