"""
Reporter - Human-readable status and sync summaries.
"""

import logging
import sys
from collections import defaultdict
from typing import Optional, TextIO

from .dev_images import ImageSyncStatus, PullResult
from .manifest import Manifest
from .storage_status import StorageStatus
from .sync_stats import SyncStats


class Reporter:
    """
    Prints storage usage, manifest counts and end-of-run summaries.
    """

    BAR_LENGTH = 30

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def _format_bytes(self, bytes_val: int) -> str:
        """Format bytes as human-readable string."""
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} PB"

    def _usage_bar(self, percentage: int) -> str:
        filled = round(min(max(percentage, 0), 100) / 100 * self.BAR_LENGTH)
        return '#' * filled + '-' * (self.BAR_LENGTH - filled)

    def report_storage(self, status: StorageStatus) -> None:
        """Storage usage with a bar and threshold warnings."""
        used_gb = status.used / 1024 ** 3
        limit_gb = status.limit / 1024 ** 3

        self._print("Storage:")
        self._print(f"  Used:  {used_gb:.2f} GB / {limit_gb:.0f} GB")
        self._print(f"  Usage: {status.percentage}%")
        self._print(f"  [{self._usage_bar(status.percentage)}]")

        if status.level == 'critical':
            self._print(f"  CRITICAL: Storage usage above {StorageStatus.CRITICAL_PERCENT}%!")
        elif status.level == 'warning':
            self._print(f"  WARNING: Storage usage above {StorageStatus.WARNING_PERCENT}%")
        else:
            self._print("  Storage usage healthy")

    def report_manifest(self, manifest: Manifest) -> None:
        """Source, output and placeholder counts, broken down by top-level prefix."""
        self._print("Processed files:")
        if manifest.total_sources == 0:
            self._print("  No manifest entries (run sync first)")
            return

        self._print(f"  Source files: {manifest.total_sources}")
        self._print(f"  Output files: {manifest.total_outputs}")
        self._print(f"  Placeholders: {manifest.total_placeholders}")

        by_prefix = defaultdict(lambda: {'sources': 0, 'outputs': 0, 'bytes': 0, 'incomplete': 0})
        for path, record in manifest.items():
            prefix = path.split('/', 1)[0] if '/' in path else '.'
            stats = by_prefix[prefix]
            stats['sources'] += 1
            stats['outputs'] += record.output_count
            stats['bytes'] += record.size
            if not record.complete:
                stats['incomplete'] += 1

        for prefix in sorted(by_prefix):
            stats = by_prefix[prefix]
            line = (f"  {prefix:<12} {stats['sources']:>6} sources  {stats['outputs']:>6} outputs  "
                    f"{self._format_bytes(stats['bytes']):>10}")
            if stats['incomplete']:
                line += f"  ({stats['incomplete']} incomplete)"
            self._print(line)

    def report_status(self, manifest: Manifest, status: Optional[StorageStatus] = None) -> None:
        """Full status report used by the `status` command."""
        self._print("=" * 60)
        self._print("ASSET STORAGE STATUS")
        self._print("=" * 60)
        self._print()
        self.report_storage(status or manifest.storage)
        self._print()
        self.report_manifest(manifest)

    def report_sync(self, stats: SyncStats) -> None:
        """End-of-run summary, printed even when some units failed."""
        self._print()
        self._print("SYNC SUMMARY")
        self._print(f"  Processed: {stats.processed}")
        self._print(f"  Skipped:   {stats.skipped}")
        self._print(f"  Errors:    {stats.errors}")
        self._print(f"  Uploads:   {stats.uploads} ({self._format_bytes(stats.bytes_uploaded)})")
        self._print(f"  Time:      {stats.elapsed_seconds:.1f}s")
        for detail in stats.error_details:
            self._print(f"    - {detail}")

    def report_dev_images(self, status: ImageSyncStatus) -> None:
        """Remote originals versus the local images directory."""
        self._print("Image status:")
        self._print(f"  Remote originals: {len(status.remote)}")
        self._print(f"  Local images:     {len(status.local)}")
        self._print(f"  Missing locally:  {len(status.missing)}")
        self._print(f"  Extra locally:    {len(status.extra)}")

        if status.missing:
            self._print()
            self._print("Missing images (available remotely):")
            for name in status.missing:
                self._print(f"  - {name}")

        if status.extra:
            self._print()
            self._print("Extra local images (not uploaded):")
            for name in status.extra:
                self._print(f"  - {name}")

    def report_pull(self, result: PullResult) -> None:
        if not result.downloaded and not result.failed:
            self._print("All images are already synchronized")
            return
        self._print(f"Downloaded: {len(result.downloaded)}")
        self._print(f"Failed:     {len(result.failed)}")
        for name in result.failed:
            self._print(f"  - {name}")
