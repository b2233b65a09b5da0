"""
SyncStats - Counters for one batch run.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class SyncStats:
    """
    Statistics for a sync run.

    Attributes:
        total_files: Files found in the source directories
        processed: Files (re)processed this run
        skipped: Files skipped (unchanged, unsupported or skip rule)
        errors: Failed units (encode or upload), counted per variant
        uploads: Objects written to the store
        bytes_uploaded: Total bytes written
        start_time: Start timestamp
        error_details: One message per failure
    """
    total_files: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    uploads: int = 0
    bytes_uploaded: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)

    def record_error(self, message: str) -> None:
        self.errors += 1
        self.error_details.append(message)

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def rate_per_minute(self) -> float:
        """Files processed per minute."""
        if self.elapsed_seconds > 0:
            return self.processed / self.elapsed_seconds * 60
        return 0.0

    @property
    def completed_count(self) -> int:
        """Files handled so far (processed + skipped)."""
        return self.processed + self.skipped

    def summary(self) -> str:
        """One-line end-of-run summary."""
        return (
            f"{self.processed} processed, {self.skipped} skipped, {self.errors} errors, "
            f"{self.uploads} uploads ({self.elapsed_seconds:.1f}s)"
        )
