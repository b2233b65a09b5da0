"""
Manifest - Record of processed source files and the bucket usage snapshot.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .asset_config import DEFAULT_STORAGE_LIMIT
from .asset_record import AssetRecord, Placeholder
from .exceptions import StoreTransientError
from .storage_status import StorageStatus

logger = logging.getLogger(__name__)


@dataclass
class Manifest:
    """
    Map of relative source path -> AssetRecord, plus a StorageStatus.

    The manifest is the single source of truth for the skip decision: an
    entry is refreshed only when the source hash differs from the stored one.
    Entries for deleted sources are kept until prune_missing() is called.

    Attributes:
        processed: Entries keyed by relative source path
        storage: Last bucket usage snapshot
    """
    processed: Dict[str, AssetRecord] = field(default_factory=dict)
    storage: StorageStatus = field(default_factory=StorageStatus)

    def get_entry(self, path: str) -> Optional[AssetRecord]:
        """Entry for a relative source path, or None."""
        return self.processed.get(path)

    def record_entry(
        self,
        path: str,
        hash: str,
        outputs: List[str],
        source_size: int,
        placeholder: Optional[Placeholder] = None,
        failed: Optional[List[str]] = None
    ) -> AssetRecord:
        """Insert or replace the entry for a source path."""
        record = AssetRecord(
            hash=hash,
            outputs=list(outputs),
            size=source_size,
            updated=datetime.now(timezone.utc).isoformat(),
            placeholder=placeholder,
            failed=list(failed or []),
        )
        self.processed[path] = record
        return record

    def prune_missing(self, exists: Callable[[str], bool]) -> List[str]:
        """
        Drop entries whose source no longer exists.

        Args:
            exists: Relative source path -> whether the source is still present

        Returns:
            The removed paths
        """
        removed = [path for path in self.processed if not exists(path)]
        for path in removed:
            del self.processed[path]
        return removed

    def refresh_storage(self, store, limit: Optional[int] = None) -> StorageStatus:
        """
        Recompute the storage snapshot by listing the store.

        A listing failure keeps the previous snapshot.
        """
        limit = limit or self.storage.limit or DEFAULT_STORAGE_LIMIT
        try:
            used = sum(size for _, size in store.list())
        except StoreTransientError as e:
            logger.warning(f"Could not list storage, keeping previous status: {e}")
            return self.storage
        self.storage = StorageStatus.from_usage(used, limit)
        return self.storage

    def items(self) -> Iterator[Tuple[str, AssetRecord]]:
        return iter(sorted(self.processed.items()))

    @property
    def total_sources(self) -> int:
        return len(self.processed)

    @property
    def total_outputs(self) -> int:
        return sum(len(r.outputs) for r in self.processed.values())

    @property
    def total_placeholders(self) -> int:
        return sum(1 for r in self.processed.values() if r.placeholder is not None)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'processed': {path: record.to_dict() for path, record in sorted(self.processed.items())},
            'storage': self.storage.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Manifest':
        """Create from dictionary."""
        return cls(
            processed={
                path: AssetRecord.from_dict(entry)
                for path, entry in data.get('processed', {}).items()
            },
            storage=StorageStatus.from_dict(data.get('storage', {})),
        )

    def save(self, filepath: str) -> None:
        """Write the manifest atomically (temp file in the same directory, then rename)."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(self.to_dict(), f, indent=2)
                f.write('\n')
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.info(f"Manifest saved: {filepath} ({self.total_sources} sources, {self.total_outputs} outputs)")

    @classmethod
    def load(cls, filepath: str) -> 'Manifest':
        """Load from a JSON file; a missing file yields an empty manifest."""
        path = Path(filepath)
        if not path.exists():
            logger.info(f"No manifest at {filepath}, starting fresh")
            return cls()

        with open(path, 'r') as f:
            data = json.load(f)

        manifest = cls.from_dict(data)
        logger.debug(f"Loaded manifest: {filepath} ({manifest.total_sources} sources)")
        return manifest
