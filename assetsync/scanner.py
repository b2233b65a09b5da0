"""
Scanner - Enumerates source assets under the configured source directories.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class SourceAsset:
    """
    A file under a watched source directory.

    Attributes:
        path: Absolute filesystem path
        relative_path: POSIX key prefix + path below the source directory
    """
    path: str
    relative_path: str

    @property
    def extension(self) -> str:
        return os.path.splitext(self.path)[1].lower()

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    def read_bytes(self) -> bytes:
        with open(self.path, 'rb') as f:
            return f.read()

    @property
    def size(self) -> int:
        return os.path.getsize(self.path)


class Scanner:
    """
    Walks source directories depth-first and yields SourceAsset entries lazily.

    Hidden files and directories (leading '.') are ignored. Entries are
    sorted within each directory so runs are reproducible, and the walk can
    be restarted after a given relative path.
    """

    def __init__(
        self,
        sources: Iterable[Tuple[str, str]],
        base_dir: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize scanner.

        Args:
            sources: (directory, key prefix) pairs
            base_dir: Directory that relative source directories resolve against
            logger: Optional logger instance
        """
        self.sources = list(sources)
        self.base_dir = Path(base_dir or os.getcwd())
        self.logger = logger or logging.getLogger(__name__)

    def scan(self, resume_after: Optional[str] = None) -> Iterator[SourceAsset]:
        """
        Yield every file under every source directory.

        Args:
            resume_after: Skip entries up to and including this relative path
        """
        past_resume_point = resume_after is None

        for directory, prefix in self.sources:
            root = Path(directory)
            if not root.is_absolute():
                root = self.base_dir / root
            if not root.is_dir():
                self.logger.debug(f"Source directory not found, skipping: {root}")
                continue

            for asset in self._walk(root, prefix.strip('/')):
                if not past_resume_point:
                    if asset.relative_path == resume_after:
                        past_resume_point = True
                    continue
                yield asset

    def _walk(self, directory: Path, prefix: str) -> Iterator[SourceAsset]:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            self.logger.error(f"Cannot read directory {directory}: {e}")
            return

        for entry in entries:
            if entry.name.startswith('.'):
                continue
            rel = f"{prefix}/{entry.name}" if prefix else entry.name
            if entry.is_dir(follow_symlinks=False):
                yield from self._walk(Path(entry.path), rel)
            elif entry.is_file():
                yield SourceAsset(path=entry.path, relative_path=rel)
