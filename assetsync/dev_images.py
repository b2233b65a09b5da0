"""
DevImages - Keep a local images directory in step with the originals in the bucket.

Developers who clone the site without the source images can list what the
bucket holds but the working copy lacks (check) and download it (pull).
Generated variants (hero-800.webp) are never pulled.
"""

import logging
import os
import posixpath
import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import StoreTransientError
from .scanner import Scanner

REMOTE_ORIGINAL_PATTERN = re.compile(r'\.(jpg|jpeg|png|gif|svg)$', re.IGNORECASE)
VARIANT_PATTERN = re.compile(r'-\d+\.(webp|avif)$', re.IGNORECASE)
LOCAL_IMAGE_PATTERN = re.compile(r'\.(jpg|jpeg|png|gif|svg|webp|avif)$', re.IGNORECASE)


@dataclass
class ImageSyncStatus:
    """
    Remote originals compared with the local directory.

    All names are relative to the images directory / key prefix.
    """
    remote: List[str] = field(default_factory=list)
    local: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    extra: List[str] = field(default_factory=list)


@dataclass
class PullResult:
    """Names downloaded and names that could not be fetched."""
    downloaded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class DevImages:
    """
    Compares and pulls original images between the store and a local directory.
    """

    def __init__(
        self,
        store,
        local_dir: str,
        prefix: str = 'images',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize helper.

        Args:
            store: Object store with list() and get()
            local_dir: Directory originals are pulled into (e.g., public/images)
            prefix: Key prefix the originals live under
            logger: Optional logger instance
        """
        self.store = store
        self.local_dir = Path(local_dir)
        self.prefix = prefix.strip('/')
        self.logger = logger or logging.getLogger(__name__)

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def list_remote(self) -> List[str]:
        """
        Original images in the store, without generated variants.

        Raises:
            StoreTransientError: The listing failed
        """
        head = f"{self.prefix}/" if self.prefix else ''
        names = set()
        for key, _ in self.store.list(head):
            if VARIANT_PATTERN.search(key) or not REMOTE_ORIGINAL_PATTERN.search(key):
                continue
            names.add(key[len(head):])
        return sorted(names)

    def list_local(self) -> List[str]:
        """Image files under the local directory."""
        scanner = Scanner([(str(self.local_dir), '')], logger=self.logger)
        return sorted(
            asset.relative_path for asset in scanner.scan()
            if LOCAL_IMAGE_PATTERN.search(asset.relative_path)
        )

    def check(self) -> ImageSyncStatus:
        """Compare remote originals with the local directory."""
        remote = self.list_remote()
        local = self.list_local()
        remote_set, local_set = set(remote), set(local)
        return ImageSyncStatus(
            remote=remote,
            local=local,
            missing=[name for name in remote if name not in local_set],
            extra=[name for name in local if name not in remote_set],
        )

    def download(self, name: str) -> bool:
        """
        Fetch one original into the local directory.

        Returns:
            True if the file was written
        """
        normalized = posixpath.normpath(name)
        if normalized.startswith('..') or posixpath.isabs(normalized):
            self.logger.error(f"Refusing to write outside {self.local_dir}: {name}")
            return False

        key = self._key(normalized)
        try:
            obj = self.store.get(key)
        except StoreTransientError as e:
            self.logger.error(f"Failed to download {key}: {e}")
            return False
        if obj is None or obj.body is None:
            self.logger.error(f"Failed to download {key}: not found")
            return False

        path = self.local_dir / normalized
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix='.download_')
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(obj.body)
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            self.logger.error(f"Failed to write {path}: {e}")
            return False

        self.logger.debug(f"Downloaded {key} -> {path}")
        return True

    def pull(self, status: Optional[ImageSyncStatus] = None, dry_run: bool = False) -> PullResult:
        """
        Download every original missing locally.

        Args:
            status: Result of a previous check() (computed if omitted)
            dry_run: If True, report what would be downloaded without writing
        """
        status = status or self.check()
        result = PullResult()

        for name in status.missing:
            if dry_run:
                self.logger.info(f"[DRY RUN] Would download {self._key(name)}")
                result.downloaded.append(name)
            elif self.download(name):
                result.downloaded.append(name)
            else:
                result.failed.append(name)

        self.logger.info(f"Pull complete: {len(result.downloaded)} downloaded, {len(result.failed)} failed")
        return result
