"""
LocalClient - Filesystem-backed object store with the S3Client interface.

Useful for local development (serving ./dist-assets through the edge server)
and for tests.
"""

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .exceptions import ConfigurationError, StoreTransientError
from .stored_object import IMMUTABLE_CACHE_CONTROL, StoredObject
from .variant_generator import get_content_type


@dataclass
class LocalConfig:
    """
    Local storage settings.

    Attributes:
        root_path: Directory that holds the objects
        prefix: Optional sub-directory used as key prefix
        create: Create root_path if it does not exist
    """
    root_path: str
    prefix: str = ''
    create: bool = True

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []
        if not self.root_path:
            errors.append("Local root path is not set")
        elif not os.path.isdir(self.root_path) and not self.create:
            errors.append(f"Local root does not exist: {self.root_path}")
        return errors

    def ensure_valid(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigurationError("Local configuration invalid: " + "; ".join(errors), errors)

    @property
    def base_path(self) -> Path:
        base = Path(self.root_path)
        return base / self.prefix.strip('/') if self.prefix else base


class LocalClient:
    """
    Stores objects as files below config.base_path, one file per key.
    """

    def __init__(self, config: LocalConfig, logger: Optional[logging.Logger] = None):
        config.ensure_valid()
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        if config.create:
            config.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        base = self.config.base_path.resolve()
        path = (base / key.lstrip('/')).resolve()
        if base != path and base not in path.parents:
            raise ValueError(f"Key escapes storage root: {key}")
        return path

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream',
        cache_control: str = IMMUTABLE_CACHE_CONTROL
    ) -> None:
        """Write an object atomically."""
        path = self._path(key)
        tmp_path = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix='.upload_')
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreTransientError(f"put {key} failed: {e}") from e

    def head(self, key: str) -> Optional[StoredObject]:
        """Object metadata from stat(), or None if absent. The body is not read."""
        try:
            path = self._path(key)
        except ValueError:
            return None
        if not path.is_file():
            return None
        return self._to_object(key, path)

    def get(self, key: str) -> Optional[StoredObject]:
        """Object with body, or None if absent."""
        obj = self.head(key)
        if obj is not None:
            obj.body = self._path(key).read_bytes()
        return obj

    def exists(self, key: str) -> bool:
        return self.head(key) is not None

    def list(self, prefix: str = '') -> Iterator[Tuple[str, int]]:
        """Yield (key, size) for every object whose key starts with prefix."""
        base = self.config.base_path
        if not base.is_dir():
            return
        for path in sorted(base.rglob('*')):
            if not path.is_file() or path.name.startswith('.upload_'):
                continue
            key = path.relative_to(base).as_posix()
            if key.startswith(prefix):
                yield key, path.stat().st_size

    @staticmethod
    def _to_object(key: str, path: Path) -> StoredObject:
        stat = path.stat()
        # Every put replaces the file, so inode, mtime and size identify the content
        version = f"{stat.st_ino}-{stat.st_mtime_ns}-{stat.st_size}"
        return StoredObject(
            key=key,
            size=stat.st_size,
            content_type=get_content_type(key),
            etag=f'"{hashlib.md5(version.encode()).hexdigest()}"',
            cache_control=IMMUTABLE_CACHE_CONTROL,
            last_modified=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
        )
