"""
StoredObject - An object read back from the store, with its HTTP metadata.
"""

from dataclasses import dataclass
from typing import Optional

IMMUTABLE_CACHE_CONTROL = 'public, max-age=31536000, immutable'


@dataclass
class StoredObject:
    """
    Object metadata, plus the body when fetched with get().

    Attributes:
        key: Key relative to the configured prefix
        size: Size in bytes
        content_type: Stored Content-Type
        etag: Quoted entity tag
        cache_control: Stored Cache-Control, if any
        last_modified: ISO timestamp
        body: Object bytes (None for head())
    """
    key: str
    size: int
    content_type: str = 'application/octet-stream'
    etag: Optional[str] = None
    cache_control: Optional[str] = None
    last_modified: Optional[str] = None
    body: Optional[bytes] = None
