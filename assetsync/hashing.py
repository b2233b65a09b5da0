"""
Content fingerprints and the change check used to skip unchanged sources.
"""

import hashlib
from pathlib import Path
from typing import Union

HASH_CHUNK_SIZE = 1024 * 1024

CHANGED = 'changed'
UNCHANGED = 'unchanged'


def hash_bytes(data: bytes) -> str:
    """SHA-256 of a byte string, hex-encoded."""
    return hashlib.sha256(data).hexdigest()


def hash_file(path: Union[str, Path]) -> str:
    """SHA-256 of a file's contents, read in chunks."""
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        while chunk := f.read(HASH_CHUNK_SIZE):
            h.update(chunk)
    return h.hexdigest()


def detect_change(relative_path: str, fingerprint: str, manifest) -> str:
    """
    Compare a fingerprint against the manifest entry for a path.

    Returns UNCHANGED only when an entry exists with the same hash and
    every output of that entry was produced.
    Pure lookup: safe to call any number of times.
    """
    entry = manifest.get_entry(relative_path)
    if entry is not None and entry.hash == fingerprint and entry.complete:
        return UNCHANGED
    return CHANGED
