"""
AssetRecord - Manifest entry for one processed source file.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


@dataclass
class Placeholder:
    """
    Inline blur preview for a raster source.

    Attributes:
        base64: data: URI of the tiny encoded preview
        width: Source width in pixels
        height: Source height in pixels
        aspect_ratio: width / height of the source
    """
    base64: str
    width: int
    height: int
    aspect_ratio: float

    def to_dict(self) -> dict:
        return {
            'base64': self.base64,
            'width': self.width,
            'height': self.height,
            'aspectRatio': self.aspect_ratio,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Placeholder':
        return cls(
            base64=data['base64'],
            width=data['width'],
            height=data['height'],
            aspect_ratio=data.get('aspectRatio', data.get('aspect_ratio', 0.0)),
        )


@dataclass
class AssetRecord:
    """
    What the last processing run produced for a source file.

    Attributes:
        hash: Content fingerprint of the source at processing time
        outputs: Keys of the variants that were uploaded successfully
        size: Source size in bytes
        updated: ISO timestamp of the processing run
        placeholder: Optional inline preview
        failed: Keys that could not be produced; forces reprocessing
    """
    hash: str
    outputs: List[str] = field(default_factory=list)
    size: int = 0
    updated: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    placeholder: Optional[Placeholder] = None
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every planned output was uploaded."""
        return not self.failed

    @property
    def output_count(self) -> int:
        return len(self.outputs)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = {
            'hash': self.hash,
            'outputs': list(self.outputs),
            'size': self.size,
            'updated': self.updated,
        }
        if self.placeholder is not None:
            data['placeholder'] = self.placeholder.to_dict()
        if self.failed:
            data['failed'] = list(self.failed)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'AssetRecord':
        """Create from dictionary."""
        placeholder = data.get('placeholder')
        return cls(
            hash=data['hash'],
            outputs=list(data.get('outputs', [])),
            size=data.get('size', 0),
            updated=data.get('updated', ''),
            placeholder=Placeholder.from_dict(placeholder) if placeholder else None,
            failed=list(data.get('failed', [])),
        )

    def format_status(self, path: str) -> str:
        """Human-readable one-line status, e.g. 'images/hero.jpg - 6 outputs (1.2 MB source)'."""
        extra = " + placeholder" if self.placeholder else ""
        return f"{path} - {self.output_count} outputs{extra} ({self._format_bytes(self.size)} source)"

    @staticmethod
    def _format_bytes(bytes_val: Optional[int]) -> str:
        """Format bytes as human-readable string."""
        if bytes_val is None:
            return "unknown"
        for unit in ['B', 'KB', 'MB', 'GB']:
            if bytes_val < 1024:
                return f"{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{bytes_val:.1f} TB"
