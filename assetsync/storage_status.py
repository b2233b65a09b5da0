"""
StorageStatus - Bucket usage snapshot stored alongside the manifest.
"""

from dataclasses import dataclass, asdict

from .asset_config import DEFAULT_STORAGE_LIMIT


@dataclass
class StorageStatus:
    """
    Bucket usage snapshot.

    Attributes:
        used: Bytes stored
        limit: Quota in bytes
        percentage: used / limit, rounded to a whole percent
    """
    used: int = 0
    limit: int = DEFAULT_STORAGE_LIMIT
    percentage: int = 0

    WARNING_PERCENT = 80
    CRITICAL_PERCENT = 90

    @classmethod
    def from_usage(cls, used: int, limit: int = DEFAULT_STORAGE_LIMIT) -> 'StorageStatus':
        percentage = round(used / limit * 100) if limit > 0 else 0
        return cls(used=used, limit=limit, percentage=percentage)

    @property
    def level(self) -> str:
        """'critical', 'warning' or 'ok'."""
        if self.percentage > self.CRITICAL_PERCENT:
            return 'critical'
        if self.percentage > self.WARNING_PERCENT:
            return 'warning'
        return 'ok'

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'StorageStatus':
        """Create from dictionary."""
        return cls(
            used=data.get('used', 0),
            limit=data.get('limit', DEFAULT_STORAGE_LIMIT),
            percentage=data.get('percentage', 0),
        )
