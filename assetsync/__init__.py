"""
Asset processing and delivery for a static portfolio site.

Two cooperating parts:
    1. Sync: walk the source directories, generate resized WebP/AVIF variants,
       upload them to S3/R2 and record what was produced in a manifest
    2. Edge: serve /images/<path> with format negotiation and a bounded
       fallback chain when a variant is missing

Supports both S3-compatible and local filesystem storage.
"""

__version__ = "1.0.0"

from .exceptions import (
    AssetSyncError,
    ConfigurationError,
    EncodingError,
    NotFoundError,
    StoreTransientError,
    UploadError,
)
from .s3_config import S3Config
from .s3_client import S3Client
from .local_client import LocalConfig, LocalClient
from .asset_config import ProcessingConfig, ProcessingRule
from .asset_record import AssetRecord, Placeholder
from .storage_status import StorageStatus
from .manifest import Manifest
from .scanner import Scanner, SourceAsset
from .variant_generator import VariantGenerator
from .sync_stats import SyncStats
from .sync_progress import SyncProgress
from .processor import AssetProcessor
from .edge_resolver import EdgeResolver, NegotiationHints
from .edge_server import EdgeImageServer, create_app
from .reporter import Reporter

__all__ = [
    "AssetSyncError",
    "ConfigurationError",
    "EncodingError",
    "NotFoundError",
    "StoreTransientError",
    "UploadError",
    "S3Config",
    "S3Client",
    "LocalConfig",
    "LocalClient",
    "ProcessingConfig",
    "ProcessingRule",
    "AssetRecord",
    "Placeholder",
    "StorageStatus",
    "Manifest",
    "Scanner",
    "SourceAsset",
    "VariantGenerator",
    "SyncStats",
    "SyncProgress",
    "AssetProcessor",
    "EdgeResolver",
    "NegotiationHints",
    "EdgeImageServer",
    "create_app",
    "Reporter",
]
