"""
Exception types raised by the asset pipeline and the edge server.
"""


class AssetSyncError(Exception):
    """Base class for all assetsync errors."""
    pass


class ConfigurationError(AssetSyncError):
    """Raised at startup when mandatory settings are missing or invalid."""

    def __init__(self, message: str, problems=None):
        super().__init__(message)
        self.problems = list(problems or [])


class EncodingError(AssetSyncError):
    """Raised when a single variant cannot be rendered."""
    pass


class UploadError(AssetSyncError):
    """Raised when a single object cannot be written to the store."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class NotFoundError(AssetSyncError):
    """No object exists anywhere in the fallback chain."""

    def __init__(self, path: str, tried=None):
        super().__init__(f"Image not found: {path}")
        self.path = path
        self.tried = list(tried or [])


class StoreTransientError(AssetSyncError):
    """Network or storage-layer failure after the client's own retries."""
    pass
