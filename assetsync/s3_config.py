"""
S3Config - Object store identity and credentials.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from .exceptions import ConfigurationError

R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


@dataclass
class S3Config:
    """
    Connection settings for an S3-compatible bucket (AWS, MinIO, Cloudflare R2).

    Attributes:
        endpoint: Endpoint URL
        bucket: Bucket name
        prefix: Optional key prefix inside the bucket
        access_key: Access key id
        secret_key: Secret access key
        region: Region name ('auto' for R2)
        verify_ssl: Verify TLS certificates
        max_attempts: Total attempts per request, including retries
    """
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    prefix: str = ''
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = 'auto'
    verify_ssl: bool = True
    max_attempts: int = 5

    @classmethod
    def from_env(cls) -> 'S3Config':
        """Build configuration from S3_* (or Cloudflare R2_*) environment variables."""
        endpoint = _env('S3_ENDPOINT')
        account_id = _env('CF_ACCOUNT_ID')
        if not endpoint and account_id:
            endpoint = R2_ENDPOINT_TEMPLATE.format(account_id=account_id)

        return cls(
            endpoint=endpoint,
            bucket=_env('S3_BUCKET', 'R2_BUCKET_NAME'),
            prefix=_env('S3_PREFIX', default=''),
            access_key=_env('S3_ACCESS_KEY', 'R2_ACCESS_KEY_ID'),
            secret_key=_env('S3_SECRET_KEY', 'R2_SECRET_ACCESS_KEY'),
            region=_env('S3_REGION', default='auto'),
            verify_ssl=_env('S3_VERIFY_SSL', default='true').lower() not in ('0', 'false', 'no'),
            max_attempts=int(_env('S3_MAX_ATTEMPTS', default='5')),
        )

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when valid)."""
        errors = []
        if not self.endpoint:
            errors.append("S3_ENDPOINT (or CF_ACCOUNT_ID) is not set")
        if not self.bucket:
            errors.append("S3_BUCKET (or R2_BUCKET_NAME) is not set")
        if not self.access_key:
            errors.append("S3_ACCESS_KEY (or R2_ACCESS_KEY_ID) is not set")
        if not self.secret_key:
            errors.append("S3_SECRET_KEY (or R2_SECRET_ACCESS_KEY) is not set")
        if self.max_attempts < 1:
            errors.append("S3_MAX_ATTEMPTS must be at least 1")
        return errors

    def ensure_valid(self) -> None:
        """Raise ConfigurationError listing every problem found by validate()."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("S3 configuration invalid: " + "; ".join(errors), errors)

    def full_key(self, key: str) -> str:
        """Prepend the configured prefix to a relative key."""
        if not self.prefix:
            return key.lstrip('/')
        return f"{self.prefix.strip('/')}/{key.lstrip('/')}"

    def relative_key(self, full_key: str) -> str:
        """Strip the configured prefix from a bucket key."""
        if self.prefix:
            head = f"{self.prefix.strip('/')}/"
            if full_key.startswith(head):
                return full_key[len(head):]
        return full_key
