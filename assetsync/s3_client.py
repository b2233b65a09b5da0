"""
S3Client - S3/R2 operations for uploading, fetching and listing objects.
"""

import logging
from typing import Iterator, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StoreTransientError
from .s3_config import S3Config
from .stored_object import IMMUTABLE_CACHE_CONTROL, StoredObject

NOT_FOUND_CODES = {'404', 'NoSuchKey', 'NotFound'}


class S3Client:
    """
    Wrapper for S3-compatible object storage (AWS, MinIO, Cloudflare R2).

    Keys passed in and returned are relative to config.prefix. Retries with
    exponential backoff are handled by botocore ('standard' mode, bounded by
    config.max_attempts); a request that still fails raises
    StoreTransientError. Missing objects are reported as None.
    """

    def __init__(self, config: S3Config, logger: Optional[logging.Logger] = None):
        """
        Initialize S3 client.

        Args:
            config: S3 configuration (validated here)
            logger: Optional logger instance

        Raises:
            ConfigurationError: Credentials or bucket identity are missing
        """
        config.ensure_valid()
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        self._client = boto3.client(
            's3',
            endpoint_url=config.endpoint,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
            config=Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
                retries={'max_attempts': config.max_attempts, 'mode': 'standard'},
            ),
            verify=config.verify_ssl
        )

    @property
    def client(self):
        """Return the underlying boto3 client."""
        return self._client

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        return error.response.get('Error', {}).get('Code') in NOT_FOUND_CODES

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = 'application/octet-stream',
        cache_control: str = IMMUTABLE_CACHE_CONTROL
    ) -> None:
        """Upload an object."""
        try:
            self._client.put_object(
                Bucket=self.config.bucket,
                Key=self.config.full_key(key),
                Body=data,
                ContentType=content_type,
                CacheControl=cache_control,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreTransientError(f"put {key} failed: {e}") from e

    def head(self, key: str) -> Optional[StoredObject]:
        """Object metadata without the body, or None if absent."""
        try:
            response = self._client.head_object(Bucket=self.config.bucket, Key=self.config.full_key(key))
        except ClientError as e:
            if self._is_not_found(e):
                return None
            raise StoreTransientError(f"head {key} failed: {e}") from e
        except BotoCoreError as e:
            raise StoreTransientError(f"head {key} failed: {e}") from e
        return self._to_object(key, response)

    def get(self, key: str) -> Optional[StoredObject]:
        """Object with body, or None if absent."""
        try:
            response = self._client.get_object(Bucket=self.config.bucket, Key=self.config.full_key(key))
            obj = self._to_object(key, response)
            obj.body = response['Body'].read()
        except ClientError as e:
            if self._is_not_found(e):
                return None
            raise StoreTransientError(f"get {key} failed: {e}") from e
        except BotoCoreError as e:
            raise StoreTransientError(f"get {key} failed: {e}") from e
        return obj

    def exists(self, key: str) -> bool:
        """Check if an object exists."""
        return self.head(key) is not None

    def list(self, prefix: str = '') -> Iterator[Tuple[str, int]]:
        """
        List objects under a prefix.

        Yields:
            (key, size) for each object
        """
        paginator = self._client.get_paginator('list_objects_v2')
        try:
            for page in paginator.paginate(Bucket=self.config.bucket, Prefix=self.config.full_key(prefix)):
                for obj in page.get('Contents', []):
                    yield self.config.relative_key(obj['Key']), obj['Size']
        except (ClientError, BotoCoreError) as e:
            raise StoreTransientError(f"list {prefix!r} failed: {e}") from e

    @staticmethod
    def _to_object(key: str, response: dict) -> StoredObject:
        last_modified = response.get('LastModified')
        return StoredObject(
            key=key,
            size=response.get('ContentLength', 0),
            content_type=response.get('ContentType', 'application/octet-stream'),
            etag=response.get('ETag'),
            cache_control=response.get('CacheControl'),
            last_modified=last_modified.isoformat() if last_modified else None,
        )
