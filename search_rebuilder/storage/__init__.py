"""Blob storage backends.

This module provides storage abstractions for staged documents,
supporting both local filesystem and S3-compatible storage.
"""

from search_rebuilder.core.config import RebuildConfig, StorageBackend

from .local import LocalBlobStorage
from .protocols import BlobStorage, StoredObject
from .s3 import S3BlobStorage

__all__ = [
    "BlobStorage",
    "StoredObject",
    "LocalBlobStorage",
    "S3BlobStorage",
    "create_storage",
]


def create_storage(config: RebuildConfig) -> BlobStorage:
    """Create the storage backend selected by configuration."""
    if config.storage_backend == StorageBackend.LOCAL:
        return LocalBlobStorage(config.storage_local_path, config.storage_container)

    secret = config.aws_secret_access_key
    return S3BlobStorage(
        bucket=config.storage_container,
        region=config.s3_region,
        endpoint_url=config.s3_endpoint_url,
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=secret.get_secret_value() if secret else None,
        timeout=config.http_timeout,
    )
