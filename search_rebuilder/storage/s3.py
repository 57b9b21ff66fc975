"""S3-compatible storage backend."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from search_rebuilder.core.errors import StorageUnavailable, UploadConflict

from .protocols import BlobStorage, StoredObject

logger = logging.getLogger(__name__)

# Returned when a conditional (If-None-Match) write finds an existing object
_CONFLICT_CODES = frozenset({"PreconditionFailed", "ConditionalRequestConflict", "412", "409"})
_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class S3BlobStorage(BlobStorage):
    """S3-compatible storage backend.

    The container is a bucket; objects are stored as {prefix}{key}. On
    versioned buckets every version and delete marker of a key is removed so
    the clear leaves no history behind.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize S3 storage.

        Args:
            bucket: S3 bucket name
            prefix: Key prefix for objects (e.g., "staged/")
            region: AWS region (optional, uses default if not specified)
            endpoint_url: Custom endpoint URL for S3-compatible services
            aws_access_key_id: AWS access key (optional, uses default creds)
            aws_secret_access_key: AWS secret key (optional, uses default creds)
            timeout: Connect and read timeout for every request (seconds)
        """
        self.container = bucket
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/" if prefix else ""

        client_kwargs: Dict[str, Any] = {
            "config": Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            )
        }
        if region:
            client_kwargs["region_name"] = region
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url
        if aws_access_key_id and aws_secret_access_key:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key

        self._client = boto3.client("s3", **client_kwargs)

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _key_from_object_key(self, object_key: str) -> str:
        return object_key[len(self.prefix) :] if object_key.startswith(self.prefix) else object_key

    async def list_objects(self) -> List[StoredObject]:
        """List every version and delete marker under the prefix."""
        try:
            return await asyncio.to_thread(self._list_versions)
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailable(f"Cannot list bucket {self.bucket}: {e}") from e

    def _list_versions(self) -> List[StoredObject]:
        objects: List[StoredObject] = []
        paginator = self._client.get_paginator("list_object_versions")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            for entry in page.get("Versions", []) + page.get("DeleteMarkers", []):
                objects.append(
                    StoredObject(
                        key=self._key_from_object_key(entry["Key"]),
                        size_bytes=entry.get("Size", 0),
                        last_modified=entry.get("LastModified"),
                        version_id=entry.get("VersionId"),
                    )
                )
        return objects

    async def delete_object(self, key: str) -> None:
        """Delete an object and all of its versions."""
        await asyncio.to_thread(self._delete_all_versions, self._object_key(key))

    def _delete_all_versions(self, object_key: str) -> None:
        response = self._client.list_object_versions(Bucket=self.bucket, Prefix=object_key)
        targets = [
            {"Key": entry["Key"], "VersionId": entry["VersionId"]}
            for entry in response.get("Versions", []) + response.get("DeleteMarkers", [])
            if entry["Key"] == object_key
        ]

        if not targets:
            self._client.delete_object(Bucket=self.bucket, Key=object_key)
            return

        result = self._client.delete_objects(
            Bucket=self.bucket, Delete={"Objects": targets, "Quiet": True}
        )
        errors = result.get("Errors", [])
        if errors:
            first = errors[0]
            raise ClientError(
                {"Error": {"Code": first.get("Code"), "Message": first.get("Message")}},
                "DeleteObjects",
            )

    async def put_object(
        self,
        key: str,
        payload: bytes,
        content_type: str = "application/json",
    ) -> None:
        """Create an object with If-None-Match so existing keys are never overwritten."""
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=self._object_key(key),
                Body=payload,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _CONFLICT_CODES:
                raise UploadConflict(key) from e
            raise

    async def get_object(self, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self.bucket, Key=self._object_key(key)
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                raise KeyError(key) from e
            raise
        return response["Body"].read()

    async def exists(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client.head_object, Bucket=self.bucket, Key=self._object_key(key)
            )
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
                return False
            raise

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise StorageUnavailable(f"Bucket {self.bucket} unreachable: {e}") from e
        return True
