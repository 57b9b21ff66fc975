"""Local filesystem storage backend."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from search_rebuilder.core.errors import StorageUnavailable, UploadConflict

from .protocols import BlobStorage, StoredObject


class LocalBlobStorage(BlobStorage):
    """Local filesystem storage backend.

    Stores objects as flat files:
        base_path/
            {container}/
                {key}
    """

    def __init__(self, base_path: Path, container: str):
        """Initialize local storage.

        Args:
            base_path: Root directory holding containers
            container: Container (sub-directory) name
        """
        self.base_path = Path(base_path)
        self.container = container
        self.container_path.mkdir(parents=True, exist_ok=True)

    @property
    def container_path(self) -> Path:
        return self.base_path / self.container

    def _object_path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid object key: {key!r}")
        return self.container_path / key

    async def list_objects(self) -> List[StoredObject]:
        """List all objects in the container directory."""
        try:
            entries = sorted(self.container_path.iterdir())
        except OSError as e:
            raise StorageUnavailable(
                f"Cannot list container {self.container_path}: {e}"
            ) from e

        objects = []
        for entry in entries:
            if not entry.is_file():
                continue
            stat = entry.stat()
            objects.append(
                StoredObject(
                    key=entry.name,
                    size_bytes=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return objects

    async def delete_object(self, key: str) -> None:
        """Delete an object file; missing files are ignored."""
        self._object_path(key).unlink(missing_ok=True)

    async def put_object(
        self,
        key: str,
        payload: bytes,
        content_type: str = "application/json",
    ) -> None:
        """Create the object file exclusively so an existing key is never overwritten."""
        path = self._object_path(key)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError as e:
            raise UploadConflict(key) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

    async def get_object(self, key: str) -> bytes:
        path = self._object_path(key)
        if not path.exists():
            raise KeyError(key)
        return path.read_bytes()

    async def exists(self, key: str) -> bool:
        return self._object_path(key).exists()
