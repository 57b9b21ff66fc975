"""Protocol definitions for blob storage backends."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StoredObject(BaseModel):
    """An object (or one version of it) as reported by a container listing."""

    key: str = Field(..., description="Object key within the container")
    size_bytes: int = Field(default=0, description="Size of the object in bytes")
    last_modified: Optional[datetime] = Field(default=None, description="Last write time")
    version_id: Optional[str] = Field(
        default=None, description="Backend version/snapshot id, if versioned"
    )


class BlobStorage(ABC):
    """Abstract base class for blob storage backends.

    A backend is bound to a single container. The pipeline only lists,
    creates and deletes objects; it never rewrites one in place.
    """

    container: str

    @abstractmethod
    async def list_objects(self) -> List[StoredObject]:
        """List every object in the container, including older versions.

        Raises:
            StorageUnavailable: If the container cannot be listed
        """
        ...

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Delete an object together with all of its versions/snapshots.

        Deleting a missing key is not an error.
        """
        ...

    @abstractmethod
    async def put_object(
        self,
        key: str,
        payload: bytes,
        content_type: str = "application/json",
    ) -> None:
        """Create an object. Never overwrites.

        Raises:
            UploadConflict: If an object already exists under ``key``
        """
        ...

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Read an object's payload.

        Raises:
            KeyError: If the object does not exist
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if an object exists in the container."""
        ...

    async def ping(self) -> bool:
        """Return True if the container is reachable."""
        await self.list_objects()
        return True
