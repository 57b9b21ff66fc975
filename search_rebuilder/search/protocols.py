"""Protocol definitions for the managed search service."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional


class ResourceKind(str, Enum):
    """Search service resource collections, named after their REST paths."""

    INDEX = "indexes"
    DATA_SOURCE = "datasources"
    INDEXER = "indexers"


class SearchService(ABC):
    """Capability interface for a managed search service.

    Implementations must raise ``SearchServiceError`` for failed requests and
    ``IndexerRunThrottled`` when a run is rejected inside the cooldown window.
    """

    @abstractmethod
    async def exists(self, kind: ResourceKind, name: str) -> bool:
        """Check whether a resource exists."""
        ...

    @abstractmethod
    async def delete(self, kind: ResourceKind, name: str) -> None:
        """Delete a resource. Deleting a missing resource is not an error."""
        ...

    @abstractmethod
    async def create(self, kind: ResourceKind, definition: Dict[str, Any]) -> None:
        """Create a resource from its definition body.

        Raises:
            SearchServiceError: If the resource already exists or is invalid
        """
        ...

    @abstractmethod
    async def run_indexer(self, name: str) -> None:
        """Request an on-demand run of an indexer.

        Raises:
            IndexerRunThrottled: If the service rejects the run request
        """
        ...

    @abstractmethod
    async def get_indexer_status(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the indexer's execution status, or None if it does not exist."""
        ...

    async def ping(self) -> bool:
        """Return True if the service answers requests."""
        return True
