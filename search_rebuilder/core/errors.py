"""Error taxonomy for the rebuild pipeline.

Per-source errors (FetchFailed, UploadConflict) are caught and aggregated by
the syncer. Stage errors (SourceListUnavailable, StorageUnavailable,
IndexRebuildFailed) terminate the invocation and become its outcome.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from search_rebuilder.pipelines.index_lifecycle import LifecycleReport


class RebuildError(Exception):
    """Base class for all rebuild pipeline errors."""

    stage: str = "rebuild"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class ConfigurationError(RebuildError):
    """Raised when settings or search definitions cannot be loaded."""

    stage = "configuration"


class InvalidCount(RebuildError, ValueError):
    """Raised when a range-mode source count is below 1."""

    stage = "validation"

    def __init__(self, count: object):
        self.count = count
        super().__init__(f"Source count must be a positive integer, got {count!r}")


class SourceListUnavailable(RebuildError):
    """Raised when the list of documents to index cannot be obtained."""

    stage = "sources"


class FetchFailed(RebuildError):
    """A single source could not be fetched. Never fatal to the invocation."""

    stage = "sync"

    def __init__(self, origin: str, status: Optional[int] = None, reason: str = ""):
        self.origin = origin
        self.status = status
        detail = reason or (f"HTTP {status}" if status is not None else "no response")
        super().__init__(f"Failed to fetch {origin}: {detail}")


class StorageUnavailable(RebuildError):
    """Raised when the storage container cannot be listed, cleared or written."""

    stage = "storage"


class UploadConflict(RebuildError):
    """The backend already holds an object under this key."""

    stage = "storage"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object already exists: {key}")


class SearchServiceError(RebuildError):
    """A search service request failed."""

    stage = "search"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class IndexRebuildFailed(RebuildError):
    """An index, data source or indexer step failed.

    Steps completed before the failure are not rolled back; ``report`` holds
    the state each resource reached.
    """

    stage = "index"

    def __init__(
        self,
        step: str,
        reason: str,
        report: Optional["LifecycleReport"] = None,
    ):
        self.step = step
        self.reason = reason
        self.report = report
        super().__init__(f"Index rebuild failed at {step}: {reason}")


class IndexerRunThrottled(IndexRebuildFailed):
    """The service rejected an indexer run inside its cooldown window."""

    def __init__(
        self,
        indexer_name: str,
        reason: str = "indexer run rejected inside cooldown window",
        retry_after: int = 180,
        report: Optional["LifecycleReport"] = None,
    ):
        self.indexer_name = indexer_name
        self.retry_after = retry_after
        super().__init__(step="run_indexer", reason=reason, report=report)
