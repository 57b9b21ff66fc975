"""Synchronize fetched sources into a blob storage container."""

import asyncio
import logging
from typing import List, Protocol, Sequence

from pydantic import BaseModel, Field

from search_rebuilder.core.config import KeyMode
from search_rebuilder.core.errors import FetchFailed, StorageUnavailable, UploadConflict
from search_rebuilder.storage.protocols import BlobStorage

from .content import DEFAULT_EXTENSION, object_key
from .sources import SourceDocument

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    async def fetch(self, origin: str) -> SourceDocument: ...


class SyncReport(BaseModel):
    """Counters and warnings for one sync pass."""

    container: str
    objects_cleared: int = 0
    documents_attempted: int = 0
    objects_written: int = 0
    objects_unchanged: int = 0
    upload_failures: int = 0
    skipped_sources: List[str] = Field(default_factory=list)
    keys: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def documents_skipped(self) -> int:
        return len(self.skipped_sources)


class BlobSyncer:
    """Makes a container hold exactly the distinct payloads of the current fetch.

    The container is cleared first, then every source is fetched and uploaded
    under bounded concurrency. All per-source work is awaited before
    ``sync`` returns.
    """

    def __init__(
        self,
        storage: BlobStorage,
        fetcher: Fetcher,
        key_mode: KeyMode = KeyMode.CONTENT,
        max_concurrency: int = 8,
        extension: str = DEFAULT_EXTENSION,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.storage = storage
        self.fetcher = fetcher
        self.key_mode = key_mode
        self.max_concurrency = max_concurrency
        self.extension = extension

    async def sync(self, sources: Sequence[str]) -> SyncReport:
        """Clear the container and repopulate it from ``sources``.

        Raises:
            StorageUnavailable: If the container cannot be listed, or if every
                attempted upload failed
        """
        report = SyncReport(container=self.storage.container)

        logger.info(f"Clear blob storage container {self.storage.container}")
        await self.clear(report)

        logger.info(f"Upload {len(sources)} data files into blob storage")
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._sync_one(semaphore, origin, report) for origin in sources),
            return_exceptions=True,
        )

        for origin, result in zip(sources, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                # _sync_one handles expected failures; anything here is a bug in a backend
                message = f"Unexpected error syncing {origin}: {result}"
                logger.error(message)
                report.warnings.append(message)
                report.upload_failures += 1

        uploads_attempted = report.objects_written + report.objects_unchanged + report.upload_failures
        if uploads_attempted and report.upload_failures == uploads_attempted:
            raise StorageUnavailable(
                f"Container {self.storage.container} rejected all {uploads_attempted} uploads"
            )

        logger.info(
            f"Sync completed: {report.objects_written} written, "
            f"{report.objects_unchanged} unchanged, {report.documents_skipped} skipped"
        )
        return report

    async def clear(self, report: SyncReport) -> None:
        """Delete every object (and its versions) in the container, best effort."""
        try:
            existing = await self.storage.list_objects()
        except StorageUnavailable:
            raise
        except Exception as e:
            raise StorageUnavailable(
                f"Cannot list container {self.storage.container}: {e}"
            ) from e
        keys = list(dict.fromkeys(obj.key for obj in existing))

        for key in keys:
            try:
                await self.storage.delete_object(key)
                report.objects_cleared += 1
            except Exception as e:
                message = f"Failed to delete {key} from {self.storage.container}: {e}"
                logger.warning(message)
                report.warnings.append(message)

    async def _sync_one(
        self, semaphore: asyncio.Semaphore, origin: str, report: SyncReport
    ) -> None:
        async with semaphore:
            report.documents_attempted += 1
            try:
                document = await self.fetcher.fetch(origin)
            except Exception as e:
                self._skip(report, FetchFailed(origin, reason=str(e) or type(e).__name__))
                return

            if not document.ok:
                self._skip(
                    report, FetchFailed(origin, document.status, document.failure_reason())
                )
                return

            key = object_key(document.payload, self.key_mode, self.extension)
            try:
                await self.storage.put_object(key, document.payload)
            except UploadConflict:
                logger.info(f"Blob {key} did not change, skipping upload")
                report.objects_unchanged += 1
                return
            except Exception as e:
                message = f"Failed to upload {origin} as {key}: {e}"
                logger.error(message)
                report.warnings.append(message)
                report.upload_failures += 1
                return

            report.objects_written += 1
            report.keys.append(key)

    @staticmethod
    def _skip(report: SyncReport, failure: FetchFailed) -> None:
        logger.warning(f"{failure}. skipping...")
        report.skipped_sources.append(failure.origin)
        report.warnings.append(str(failure))
