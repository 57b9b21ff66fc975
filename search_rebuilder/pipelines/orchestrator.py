"""Pipeline orchestrator for one search index rebuild."""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from search_rebuilder.core.config import RebuildConfig
from search_rebuilder.core.definitions import SearchDefinitions, load_search_definitions
from search_rebuilder.core.errors import (
    IndexerRunThrottled,
    IndexRebuildFailed,
    InvalidCount,
    SourceListUnavailable,
    StorageUnavailable,
)
from search_rebuilder.observability.tracing import add_span_attributes, trace_stage
from search_rebuilder.search import create_search_service
from search_rebuilder.search.protocols import SearchService
from search_rebuilder.storage import create_storage
from search_rebuilder.storage.protocols import BlobStorage

from .index_lifecycle import IndexLifecycleManager, LifecycleReport
from .sources import SourceFetcher, SourceLister, build_source_lister
from .sync import BlobSyncer, Fetcher, SyncReport

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"  # index rebuilt, some sources skipped or warnings raised
    THROTTLED = "throttled"  # everything but the indexer run succeeded
    FAILED = "failed"
    CANCELED = "canceled"
    REJECTED = "rejected"  # preconditions failed, nothing was touched


class RebuildOutcome(BaseModel):
    """Single pass/fail summary of one rebuild invocation."""

    success: bool = False
    status: OutcomeStatus = OutcomeStatus.FAILED
    message: str = ""
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    sources_listed: int = 0
    documents_attempted: int = 0
    documents_skipped: int = 0
    objects_cleared: int = 0
    objects_written: int = 0
    objects_unchanged: int = 0
    index_lifecycle: Optional[LifecycleReport] = None
    retry_after: Optional[int] = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    def apply_sync(self, report: SyncReport) -> None:
        self.documents_attempted = report.documents_attempted
        self.documents_skipped = report.documents_skipped
        self.objects_cleared = report.objects_cleared
        self.objects_written = report.objects_written
        self.objects_unchanged = report.objects_unchanged
        self.warnings.extend(report.warnings)


class RebuildOrchestrator:
    """Orchestrates sources -> blob sync -> index lifecycle for one invocation.

    Partial completion is possible and is reported, never hidden: a failure in
    a later stage leaves earlier stages' effects in place.
    """

    def __init__(
        self,
        config: RebuildConfig,
        storage: BlobStorage,
        search_service: SearchService,
        definitions: SearchDefinitions,
        fetcher: Optional[Fetcher] = None,
    ):
        self.config = config
        self.storage = storage
        self.search_service = search_service
        self.definitions = definitions
        self.fetcher = fetcher
        self.lifecycle = IndexLifecycleManager(search_service, definitions)
        self.last_outcome: Optional[RebuildOutcome] = None

    @classmethod
    def from_config(cls, config: RebuildConfig) -> "RebuildOrchestrator":
        """Build backends and load definitions for one invocation.

        Raises:
            ConfigurationError: If definitions or service settings are missing
        """
        connection = config.data_source_connection_string
        definitions = load_search_definitions(
            config.definitions_path,
            container=config.storage_container,
            connection_string=connection.get_secret_value() if connection else None,
            source_type=config.data_source_type,
        )
        return cls(
            config=config,
            storage=create_storage(config),
            search_service=create_search_service(config),
            definitions=definitions,
        )

    def validate(self, count: Optional[int] = None) -> SourceLister:
        """Check preconditions before any destructive work.

        Raises:
            InvalidCount: If range mode is selected without a positive count
        """
        return build_source_lister(self.config, count)

    async def run(self, count: Optional[int] = None) -> RebuildOutcome:
        """Run one rebuild and summarize it."""
        outcome = RebuildOutcome()
        self.last_outcome = outcome
        logger.info("Start rebuilding search index")

        try:
            lister = self.validate(count)
        except InvalidCount as e:
            logger.warning(f"Rebuild rejected: {e}")
            return self._finish(outcome, OutcomeStatus.REJECTED, str(e), error=str(e))

        try:
            if self.config.rebuild_timeout:
                await asyncio.wait_for(
                    self._execute(lister, outcome), timeout=self.config.rebuild_timeout
                )
            else:
                await self._execute(lister, outcome)
        except asyncio.TimeoutError:
            message = f"Rebuild canceled after {self.config.rebuild_timeout}s timeout"
            logger.error(message)
            return self._finish(outcome, OutcomeStatus.CANCELED, message, error=message)
        except asyncio.CancelledError:
            # No partial cleanup; earlier stages keep their effects
            logger.warning("Rebuild canceled")
            self._finish(outcome, OutcomeStatus.CANCELED, "Rebuild canceled", error="canceled")
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                # The caller canceled us; the outcome stays on last_outcome
                raise
            return outcome
        except SourceListUnavailable as e:
            logger.error(f"[{e.stage}] {e}")
            return self._finish(
                outcome, OutcomeStatus.FAILED, "Could not obtain the source list", error=str(e)
            )
        except StorageUnavailable as e:
            logger.error(f"[{e.stage}] {e}")
            return self._finish(
                outcome, OutcomeStatus.FAILED, "Storage container unavailable", error=str(e)
            )
        except IndexerRunThrottled as e:
            logger.warning(f"[{e.stage}] {e}")
            outcome.index_lifecycle = e.report
            outcome.retry_after = e.retry_after
            return self._finish(
                outcome,
                OutcomeStatus.THROTTLED,
                f"Index re-created but indexer run was throttled; retry in {e.retry_after}s",
                error=str(e),
            )
        except IndexRebuildFailed as e:
            logger.error(f"[{e.stage}] {e}")
            outcome.index_lifecycle = e.report
            return self._finish(
                outcome, OutcomeStatus.FAILED, f"Error while building new index at {e.step}",
                error=str(e),
            )

        if outcome.documents_skipped or outcome.warnings:
            return self._finish(
                outcome,
                OutcomeStatus.PARTIAL,
                f"Index re-created; {outcome.documents_skipped} of "
                f"{outcome.sources_listed} sources skipped",
            )
        return self._finish(outcome, OutcomeStatus.SUCCEEDED, "Index successfully re-created")

    async def _execute(self, lister: SourceLister, outcome: RebuildOutcome) -> None:
        sources = await self._list_sources(lister)
        outcome.sources_listed = len(sources)

        report = await self._sync(sources)
        outcome.apply_sync(report)

        outcome.index_lifecycle = await self._rebuild_index()

    @trace_stage("sources")
    async def _list_sources(self, lister: SourceLister) -> List[str]:
        logger.info(f"Retrieving data urls from {lister.describe()}")
        sources = await lister.list_sources()
        add_span_attributes({"rebuild.sources": len(sources)})
        return sources

    @trace_stage("sync")
    async def _sync(self, sources: List[str]) -> SyncReport:
        if self.fetcher is not None:
            return await self._syncer(self.fetcher).sync(sources)

        async with SourceFetcher(
            timeout=self.config.http_timeout,
            max_connections=self.config.max_concurrent_fetches,
        ) as fetcher:
            return await self._syncer(fetcher).sync(sources)

    def _syncer(self, fetcher: Fetcher) -> BlobSyncer:
        return BlobSyncer(
            self.storage,
            fetcher,
            key_mode=self.config.key_mode,
            max_concurrency=self.config.max_concurrent_fetches,
        )

    @trace_stage("index")
    async def _rebuild_index(self) -> LifecycleReport:
        return await self.lifecycle.rebuild()

    def _finish(
        self,
        outcome: RebuildOutcome,
        status: OutcomeStatus,
        message: str,
        error: Optional[str] = None,
    ) -> RebuildOutcome:
        outcome.status = status
        outcome.success = status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.PARTIAL)
        outcome.message = message
        if error:
            outcome.errors.append(error)
        outcome.completed_at = datetime.now(timezone.utc)
        logger.info(f"Rebuild finished: {status.value} - {message}")
        return outcome
