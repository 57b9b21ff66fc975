"""Index / data source / indexer lifecycle against the managed search service.

The service has no atomic "replace schema" operation, so every rebuild
destructively recreates the three resources. They are processed strictly in
REBUILD_ORDER because the indexer references the data source and the index by
name. Each resource moves through its own small state machine:

    PENDING -> EXISTING -> DELETED -> CREATED
    PENDING -> ABSENT -> CREATED

and any failure moves it to FAILED. Completed resources are never rolled back.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from search_rebuilder.core.definitions import SearchDefinitions
from search_rebuilder.core.errors import IndexerRunThrottled, IndexRebuildFailed
from search_rebuilder.search.protocols import ResourceKind, SearchService

logger = logging.getLogger(__name__)

REBUILD_ORDER = (ResourceKind.INDEX, ResourceKind.DATA_SOURCE, ResourceKind.INDEXER)


class ResourceState(str, Enum):
    PENDING = "pending"
    EXISTING = "existing"
    ABSENT = "absent"
    DELETED = "deleted"
    CREATED = "created"
    FAILED = "failed"


_TRANSITIONS = {
    ResourceState.PENDING: {ResourceState.EXISTING, ResourceState.ABSENT, ResourceState.FAILED},
    ResourceState.EXISTING: {ResourceState.DELETED, ResourceState.FAILED},
    ResourceState.ABSENT: {ResourceState.CREATED, ResourceState.FAILED},
    ResourceState.DELETED: {ResourceState.CREATED, ResourceState.FAILED},
    ResourceState.CREATED: set(),
    ResourceState.FAILED: set(),
}


class ResourceProgress(BaseModel):
    """Where one resource got to during a rebuild."""

    kind: ResourceKind
    name: str
    state: ResourceState = ResourceState.PENDING
    existed: Optional[bool] = None
    error: Optional[str] = None

    def advance(self, state: ResourceState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Illegal transition for {self.kind.value}/{self.name}: "
                f"{self.state.value} -> {state.value}"
            )
        self.state = state


class LifecycleReport(BaseModel):
    resources: List[ResourceProgress] = Field(default_factory=list)
    indexer_run_requested: bool = False
    throttled: bool = False
    error: Optional[str] = None

    def progress_for(self, kind: ResourceKind) -> ResourceProgress:
        for progress in self.resources:
            if progress.kind == kind:
                return progress
        raise KeyError(kind)

    @property
    def completed(self) -> bool:
        return self.indexer_run_requested and all(
            p.state == ResourceState.CREATED for p in self.resources
        )


class IndexLifecycleManager:
    """Drives the delete-then-create state machine for one rebuild."""

    def __init__(self, service: SearchService, definitions: SearchDefinitions):
        self.service = service
        self.definitions = definitions

    def _bodies(self) -> Dict[ResourceKind, Dict[str, Any]]:
        return {
            ResourceKind.INDEX: self.definitions.index.to_body(),
            ResourceKind.DATA_SOURCE: self.definitions.data_source.to_body(),
            ResourceKind.INDEXER: self.definitions.indexer.to_body(),
        }

    def new_report(self) -> LifecycleReport:
        bodies = self._bodies()
        return LifecycleReport(
            resources=[
                ResourceProgress(kind=kind, name=bodies[kind]["name"]) for kind in REBUILD_ORDER
            ]
        )

    async def rebuild(self) -> LifecycleReport:
        """Recreate index, data source and indexer in order, then run the indexer.

        Raises:
            IndexerRunThrottled: If the run request was rejected by the cooldown
            IndexRebuildFailed: If any other step failed
        """
        report = self.new_report()
        bodies = self._bodies()

        previous: Optional[ResourceProgress] = None
        for progress in report.resources:
            if previous is not None and previous.state != ResourceState.CREATED:
                raise RuntimeError(
                    f"{progress.kind.value} cannot start before {previous.kind.value} is created"
                )
            await self._recreate(progress, bodies[progress.kind], report)
            previous = progress

        await self._run_indexer(report)
        return report

    async def _recreate(
        self, progress: ResourceProgress, body: Dict[str, Any], report: LifecycleReport
    ) -> None:
        step = f"{progress.kind.value}/{progress.name}"
        try:
            existed = await self.service.exists(progress.kind, progress.name)
            progress.existed = existed

            if existed:
                progress.advance(ResourceState.EXISTING)
                logger.info(f"Delete existing {step}")
                await self.service.delete(progress.kind, progress.name)
                progress.advance(ResourceState.DELETED)
            else:
                progress.advance(ResourceState.ABSENT)

            logger.info(f"Create new {step}")
            await self.service.create(progress.kind, body)
            progress.advance(ResourceState.CREATED)
        except Exception as e:
            progress.state = ResourceState.FAILED
            progress.error = str(e)
            report.error = f"{step}: {e}"
            logger.error(f"Error while rebuilding {step}: {e}")
            raise IndexRebuildFailed(step, str(e), report) from e

    async def _run_indexer(self, report: LifecycleReport) -> None:
        name = self.definitions.indexer.name
        # The service rejects runs requested more often than its cooldown allows
        logger.info(f"Run indexer {name}")
        try:
            await self.service.run_indexer(name)
        except IndexerRunThrottled as e:
            report.throttled = True
            report.error = str(e)
            e.report = report
            logger.warning(f"Indexer {name} run throttled, retry after {e.retry_after}s")
            raise
        except Exception as e:
            report.error = f"run_indexer: {e}"
            logger.error(f"Error while running indexer {name}: {e}")
            raise IndexRebuildFailed("run_indexer", str(e), report) from e

        report.indexer_run_requested = True

    async def status(self) -> Dict[str, Any]:
        """Report existence of each resource and the indexer's last run."""
        bodies = self._bodies()
        resources = {}
        for kind in REBUILD_ORDER:
            name = bodies[kind]["name"]
            resources[kind.value] = {
                "name": name,
                "exists": await self.service.exists(kind, name),
            }

        indexer_status = None
        if resources[ResourceKind.INDEXER.value]["exists"]:
            indexer_status = await self.service.get_indexer_status(
                self.definitions.indexer.name
            )

        return {"resources": resources, "indexer_status": indexer_status}
