"""
Test configuration and fixtures for Search Rebuilder.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from search_rebuilder.core.config import RebuildConfig, StorageBackend
from search_rebuilder.core.definitions import load_search_definitions
from search_rebuilder.core.errors import IndexerRunThrottled, SearchServiceError
from search_rebuilder.pipelines.sources import SourceDocument
from search_rebuilder.search.protocols import ResourceKind, SearchService
from search_rebuilder.storage.local import LocalBlobStorage

INDEX_BODY = {
    "name": "test-index",
    "fields": [
        {"name": "id", "type": "Edm.String", "key": True},
        {"name": "name", "type": "Edm.String", "searchable": True},
    ],
}

INDEXER_BODY = {
    "name": "test-indexer",
    "dataSourceName": "test-datasource",
    "targetIndexName": "test-index",
    "parameters": {"configuration": {"parsingMode": "json"}},
}


class FakeFetcher:
    """Serves canned payloads keyed by URL; unknown URLs return 404."""

    def __init__(self, responses: Dict[str, Any]):
        self.responses = responses
        self.calls: List[str] = []

    async def fetch(self, origin: str) -> SourceDocument:
        self.calls.append(origin)
        response = self.responses.get(origin)
        if response is None:
            return SourceDocument(origin=origin, status=404)
        if isinstance(response, Exception):
            return SourceDocument(origin=origin, error=str(response))
        return SourceDocument(origin=origin, payload=response, status=200)


class FakeSearchService(SearchService):
    """In-memory search service enforcing name uniqueness and reference checks."""

    def __init__(
        self,
        existing: Optional[Set[Tuple[ResourceKind, str]]] = None,
        fail_on: Optional[Tuple[str, ResourceKind]] = None,
        throttle: bool = False,
    ):
        self.resources: Dict[Tuple[ResourceKind, str], Dict[str, Any]] = {
            key: {"name": key[1]} for key in (existing or set())
        }
        self.fail_on = fail_on
        self.throttle = throttle
        self.calls: List[Tuple[str, ResourceKind, str]] = []
        self.runs: List[str] = []

    def _maybe_fail(self, op: str, kind: ResourceKind) -> None:
        if self.fail_on == (op, kind):
            raise SearchServiceError(f"{op} {kind.value} rejected", status_code=400)

    async def exists(self, kind: ResourceKind, name: str) -> bool:
        self.calls.append(("exists", kind, name))
        self._maybe_fail("exists", kind)
        return (kind, name) in self.resources

    async def delete(self, kind: ResourceKind, name: str) -> None:
        self.calls.append(("delete", kind, name))
        self._maybe_fail("delete", kind)
        self.resources.pop((kind, name), None)

    async def create(self, kind: ResourceKind, definition: Dict[str, Any]) -> None:
        name = definition["name"]
        self.calls.append(("create", kind, name))
        self._maybe_fail("create", kind)
        if (kind, name) in self.resources:
            raise SearchServiceError(f"{kind.value}/{name} already exists", status_code=409)
        if kind == ResourceKind.INDEXER:
            if (ResourceKind.INDEX, definition["targetIndexName"]) not in self.resources:
                raise SearchServiceError("target index missing", status_code=400)
            if (ResourceKind.DATA_SOURCE, definition["dataSourceName"]) not in self.resources:
                raise SearchServiceError("data source missing", status_code=400)
        self.resources[(kind, name)] = definition

    async def run_indexer(self, name: str) -> None:
        self.calls.append(("run", ResourceKind.INDEXER, name))
        if self.throttle:
            raise IndexerRunThrottled(name, retry_after=120)
        self.runs.append(name)

    async def get_indexer_status(self, name: str) -> Optional[Dict[str, Any]]:
        if (ResourceKind.INDEXER, name) not in self.resources:
            return None
        return {"status": "running", "lastResult": {"status": "success", "itemsProcessed": 2}}


@pytest.fixture
def definitions_dir(tmp_path) -> Path:
    """Directory holding index.json and indexer.json."""
    path = tmp_path / "definitions"
    path.mkdir()
    (path / "index.json").write_text(json.dumps(INDEX_BODY))
    (path / "indexer.json").write_text(json.dumps(INDEXER_BODY))
    return path


@pytest.fixture
def definitions(definitions_dir):
    """Loaded definitions with a derived data source."""
    return load_search_definitions(
        definitions_dir, container="staging", connection_string="DefaultEndpointsProtocol=https"
    )


@pytest.fixture
def storage(tmp_path) -> LocalBlobStorage:
    """Empty local storage container."""
    return LocalBlobStorage(tmp_path / "blobs", "staging")


@pytest.fixture
def rebuild_config(tmp_path, definitions_dir) -> RebuildConfig:
    """Range-mode configuration against local storage."""
    return RebuildConfig(
        storage_backend=StorageBackend.LOCAL,
        storage_local_path=tmp_path / "blobs",
        storage_container="staging",
        source_url_template="https://example.test/items/{n}",
        definitions_path=definitions_dir,
        search_endpoint="https://search.example.test",
        search_api_key="admin-key",
        data_source_connection_string="DefaultEndpointsProtocol=https",
    )


@pytest.fixture
def search_service() -> FakeSearchService:
    return FakeSearchService()


@pytest.fixture
def fetcher_factory():
    """Build a FakeFetcher from a {url: payload} mapping."""
    return FakeFetcher


@pytest.fixture
def search_service_factory():
    """Build a FakeSearchService with preexisting resources or injected failures."""
    return FakeSearchService
