"""REST client for an Azure-Cognitive-Search compatible service.

Endpoints used:
- GET/DELETE /{indexes|datasources|indexers}/{name}
- POST       /{indexes|datasources|indexers}
- POST       /indexers/{name}/run
- GET        /indexers/{name}/status
- GET        /servicestats

All requests carry the ``api-key`` header and ``api-version`` query parameter.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from search_rebuilder.core.errors import IndexerRunThrottled, SearchServiceError

from .protocols import ResourceKind, SearchService

logger = logging.getLogger(__name__)

# Status codes the service uses to reject a run inside the cooldown window
THROTTLE_STATUS_CODES = frozenset({409, 429})


class SearchRestClient(SearchService):
    """Search service client over the management REST API."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        api_version: str = "2020-06-30",
        timeout: float = 30.0,
        cooldown_seconds: int = 180,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.timeout = timeout
        self.cooldown_seconds = cooldown_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "api-key": self.api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, json: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        url = f"{self.endpoint}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=self._headers(), transport=self._transport
            ) as client:
                return await client.request(
                    method, url, params={"api-version": self.api_version}, json=json
                )
        except httpx.HTTPError as e:
            raise SearchServiceError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        try:
            payload = resp.json()
        except ValueError:
            return resp.text[:500]
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return str(payload)[:500]

    def _raise_for_status(self, resp: httpx.Response, action: str) -> None:
        if resp.status_code >= 400:
            raise SearchServiceError(
                f"{action} failed with HTTP {resp.status_code}: {self._error_detail(resp)}",
                status_code=resp.status_code,
            )

    async def exists(self, kind: ResourceKind, name: str) -> bool:
        resp = await self._request("GET", f"{kind.value}/{name}")
        if resp.status_code == 404:
            return False
        self._raise_for_status(resp, f"Lookup of {kind.value}/{name}")
        return True

    async def delete(self, kind: ResourceKind, name: str) -> None:
        resp = await self._request("DELETE", f"{kind.value}/{name}")
        if resp.status_code == 404:
            logger.debug(f"{kind.value}/{name} already absent")
            return
        self._raise_for_status(resp, f"Delete of {kind.value}/{name}")

    async def create(self, kind: ResourceKind, definition: Dict[str, Any]) -> None:
        name = definition.get("name", "?")
        resp = await self._request("POST", kind.value, json=definition)
        self._raise_for_status(resp, f"Create of {kind.value}/{name}")

    async def run_indexer(self, name: str) -> None:
        resp = await self._request("POST", f"{ResourceKind.INDEXER.value}/{name}/run")
        if resp.status_code in THROTTLE_STATUS_CODES:
            retry_after = resp.headers.get("Retry-After", "")
            raise IndexerRunThrottled(
                name,
                reason=f"HTTP {resp.status_code}: {self._error_detail(resp)}",
                retry_after=int(retry_after) if retry_after.isdigit() else self.cooldown_seconds,
            )
        self._raise_for_status(resp, f"Run of indexer {name}")

    async def get_indexer_status(self, name: str) -> Optional[Dict[str, Any]]:
        resp = await self._request("GET", f"{ResourceKind.INDEXER.value}/{name}/status")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, f"Status of indexer {name}")
        return resp.json()

    async def ping(self) -> bool:
        resp = await self._request("GET", "servicestats")
        self._raise_for_status(resp, "Service stats")
        return True
