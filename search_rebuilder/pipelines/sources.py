"""Source listing and fetching for the rebuild pipeline."""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import aiohttp
from pydantic import BaseModel

from search_rebuilder.core.config import RebuildConfig, SourceMode
from search_rebuilder.core.errors import InvalidCount, SourceListUnavailable

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://pokeapi.co/api/v2/pokemon/{n}"


class SourceDocument(BaseModel):
    """A fetched source. Transient; discarded after the upload decision."""

    origin: str
    payload: bytes = b""
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == 200 and bool(self.payload)

    def failure_reason(self) -> str:
        if self.error:
            return self.error
        if self.status is not None and self.status != 200:
            return f"HTTP {self.status}"
        if not self.payload:
            return "empty body"
        return ""


class SourceLister(ABC):
    """Produces the ordered list of source URLs for one rebuild."""

    @abstractmethod
    async def list_sources(self) -> List[str]:
        """Return a finite, ordered list of source identifiers."""
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short human readable description used in logs."""
        pass


class RangeSourceLister(SourceLister):
    """Synthesizes N source URLs by substituting 1..N into a URL template."""

    def __init__(self, count: int, url_template: str = DEFAULT_URL_TEMPLATE):
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise InvalidCount(count)
        self.count = count
        self.url_template = url_template

    async def list_sources(self) -> List[str]:
        return [self.url_template.format(n=n) for n in range(1, self.count + 1)]

    def describe(self) -> str:
        return f"range 1..{self.count} of {self.url_template}"


class ManifestSourceLister(SourceLister):
    """Fetches a JSON array of source URLs from a manifest endpoint."""

    def __init__(
        self,
        manifest_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.manifest_url = manifest_url
        self.timeout = timeout
        self._session = session

    async def list_sources(self) -> List[str]:
        logger.info(f"Retrieving source manifest from {self.manifest_url}")
        try:
            if self._session is not None:
                return await self._fetch_manifest(self._session)

            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                return await self._fetch_manifest(session)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceListUnavailable(
                f"Manifest {self.manifest_url} could not be retrieved: {str(e) or type(e).__name__}"
            ) from e

    async def _fetch_manifest(self, session: aiohttp.ClientSession) -> List[str]:
        async with session.get(self.manifest_url) as response:
            if response.status != 200:
                raise SourceListUnavailable(
                    f"Manifest {self.manifest_url} returned HTTP {response.status}"
                )
            body = await response.read()

        try:
            urls = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SourceListUnavailable(
                f"Manifest {self.manifest_url} could not be parsed: {e}"
            ) from e

        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise SourceListUnavailable(
                f"Manifest {self.manifest_url} is not a JSON array of strings"
            )

        logger.info(f"Manifest listed {len(urls)} sources")
        return urls

    def describe(self) -> str:
        return f"manifest {self.manifest_url}"


def build_source_lister(
    config: RebuildConfig,
    count: Optional[int] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> SourceLister:
    """Select the listing strategy.

    An explicit ``count`` always selects range mode. Otherwise the configured
    mode applies; range mode then falls back to ``default_count``.

    Raises:
        InvalidCount: If range mode is selected without a positive count
    """
    if count is not None:
        return RangeSourceLister(count, config.source_url_template)

    if config.source_mode == SourceMode.MANIFEST:
        return ManifestSourceLister(config.manifest_url, config.http_timeout, session)

    return RangeSourceLister(config.default_count, config.source_url_template)


class SourceFetcher:
    """Downloads individual sources over a shared aiohttp session.

    Use as an async context manager; network failures are reported on the
    returned SourceDocument rather than raised.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_connections: int = 8,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self.max_connections = max_connections
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SourceFetcher":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=aiohttp.TCPConnector(limit=self.max_connections),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, origin: str) -> SourceDocument:
        if self._session is None:
            raise RuntimeError("SourceFetcher must be used inside 'async with'")

        logger.info(f"Retrieving data for url: {origin}")
        try:
            async with self._session.get(origin) as response:
                if response.status != 200:
                    return SourceDocument(origin=origin, status=response.status)
                payload = await response.read()
                return SourceDocument(origin=origin, payload=payload, status=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return SourceDocument(origin=origin, error=str(e) or type(e).__name__)
