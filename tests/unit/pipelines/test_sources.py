"""Tests for source listing and fetching."""

import asyncio
from unittest.mock import MagicMock, patch

import aiohttp
import pytest

from search_rebuilder.core.config import RebuildConfig, SourceMode
from search_rebuilder.core.errors import InvalidCount, SourceListUnavailable
from search_rebuilder.pipelines.sources import (
    ManifestSourceLister,
    RangeSourceLister,
    SourceDocument,
    SourceFetcher,
    build_source_lister,
)


class MockAsyncContextManager:
    """Mock async context manager for aiohttp responses."""

    def __init__(self, return_value=None, side_effect=None):
        self.return_value = return_value
        self.side_effect = side_effect

    async def __aenter__(self):
        if self.side_effect:
            raise self.side_effect
        return self.return_value

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None


def mock_response(status=200, text="", body=b""):
    response = MagicMock()
    response.status = status

    async def _text():
        return text

    async def _read():
        return body or text.encode()

    response.text = _text
    response.read = _read
    return response


class TestRangeSourceLister:
    """Test range mode listing."""

    async def test_lists_template_in_order(self):
        """Range mode yields 1..N in order."""
        lister = RangeSourceLister(3, "https://example.test/items/{n}")

        assert await lister.list_sources() == [
            "https://example.test/items/1",
            "https://example.test/items/2",
            "https://example.test/items/3",
        ]

    async def test_regenerates_each_call(self):
        """Every call returns a fresh list."""
        lister = RangeSourceLister(2)
        first = await lister.list_sources()
        first.append("mutated")

        assert len(await lister.list_sources()) == 2

    @pytest.mark.parametrize("count", [0, -1, True, "3", 1.5])
    def test_invalid_count_rejected(self, count):
        """Counts below 1 or non-integers raise InvalidCount."""
        with pytest.raises(InvalidCount):
            RangeSourceLister(count)


class TestManifestSourceLister:
    """Test manifest mode listing."""

    async def test_returns_manifest_urls(self):
        """A JSON array of strings is returned as-is, duplicates included."""
        urls = '["https://a.test/1", "https://a.test/2", "https://a.test/1"]'
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(mock_response(200, text=urls))

            sources = await ManifestSourceLister("https://manifest.test").list_sources()

        assert sources == ["https://a.test/1", "https://a.test/2", "https://a.test/1"]

    async def test_non_200_raises(self):
        """A non-200 manifest response is fatal."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(mock_response(503))

            with pytest.raises(SourceListUnavailable, match="HTTP 503"):
                await ManifestSourceLister("https://manifest.test").list_sources()

    @pytest.mark.parametrize("body", ["not json", '{"urls": []}', "[1, 2]"])
    async def test_bad_body_raises(self, body):
        """Unparseable or wrongly shaped bodies are fatal."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(mock_response(200, text=body))

            with pytest.raises(SourceListUnavailable):
                await ManifestSourceLister("https://manifest.test").list_sources()

    async def test_non_utf8_body_raises(self):
        """A body that is not UTF-8 is a parse failure, not a crash."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(
                mock_response(200, body=b"\xff\xfe[\"https://a.test/1\"]")
            )

            with pytest.raises(SourceListUnavailable, match="could not be parsed"):
                await ManifestSourceLister("https://manifest.test").list_sources()

    async def test_network_error_raises(self):
        """Connection errors surface as SourceListUnavailable."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(
                side_effect=aiohttp.ClientConnectionError("refused")
            )

            with pytest.raises(SourceListUnavailable, match="refused"):
                await ManifestSourceLister("https://manifest.test").list_sources()

    async def test_timeout_raises(self):
        """Timeouts surface as SourceListUnavailable."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(side_effect=asyncio.TimeoutError())

            with pytest.raises(SourceListUnavailable, match="TimeoutError"):
                await ManifestSourceLister("https://manifest.test").list_sources()


class TestBuildSourceLister:
    """Test listing strategy selection."""

    def test_explicit_count_selects_range(self):
        """A count always selects range mode."""
        config = RebuildConfig(source_mode=SourceMode.MANIFEST, manifest_url="https://m.test")

        lister = build_source_lister(config, 5)

        assert isinstance(lister, RangeSourceLister)
        assert lister.count == 5

    def test_manifest_mode(self):
        """Without a count the configured manifest mode applies."""
        config = RebuildConfig(source_mode=SourceMode.MANIFEST, manifest_url="https://m.test")

        assert isinstance(build_source_lister(config), ManifestSourceLister)

    def test_range_mode_uses_default_count(self):
        """Range mode falls back to default_count."""
        config = RebuildConfig(default_count=4)

        assert build_source_lister(config).count == 4

    def test_range_mode_without_count_rejected(self):
        """Range mode with no count at all is an invalid count."""
        with pytest.raises(InvalidCount):
            build_source_lister(RebuildConfig())

    def test_zero_count_rejected(self):
        """An explicit zero is rejected before anything else happens."""
        with pytest.raises(InvalidCount):
            build_source_lister(RebuildConfig(default_count=3), 0)


class TestSourceDocument:
    """Test SourceDocument."""

    def test_ok_requires_200_and_payload(self):
        assert SourceDocument(origin="u", payload=b"{}", status=200).ok
        assert not SourceDocument(origin="u", payload=b"", status=200).ok
        assert not SourceDocument(origin="u", payload=b"{}", status=500).ok

    def test_failure_reason(self):
        assert SourceDocument(origin="u", status=404).failure_reason() == "HTTP 404"
        assert SourceDocument(origin="u", status=200).failure_reason() == "empty body"
        assert SourceDocument(origin="u", error="boom").failure_reason() == "boom"


class TestSourceFetcher:
    """Test SourceFetcher."""

    async def test_fetch_success(self):
        """A 200 response carries the raw bytes."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(mock_response(200, body=b'{"id":1}'))

            async with SourceFetcher() as fetcher:
                document = await fetcher.fetch("https://a.test/1")

        assert document.ok
        assert document.payload == b'{"id":1}'

    async def test_fetch_non_200_is_not_raised(self):
        """Non-200 responses are reported on the document."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(mock_response(404))

            async with SourceFetcher() as fetcher:
                document = await fetcher.fetch("https://a.test/1")

        assert not document.ok
        assert document.status == 404

    async def test_fetch_network_error_is_not_raised(self):
        """Network errors are reported on the document."""
        with patch("aiohttp.ClientSession.get") as mock_get:
            mock_get.return_value = MockAsyncContextManager(
                side_effect=aiohttp.ClientConnectionError("reset")
            )

            async with SourceFetcher() as fetcher:
                document = await fetcher.fetch("https://a.test/1")

        assert document.status is None
        assert document.error == "reset"

    async def test_fetch_outside_context_raises(self):
        """The session only exists inside 'async with'."""
        with pytest.raises(RuntimeError):
            await SourceFetcher().fetch("https://a.test/1")
