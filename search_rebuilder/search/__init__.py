"""Managed search service clients."""

from search_rebuilder.core.config import RebuildConfig
from search_rebuilder.core.errors import ConfigurationError

from .protocols import ResourceKind, SearchService
from .rest import SearchRestClient

__all__ = [
    "ResourceKind",
    "SearchService",
    "SearchRestClient",
    "create_search_service",
]


def create_search_service(config: RebuildConfig) -> SearchService:
    """Create the search service client from configuration."""
    if not config.search_endpoint or not config.search_api_key:
        raise ConfigurationError("search_endpoint and search_api_key must be configured")

    return SearchRestClient(
        endpoint=config.search_endpoint,
        api_key=config.search_api_key.get_secret_value(),
        api_version=config.search_api_version,
        timeout=config.http_timeout,
        cooldown_seconds=config.indexer_cooldown_seconds,
    )
