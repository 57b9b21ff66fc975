"""Search Rebuilder - rebuild a managed search index from remote data sources."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("search-rebuilder")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for development without install
