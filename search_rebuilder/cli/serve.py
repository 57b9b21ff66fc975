"""Top-level `serve` CLI command."""

from __future__ import annotations

import click

from search_rebuilder.core.config import settings


@click.command()
@click.option("--host", default=None, help="Bind address (default: HOST setting)")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT setting)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Start the HTTP trigger API."""
    import uvicorn

    uvicorn.run(
        "search_rebuilder.api.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
