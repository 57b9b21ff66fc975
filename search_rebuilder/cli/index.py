"""Search index management CLI commands."""

from __future__ import annotations

import asyncio
import json as _json

import click
from rich.console import Console
from rich.table import Table

from search_rebuilder.cli._common import configure_logging, load_config
from search_rebuilder.core.errors import ConfigurationError, IndexerRunThrottled, RebuildError
from search_rebuilder.pipelines.orchestrator import RebuildOrchestrator


def _orchestrator() -> RebuildOrchestrator:
    try:
        return RebuildOrchestrator.from_config(load_config())
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
def index():
    """Search service index management commands."""
    pass


@index.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def index_status(as_json: bool):
    """Show whether the index, data source and indexer exist."""

    async def _run():
        configure_logging()
        console = Console()
        orchestrator = _orchestrator()

        try:
            status = await orchestrator.lifecycle.status()
        except RebuildError as e:
            raise click.ClickException(str(e)) from e

        if as_json:
            print(_json.dumps(status, indent=2, default=str))
            return

        table = Table(title="Search Resources")
        table.add_column("Kind", no_wrap=True)
        table.add_column("Name", no_wrap=True)
        table.add_column("Exists", no_wrap=True)

        for kind, info in status["resources"].items():
            table.add_row(kind, info["name"], "✅" if info["exists"] else "❌")
        console.print(table)

        indexer_status = status.get("indexer_status") or {}
        last_result = indexer_status.get("lastResult") or {}
        if last_result:
            console.print(
                f"Last indexer run: {last_result.get('status', 'unknown')} "
                f"({last_result.get('itemsProcessed', 0)} items processed)"
            )

    asyncio.run(_run())


@index.command("run-indexer")
def index_run_indexer():
    """Request an on-demand indexer run without restaging documents."""

    async def _run():
        configure_logging()
        orchestrator = _orchestrator()
        name = orchestrator.definitions.indexer.name

        try:
            await orchestrator.search_service.run_indexer(name)
        except IndexerRunThrottled as e:
            raise click.ClickException(
                f"Indexer {name} run throttled, retry after {e.retry_after}s"
            ) from e
        except RebuildError as e:
            raise click.ClickException(str(e)) from e

        click.echo(f"✅ Indexer {name} run requested")

    asyncio.run(_run())
