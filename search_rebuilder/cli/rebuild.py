"""Rebuild CLI commands."""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from search_rebuilder.cli._common import configure_logging, load_config
from search_rebuilder.core.errors import ConfigurationError, InvalidCount, SourceListUnavailable
from search_rebuilder.observability.tracing import setup_tracing
from search_rebuilder.pipelines.orchestrator import RebuildOrchestrator
from search_rebuilder.pipelines.sources import build_source_lister


@click.group()
def rebuild():
    """Search index rebuild commands."""
    pass


@rebuild.command("run")
@click.option("--count", "-n", type=int, default=None, help="Rebuild from sources 1..N")
@click.option("--json", "as_json", is_flag=True, help="Output JSON")
def rebuild_run(count: Optional[int], as_json: bool):
    """Clear the container, restage all sources and recreate the index."""

    async def _run():
        configure_logging()
        setup_tracing("search-rebuilder-cli")
        console = Console()

        config = load_config()
        try:
            orchestrator = RebuildOrchestrator.from_config(config)
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from e

        outcome = await orchestrator.run(count)

        if as_json:
            print(outcome.model_dump_json(indent=2))
        else:
            table = Table(title="Rebuild Outcome")
            table.add_column("Field", no_wrap=True)
            table.add_column("Value")
            table.add_row("Status", outcome.status.value)
            table.add_row("Message", outcome.message)
            table.add_row("Sources listed", str(outcome.sources_listed))
            table.add_row("Documents attempted", str(outcome.documents_attempted))
            table.add_row("Documents skipped", str(outcome.documents_skipped))
            table.add_row("Objects cleared", str(outcome.objects_cleared))
            table.add_row("Objects written", str(outcome.objects_written))
            table.add_row("Objects unchanged", str(outcome.objects_unchanged))
            console.print(table)

            for warning in outcome.warnings:
                console.print(f"[yellow]⚠ {warning}[/yellow]")
            for error in outcome.errors:
                console.print(f"[red]✗ {error}[/red]")

        if not outcome.success:
            sys.exit(1)

    asyncio.run(_run())


@rebuild.command("sources")
@click.option("--count", "-n", type=int, default=None, help="List sources 1..N")
def rebuild_sources(count: Optional[int]):
    """Print the source URLs a rebuild would fetch, without touching anything."""

    async def _run():
        configure_logging()
        config = load_config()
        try:
            lister = build_source_lister(config, count)
            sources = await lister.list_sources()
        except (InvalidCount, SourceListUnavailable) as e:
            raise click.ClickException(str(e)) from e

        click.echo(f"{len(sources)} sources from {lister.describe()}")
        for origin in sources:
            click.echo(origin)

    asyncio.run(_run())
