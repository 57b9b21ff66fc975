"""Shared helpers for CLI commands."""

import logging

import click

from search_rebuilder.core.config import RebuildConfig, settings
from search_rebuilder.core.errors import ConfigurationError


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )


def load_config() -> RebuildConfig:
    """Load the rebuild configuration or exit with a readable error."""
    try:
        return RebuildConfig.from_settings()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
