"""CLI command handler for writing a default configuration file."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from discord_transfer.cli.common import cli
from discord_transfer.core.config import create_default_config
from discord_transfer.utils.logging import setup_logger


@cli.command("init-config")
@click.argument("path", default="config.yaml", required=False)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose console logging",
)
def init_config(path: str, verbose: bool) -> None:
    """Write a default configuration file to PATH (never overwrites)."""
    setup_logger(verbose)
    if not create_default_config(Path(path)):
        sys.exit(1)
