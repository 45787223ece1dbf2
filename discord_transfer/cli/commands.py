#!/usr/bin/env python3
"""
Command-line entry point for the Discord transfer tool.

Importing the command modules registers their subcommands on the shared
``cli`` group.
"""

from discord_transfer.cli import clean_cmd, config_cmd, migrate_cmd  # noqa: F401
from discord_transfer.cli.common import cli


def main() -> None:
    """Run the ``discord-transfer`` command group."""
    cli()


if __name__ == "__main__":
    main()
