"""CLI command handler for removing migration markers."""

from __future__ import annotations

import datetime
import logging
import sys
from pathlib import Path

import click

from discord_transfer.cli.common import (
    SNOWFLAKE,
    cli,
    common_options,
    create_run_output_directory,
    handle_exception,
    open_adapter,
    scope_options,
)
from discord_transfer.cli.report import generate_report, print_summary
from discord_transfer.core.cleanup import run_clean
from discord_transfer.core.config import MigrationScope, load_config
from discord_transfer.core.context import MigrationContext
from discord_transfer.core.migrator import resolve_guild
from discord_transfer.core.state import MigrationState
from discord_transfer.exceptions import ConfigError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# clean subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@scope_options
@click.argument("server", type=SNOWFLAKE)
def clean(
    server: str,
    config: str,
    verbose: bool,
    debug_api: bool,
    categories: tuple[str, ...],
    skip_channels: tuple[str, ...],
    after: datetime.datetime | None,
    delay: int,
) -> None:
    """Remove the migration markers left on SERVER by previous runs.

    Nothing is copied or deleted; once markers are gone, the next migrate
    run copies those messages again.
    """
    try:
        cfg = load_config(Path(config))
    except ConfigError as e:
        setup_logger(verbose, debug_api)
        handle_exception(e)
        sys.exit(1)

    output_dir = create_run_output_directory(cfg.output_dir)
    setup_logger(verbose, debug_api, output_dir)
    log_with_context(logging.INFO, f"Cleaning migration markers on server {server}")
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    scope = MigrationScope.build(
        categories=categories,
        skip_channels=skip_channels,
        after=after,
        delay_ms=delay,
    )
    state = MigrationState()
    adapter: DiscordAdapter | None = None
    ctx: MigrationContext | None = None

    try:
        adapter = open_adapter(cfg)
        adapter.bind_stop_event(state.stop_event)
        ctx = MigrationContext(
            source_guild=resolve_guild(adapter, server, "source"),
            destination_guild=None,
            scope=scope,
            config=cfg,
            marker=cfg.marker,
            verbose=verbose,
            debug_api=debug_api,
            output_dir=output_dir,
        )
        total = run_clean(adapter, ctx, state)
        report_path = generate_report(ctx, state, "clean")
        print_summary(state, "clean", total, report_path)
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        if ctx is not None:
            generate_report(ctx, state, "clean")
        sys.exit(1)
    finally:
        if adapter is not None:
            adapter.close()
