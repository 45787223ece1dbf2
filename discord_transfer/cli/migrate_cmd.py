"""CLI command handler for the migrate workflow."""

from __future__ import annotations

import datetime
import logging
import sys
from pathlib import Path
from types import SimpleNamespace

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
from discord_transfer.core.config import MigrationConfig, MigrationScope, load_config
from discord_transfer.core.context import MigrationContext
from discord_transfer.core.migrator import DiscordMigrator, resolve_guild
from discord_transfer.core.state import MigrationState
from discord_transfer.exceptions import ConfigError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.utils.logging import log_with_context, setup_logger

# ---------------------------------------------------------------------------
# migrate subcommand
# ---------------------------------------------------------------------------


@cli.command()
@common_options
@scope_options
@click.argument("source", type=SNOWFLAKE)
@click.argument("destination", type=SNOWFLAKE)
@click.option(
    "--include-channel",
    "-i",
    "include_channels",
    type=SNOWFLAKE,
    multiple=True,
    help="ID of a text channel to migrate even outside the selected categories (repeatable)",
)
@click.option(
    "--no-bot",
    is_flag=True,
    default=False,
    help="Skip messages posted by bots and webhooks",
)
@click.option(
    "--no-reupload",
    is_flag=True,
    default=False,
    help="Link attachments to their original URL instead of re-uploading them",
)
@click.option(
    "--text-only",
    is_flag=True,
    default=False,
    help="Do not mirror voice channels",
)
def migrate(
    source: str,
    destination: str,
    config: str,
    verbose: bool,
    debug_api: bool,
    categories: tuple[str, ...],
    skip_channels: tuple[str, ...],
    after: datetime.datetime | None,
    delay: int,
    include_channels: tuple[str, ...],
    no_bot: bool,
    no_reupload: bool,
    text_only: bool,
) -> None:
    """Copy the history of SOURCE server into DESTINATION server.

    Messages already copied by a previous run are skipped, so the command
    can be repeated to pick up new messages or resume an interrupted run.
    """
    args = SimpleNamespace(
        source=source,
        destination=destination,
        config=config,
        verbose=verbose,
        debug_api=debug_api,
    )

    try:
        cfg = load_config(Path(config))
    except ConfigError as e:
        setup_logger(verbose, debug_api)
        handle_exception(e)
        sys.exit(1)

    # Create output directory early so all operations are logged to file
    output_dir = create_run_output_directory(cfg.output_dir)
    setup_logger(verbose, debug_api, output_dir)

    scope = MigrationScope.build(
        categories=categories,
        skip_channels=skip_channels,
        include_channels=include_channels,
        after=after,
        delay_ms=delay,
        skip_bots=no_bot,
        reupload_attachments=not no_reupload,
        text_only=text_only,
    )

    log_startup_info(args, scope)
    log_with_context(logging.INFO, f"Output directory: {output_dir}")

    orchestrator = MigrationOrchestrator(args, cfg, scope, output_dir)
    try:
        orchestrator.validate_prerequisites()
        orchestrator.run_migration()
    except (Exception, KeyboardInterrupt) as e:
        handle_exception(e)
        orchestrator.write_report()
        sys.exit(1)
    finally:
        orchestrator.cleanup()


# ---------------------------------------------------------------------------
# MigrationOrchestrator
# ---------------------------------------------------------------------------


class MigrationOrchestrator:
    """Orchestrates the migration process with validation and error handling."""

    def __init__(
        self,
        args: SimpleNamespace,
        config: MigrationConfig,
        scope: MigrationScope,
        output_dir: str,
    ) -> None:
        self.args = args
        self.config = config
        self.scope = scope
        self.output_dir = output_dir
        self.state = MigrationState()
        self.adapter: DiscordAdapter | None = None
        self.ctx: MigrationContext | None = None

    def validate_prerequisites(self) -> None:
        """Log in and resolve both servers before any copy work starts."""
        if self.args.source == self.args.destination:
            raise ConfigError("Source and destination servers must differ")

        self.adapter = open_adapter(self.config)
        self.adapter.bind_stop_event(self.state.stop_event)
        source_guild = resolve_guild(self.adapter, self.args.source, "source")
        destination_guild = resolve_guild(
            self.adapter, self.args.destination, "destination"
        )

        self.ctx = MigrationContext(
            source_guild=source_guild,
            destination_guild=destination_guild,
            scope=self.scope,
            config=self.config,
            marker=self.config.marker,
            verbose=self.args.verbose,
            debug_api=self.args.debug_api,
            output_dir=self.output_dir,
        )

    def run_migration(self) -> int:
        """Execute the migration and report on it.

        Returns:
            Number of messages migrated.
        """
        if self.adapter is None or self.ctx is None:
            raise RuntimeError("validate_prerequisites() must run first")

        migrator = DiscordMigrator(self.adapter, self.ctx, self.state)
        total = migrator.migrate()
        report_path = generate_report(self.ctx, self.state, "migrate")
        print_summary(self.state, "migrate", total, report_path)
        return total

    def write_report(self) -> None:
        """Write a partial report after a failed run, if a run had started."""
        if self.ctx is None:
            return
        try:
            generate_report(self.ctx, self.state, "migrate")
        except Exception as report_error:
            log_with_context(
                logging.WARNING,
                f"Failed to generate migration report after failure: {report_error}",
            )

    def cleanup(self) -> None:
        """Release the HTTP session."""
        if self.adapter is not None:
            self.adapter.close()
            self.adapter = None


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def log_startup_info(args: SimpleNamespace, scope: MigrationScope) -> None:
    """Log startup information.

    Args:
        args: Parsed CLI arguments.
        scope: The scope built from them.
    """
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = Path.cwd() / args.config

    log_with_context(logging.INFO, "Starting migration with the following parameters:")
    log_with_context(logging.INFO, f"- Source server: {args.source}")
    log_with_context(logging.INFO, f"- Destination server: {args.destination}")
    log_with_context(logging.INFO, f"- Config: {config_path}")
    log_with_context(
        logging.INFO,
        f"- Categories: {', '.join(sorted(scope.category_ids)) if scope.category_ids else 'all'}",
    )
    if scope.skip_channel_ids:
        log_with_context(
            logging.INFO, f"- Skipped channels: {', '.join(sorted(scope.skip_channel_ids))}"
        )
    if scope.include_channel_ids:
        log_with_context(
            logging.INFO,
            f"- Included channels: {', '.join(sorted(scope.include_channel_ids))}",
        )
    if scope.after:
        log_with_context(logging.INFO, f"- After: {scope.after.isoformat()}")
    log_with_context(logging.INFO, f"- Delay: {scope.delay_ms} ms")
    log_with_context(logging.INFO, f"- Skip bots: {scope.skip_bots}")
    log_with_context(logging.INFO, f"- Re-upload attachments: {scope.reupload_attachments}")
    log_with_context(logging.INFO, f"- Text only: {scope.text_only}")
    log_with_context(logging.INFO, f"- Verbose logging: {args.verbose}")
    log_with_context(logging.INFO, f"- Debug API calls: {args.debug_api}")
