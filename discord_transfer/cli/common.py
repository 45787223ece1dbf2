"""Shared CLI infrastructure: option decorators, parameter types, error handlers, and the CLI group."""

from __future__ import annotations

import datetime
import logging
import os
from typing import Any, Callable

import click
import requests

import discord_transfer
from discord_transfer.constants import (
    API_BASE_URL,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    HTTP_UNAUTHORIZED,
    TOKEN_ENV_VAR,
)
from discord_transfer.core.config import MigrationConfig
from discord_transfer.exceptions import (
    ConfigError,
    DiscordAPIError,
    MigrationAbortedError,
    TransferError,
)
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.utils.api import DiscordHttpClient
from discord_transfer.utils.logging import log_with_context
from discord_transfer.utils.snowflake import parse_snowflake

# ---------------------------------------------------------------------------
# Parameter types
# ---------------------------------------------------------------------------


class SnowflakeType(click.ParamType):
    """A Discord ID given on the command line."""

    name = "id"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> str:
        try:
            return parse_snowflake(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


class TimestampType(click.ParamType):
    """An ISO-8601 timestamp; naive values are UTC."""

    name = "timestamp"

    def convert(
        self, value: Any, param: click.Parameter | None, ctx: click.Context | None
    ) -> datetime.datetime:
        if isinstance(value, datetime.datetime):
            moment = value
        else:
            text = str(value).strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                moment = datetime.datetime.fromisoformat(text)
            except ValueError:
                self.fail(
                    f"{value!r} is not an ISO-8601 timestamp (e.g. 2021-03-01T12:00:00)",
                    param,
                    ctx,
                )
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=datetime.timezone.utc)
        return moment


SNOWFLAKE = SnowflakeType()
TIMESTAMP = TimestampType()


# ---------------------------------------------------------------------------
# Shared option decorators
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds options shared across every subcommand.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--config",
        default="config.yaml",
        show_default=True,
        help="Path to config YAML",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--debug-api",
        is_flag=True,
        default=False,
        help="Enable detailed API request/response logging (creates very large log files)",
    )(f)
    return f


def scope_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator for the scope options shared by ``migrate`` and ``clean``."""
    f = click.option(
        "--delay",
        "-d",
        type=click.IntRange(min=0),
        default=0,
        show_default=True,
        help="Delay in milliseconds between two messages of a channel",
    )(f)
    f = click.option(
        "--after",
        "-a",
        type=TIMESTAMP,
        default=None,
        help="Only process messages created after this timestamp",
    )(f)
    f = click.option(
        "--skip-channel",
        "-s",
        "skip_channels",
        type=SNOWFLAKE,
        multiple=True,
        help="ID of a channel to skip (repeatable)",
    )(f)
    f = click.option(
        "--category",
        "-c",
        "categories",
        type=SNOWFLAKE,
        multiple=True,
        help="ID of a category to process (repeatable, default: all)",
    )(f)
    return f


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(
    version=discord_transfer.__version__, prog_name="discord-transfer"
)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Copy categories, channels and message history between Discord servers.

    The bot token is read from the DISCORD_TOKEN environment variable.
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Run setup
# ---------------------------------------------------------------------------


def create_run_output_directory(base_dir: str) -> str:
    """Create a timestamped output directory for one run.

    Returns:
        The path to the newly created output directory.
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = os.path.join(base_dir, f"run_{timestamp}")

    os.makedirs(output_dir, exist_ok=True)
    os.makedirs(os.path.join(output_dir, "channel_logs"), exist_ok=True)

    return output_dir


def open_adapter(config: MigrationConfig) -> DiscordAdapter:
    """Build an authenticated adapter and check the token.

    Raises:
        ConfigError: If no token is configured.
        DiscordAPIError: If the token is rejected.
    """
    token = os.environ.get(TOKEN_ENV_VAR, "").strip()
    if not token:
        raise ConfigError(
            f"No bot token found. Set the {TOKEN_ENV_VAR} environment variable."
        )

    http = DiscordHttpClient(
        token,
        API_BASE_URL,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
        timeout=config.request_timeout,
        pool_size=max(10, config.max_workers * 2),
    )
    adapter = DiscordAdapter(http)
    try:
        user = adapter.get_current_user()
    except Exception:
        adapter.close()
        raise
    log_with_context(
        logging.INFO,
        f"Logged in as {user.get('username', '?')} ({user.get('id', '?')})",
    )
    return adapter


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_api_error(e: DiscordAPIError) -> None:
    """Handle Discord API errors with specific messages.

    Args:
        e: The API error to handle.
    """
    if e.status == HTTP_UNAUTHORIZED:
        log_with_context(logging.ERROR, f"Authentication failed: {e}")
        log_with_context(
            logging.INFO,
            f"Check that {TOKEN_ENV_VAR} holds a valid bot token.",
        )
    elif e.status == HTTP_FORBIDDEN:
        log_with_context(logging.ERROR, f"Missing permissions: {e}")
        log_with_context(
            logging.INFO,
            "\nThe bot doesn't have sufficient permissions. Please ensure it can:",
        )
        log_with_context(
            logging.INFO, "1. Read message history and add reactions on the source server"
        )
        log_with_context(
            logging.INFO,
            "2. Manage channels and send messages with embeds and files on the destination server",
        )
    elif e.status == HTTP_NOT_FOUND:
        log_with_context(logging.ERROR, f"Not found: {e}")
    elif e.status == HTTP_RATE_LIMIT:
        log_with_context(logging.ERROR, f"Rate limit exceeded: {e}")
        log_with_context(
            logging.INFO,
            "Consider raising --delay. Migrated messages are marked, so the run can be resumed.",
        )
    elif e.status >= HTTP_SERVER_ERROR_MIN:
        log_with_context(logging.ERROR, f"Server error from Discord API: {e}")
        log_with_context(
            logging.INFO, "This is likely a temporary issue. Please try again later."
        )
    else:
        log_with_context(logging.ERROR, f"API error: {e}")


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, DiscordAPIError):
        handle_api_error(e)
    elif isinstance(e, (MigrationAbortedError, KeyboardInterrupt)):
        log_with_context(logging.WARNING, "Run interrupted by user.")
        log_with_context(
            logging.INFO,
            "Processed messages are marked on the source server; run the same command to resume.",
        )
    elif isinstance(e, TransferError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, requests.RequestException):
        log_with_context(logging.ERROR, f"Network error: {e}")
        log_with_context(
            logging.INFO, "Check your connection to discord.com and try again."
        )
    else:
        log_with_context(logging.ERROR, f"Run failed: {e}", exc_info=True)
