"""
Clean pass: remove migration markers from a source server.

Walks the same scope as a migration (without included channels) and drops
the acting account's marker reaction from every ordinary or reply message
that carries it.
"""

from __future__ import annotations

import logging
import time

from discord_transfer.constants import REPLAYABLE_MESSAGE_TYPES
from discord_transfer.core.context import MigrationContext
from discord_transfer.core.migration_logging import (
    log_clean_summary,
    log_migration_failure,
)
from discord_transfer.core.migrator import run_branches
from discord_transfer.core.scope import select_scope
from discord_transfer.core.state import MigrationState
from discord_transfer.exceptions import MigrationAbortedError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.services.migration_marker import has_marker, remove_marker
from discord_transfer.types import (
    ChannelPhase,
    DiscordChannel,
    TextChannelMigrationResult,
)
from discord_transfer.utils.logging import channel_log_name, log_with_context
from discord_transfer.utils.snowflake import channel_start_cursor


def clean_channel(
    adapter: DiscordAdapter,
    ctx: MigrationContext,
    state: MigrationState,
    source: DiscordChannel,
) -> int:
    """Remove markers from one text channel.

    Returns:
        Number of markers removed.
    """
    channel = channel_log_name(source["name"], source["id"])
    cursor = channel_start_cursor(source["id"], ctx.scope.after)
    removed = 0
    first = True

    log_with_context(logging.INFO, f"Cleaning #{source['name']}", channel=channel)

    for message in adapter.iter_messages_after(source["id"], cursor):
        if state.stopped:
            break
        if message.get("type", 0) not in REPLAYABLE_MESSAGE_TYPES:
            continue
        if not has_marker(message, ctx.marker):
            continue

        if not first and ctx.scope.delay_ms:
            if state.stop_event.wait(ctx.scope.delay_seconds):
                break
        first = False

        if remove_marker(adapter, message, ctx.marker, channel):
            removed += 1
            state.increment("markers_removed")
        else:
            state.increment("markers_failed")

    state.record_channel(
        TextChannelMigrationResult(
            source_channel=source,
            destination_channel=None,
            message_count=removed,
            phase=ChannelPhase.FAILED if state.stopped else ChannelPhase.DONE,
        )
    )
    log_with_context(
        logging.INFO,
        f"Removed {removed} marker(s) from #{source['name']}",
        channel=channel,
    )
    return removed


def run_clean(
    adapter: DiscordAdapter,
    ctx: MigrationContext,
    state: MigrationState | None = None,
) -> int:
    """Remove every migration marker in scope from the source server.

    Args:
        adapter: Remote client.
        ctx: Run context; only the source guild is used.
        state: Run state, created if omitted.

    Returns:
        Total number of markers removed.

    Raises:
        MigrationAbortedError: If the run was interrupted.
    """
    state = state or MigrationState()
    start_time = time.time()
    log_with_context(
        logging.INFO, f"Starting clean of server {ctx.source_guild_id}"
    )

    try:
        selection = select_scope(adapter, ctx.source_guild_id, ctx.scope)
        results = run_branches(
            selection.text_channels,
            lambda source: clean_channel(adapter, ctx, state, source),
            state,
            ctx.config.max_workers,
            "Channels",
            lambda c: f"{c.get('name', '?')} ({c.get('id', '?')})",
        )
    except KeyboardInterrupt as e:
        state.request_stop()
        log_migration_failure(state, e, time.time() - start_time)
        raise MigrationAbortedError("Clean interrupted by user") from e

    if state.stopped:
        raise MigrationAbortedError("Clean stopped before all channels finished")

    log_clean_summary(state, time.time() - start_time)
    return sum(r for r in results if r is not None)
