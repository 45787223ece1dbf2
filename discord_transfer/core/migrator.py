"""
Main migrator class for the Discord transfer tool.

Categories are mirrored first (with their voice channels), then every text
channel in scope is mirrored and replayed. Both phases fan out over a
bounded thread pool; a failing branch is logged and counts as zero.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from typing import Any, Callable, Sequence, TypeVar

from tqdm import tqdm

from discord_transfer.core.channel_processor import ChannelProcessor
from discord_transfer.core.context import MigrationContext
from discord_transfer.core.migration_logging import (
    log_migration_failure,
    log_migration_success,
)
from discord_transfer.core.scope import ScopeSelection, select_scope
from discord_transfer.core.state import MigrationState
from discord_transfer.exceptions import MigrationAbortedError, ResolutionError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.services.message_builder import MessageBuilder
from discord_transfer.services.structure_mirror import StructureMirror
from discord_transfer.types import (
    ChannelPhase,
    DiscordChannel,
    DiscordGuild,
    TextChannelMigrationResult,
)
from discord_transfer.utils.logging import log_with_context

T = TypeVar("T")
R = TypeVar("R")


def resolve_guild(adapter: DiscordAdapter, guild_id: str, role: str) -> DiscordGuild:
    """Resolve a guild the run cannot do without.

    Raises:
        ResolutionError: If the guild does not exist or is not visible.
    """
    guild = adapter.get_guild(guild_id)
    if guild is None:
        raise ResolutionError(
            f"The {role} server {guild_id} was not found or the bot is not a member"
        )
    log_with_context(
        logging.INFO,
        f"Resolved {role} server: {guild.get('name', guild_id)} ({guild_id})",
    )
    return guild


def run_branches(
    items: Sequence[T],
    worker: Callable[[T], R],
    state: MigrationState,
    max_workers: int,
    desc: str,
    describe: Callable[[T], str],
) -> list[R | None]:
    """Run ``worker`` over ``items`` on a bounded pool with failure isolation.

    A branch that raises is logged and recorded on ``state``; its slot in
    the returned list is None. Branches not yet started when a stop is
    requested are skipped.

    Args:
        items: One entry per branch.
        worker: Branch body.
        state: Run state, for the stop event and branch errors.
        max_workers: Pool size.
        desc: Progress bar label.
        describe: Human-readable name of an item, for logs.

    Returns:
        Branch results in the order of ``items``.
    """
    results: list[R | None] = [None] * len(items)
    if not items:
        return results

    def guarded(item: T) -> R | None:
        if state.stopped:
            return None
        return worker(item)

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="branch"
    )
    try:
        futures = {
            executor.submit(guarded, item): index for index, item in enumerate(items)
        }
        with tqdm(total=len(futures), desc=desc, unit="branch") as progress:
            for future in concurrent.futures.as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    name = describe(items[index])
                    log_with_context(
                        logging.ERROR,
                        f"{desc} branch {name} failed: {e}",
                        branch=name,
                        exc_info=True,
                    )
                    state.record_branch_error(f"{name}: {e}")
                progress.update(1)
    except KeyboardInterrupt:
        state.request_stop()
        log_with_context(
            logging.WARNING,
            "Interrupted, waiting for running branches to stop...",
        )
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    finally:
        executor.shutdown(wait=True)

    return results


class DiscordMigrator:
    """Copies categories, channels and message history between two servers."""

    def __init__(
        self,
        adapter: DiscordAdapter,
        ctx: MigrationContext,
        state: MigrationState | None = None,
    ) -> None:
        self.adapter = adapter
        self.ctx = ctx
        self.state = state or MigrationState()
        self.mirror = StructureMirror(adapter, ctx.destination_guild_id, self.state)
        self.builder = MessageBuilder(adapter, ctx.scope.reupload_attachments)
        self.processor = ChannelProcessor(
            ctx, self.state, adapter, self.mirror, self.builder
        )

    def migrate(self) -> int:
        """Run the migration.

        Returns:
            Total number of messages migrated in this run.

        Raises:
            MigrationAbortedError: If the run was interrupted.
        """
        start_time = time.time()
        log_with_context(
            logging.INFO,
            f"{self.ctx.log_prefix}Starting migration from {self.ctx.source_guild_id} "
            f"to {self.ctx.destination_guild_id}",
        )

        try:
            selection = select_scope(
                self.adapter, self.ctx.source_guild_id, self.ctx.scope
            )
            category_map = self._mirror_categories(selection)
            results = self._migrate_channels(selection, category_map)
        except KeyboardInterrupt as e:
            self.state.request_stop()
            log_migration_failure(self.state, e, time.time() - start_time)
            raise MigrationAbortedError("Migration interrupted by user") from e
        except Exception as e:
            log_migration_failure(self.state, e, time.time() - start_time)
            raise

        if self.state.stopped:
            log_migration_failure(
                self.state,
                MigrationAbortedError("stop requested"),
                time.time() - start_time,
            )
            raise MigrationAbortedError("Migration stopped before all channels finished")

        total = sum(r.message_count for r in results if r is not None)
        log_migration_success(self.state, time.time() - start_time)
        return total

    # -- Categories -----------------------------------------------------------

    def _mirror_categories(self, selection: ScopeSelection) -> dict[str, str]:
        """Mirror selected categories and their voice channels.

        Returns:
            Source category ID to destination category ID, for every
            category branch that succeeded.
        """
        results = run_branches(
            selection.categories,
            lambda category: self._mirror_category(category, selection),
            self.state,
            self.ctx.config.max_workers,
            "Categories",
            _describe_channel,
        )
        return {
            source["id"]: destination_id
            for source, destination_id in zip(selection.categories, results)
            if destination_id is not None
        }

    def _mirror_category(
        self, source: DiscordChannel, selection: ScopeSelection
    ) -> str:
        category = self.mirror.find_or_create_category(source)
        for voice in selection.voice_channels_in(source["id"]):
            if self.state.stopped:
                break
            self.mirror.ensure_voice_channel(voice, category["id"])
        return category["id"]

    # -- Text channels --------------------------------------------------------

    def _migrate_channels(
        self, selection: ScopeSelection, category_map: dict[str, str]
    ) -> list[TextChannelMigrationResult | None]:
        selected_categories = {c["id"] for c in selection.categories}
        return run_branches(
            selection.text_channels,
            lambda channel: self._migrate_channel(
                channel, selected_categories, category_map
            ),
            self.state,
            self.ctx.config.max_workers,
            "Channels",
            _describe_channel,
        )

    def _migrate_channel(
        self,
        source: DiscordChannel,
        selected_categories: set[str],
        category_map: dict[str, str],
    ) -> TextChannelMigrationResult:
        source_parent = source.get("parent_id")

        if source_parent in selected_categories and source_parent not in category_map:
            result = TextChannelMigrationResult(
                source_channel=source,
                destination_channel=None,
                phase=ChannelPhase.FAILED,
                error="Parent category could not be mirrored",
            )
            log_with_context(
                logging.WARNING,
                f"Skipping #{source['name']}: its category could not be mirrored",
                channel_id=source["id"],
            )
            self.state.record_channel(result)
            return result

        if source_parent in category_map:
            parent_id = category_map[source_parent]
        else:
            parent_id = self._existing_parent(source_parent)

        return self.processor.process_channel(source, parent_id)

    def _existing_parent(self, source_parent: str | None) -> str | None:
        """Destination parent for a channel included outside the walked categories.

        Only an already existing destination category with the same name is
        used; categories are never created as a side effect of inclusion.
        """
        if source_parent is None:
            return None
        category = self.adapter.get_channel(source_parent)
        if category is None:
            return None
        destination = self.mirror.find_category(category["name"])
        return destination["id"] if destination is not None else None


def _describe_channel(channel: Any) -> str:
    return f"{channel.get('name', '?')} ({channel.get('id', '?')})"
