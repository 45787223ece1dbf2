"""Channel-level processing: mirror one text channel and replay its history."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from discord_transfer.core.context import MigrationContext
    from discord_transfer.core.state import MigrationState

from discord_transfer.constants import REPLAYABLE_MESSAGE_TYPES
from discord_transfer.exceptions import DiscordAPIError, MalformedEmbedError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.services.message_builder import MessageAuthor, MessageBuilder
from discord_transfer.services.migration_marker import add_marker, has_marker
from discord_transfer.services.structure_mirror import StructureMirror
from discord_transfer.types import (
    ChannelPhase,
    DiscordChannel,
    DiscordMessage,
    MessageResult,
    TextChannelMigrationResult,
)
from discord_transfer.utils.logging import (
    LOGGER_NAME,
    channel_log_name,
    log_with_context,
    setup_channel_logger,
)
from discord_transfer.utils.snowflake import channel_start_cursor


def skip_reason(
    message: DiscordMessage, marker: str, skip_bots: bool
) -> MessageResult | None:
    """Return why ``message`` must not be replayed, or None if it is eligible.

    Checks run in order: marker, message type, system author, bot author.
    """
    if has_marker(message, marker):
        return MessageResult.ALREADY_MIGRATED
    if message.get("type", 0) not in REPLAYABLE_MESSAGE_TYPES:
        return MessageResult.UNSUPPORTED_TYPE
    author = message.get("author") or {}
    if author.get("system"):
        return MessageResult.SYSTEM_AUTHOR
    if skip_bots and (author.get("bot") or message.get("webhook_id")):
        return MessageResult.IGNORED_BOT
    return None


class ChannelProcessor:
    """Handles per-channel processing during migration.

    One instance is shared by every channel branch; all per-channel state
    lives in the :class:`TextChannelMigrationResult` of that branch.
    """

    def __init__(
        self,
        ctx: MigrationContext,
        state: MigrationState,
        adapter: DiscordAdapter,
        mirror: StructureMirror,
        builder: MessageBuilder,
    ) -> None:
        self.ctx = ctx
        self.state = state
        self.adapter = adapter
        self.mirror = mirror
        self.builder = builder

    def process_channel(
        self, source: DiscordChannel, parent_id: str | None
    ) -> TextChannelMigrationResult:
        """Mirror a source text channel and replay its unmigrated history.

        Failures never escape: they move the result to ``FAILED`` and keep
        whatever count was reached.

        Args:
            source: Source text channel.
            parent_id: Destination category ID, or None for top level.

        Returns:
            The channel result, also recorded on the run state.
        """
        channel = channel_log_name(source["name"], source["id"])
        result = TextChannelMigrationResult(source_channel=source, destination_channel=None)
        handler = self._setup_channel_logging(channel)

        try:
            log_with_context(
                logging.INFO,
                f"{self.ctx.log_prefix}Processing channel: #{source['name']}",
                channel=channel,
            )
            result.phase = ChannelPhase.MIRRORING
            result.destination_channel = self.mirror.find_or_create_text_channel(
                source, parent_id, channel=channel
            )

            result.phase = ChannelPhase.REPLAYING
            self._replay_messages(source, result, channel)
            if self.state.stopped:
                result.phase = ChannelPhase.FAILED
                result.error = "Interrupted"
            else:
                result.phase = ChannelPhase.DONE
        except Exception as e:
            result.error = str(e)
            log_with_context(
                logging.ERROR,
                f"Channel #{source['name']} failed while {result.phase.value.lower()}: {e}",
                channel=channel,
                exc_info=True,
            )
            result.phase = ChannelPhase.FAILED
        finally:
            log_with_context(
                logging.INFO,
                f"Migrated {result.message_count} message(s) in #{source['name']}",
                channel=channel,
                phase=result.phase.value,
            )
            self.state.record_channel(result)
            self._teardown_channel_logging(handler)

        return result

    def _replay_messages(
        self,
        source: DiscordChannel,
        result: TextChannelMigrationResult,
        channel: str,
    ) -> None:
        """Stream eligible messages in order and replay each one."""
        if result.destination_channel is None:
            raise RuntimeError("Destination channel not resolved")
        destination_id = result.destination_channel["id"]
        scope = self.ctx.scope
        cursor = channel_start_cursor(source["id"], scope.after)
        first = True

        for message in self.adapter.iter_messages_after(source["id"], cursor):
            if self.state.stopped:
                return

            reason = skip_reason(message, self.ctx.marker, scope.skip_bots)
            if reason is not None:
                log_with_context(
                    logging.DEBUG,
                    f"Skipping message {message['id']}: {reason.value}",
                    channel=channel,
                    message_id=message["id"],
                )
                continue

            if not first and scope.delay_ms:
                # Interruptible pause
                if self.state.stop_event.wait(scope.delay_seconds):
                    return
            first = False

            if self._replay_message(message, destination_id, channel):
                result.message_count += 1

    def _replay_message(
        self, message: DiscordMessage, destination_id: str, channel: str
    ) -> bool:
        """Create the destination copy, then mark the source best-effort.

        Returns:
            True if the destination message was created.
        """
        author = MessageAuthor.from_raw(message.get("author"))
        try:
            payload, dropped = self.builder.build(message, author, channel)
            self.adapter.create_message(destination_id, payload.to_json(), payload.files)
        except (DiscordAPIError, MalformedEmbedError, OSError) as e:
            log_with_context(
                logging.WARNING,
                f"Failed to migrate message {message['id']}: {e}",
                channel=channel,
                message_id=message["id"],
            )
            self.state.record_failed_message(channel, message["id"], str(e))
            return False

        self.state.increment("messages_migrated")
        if dropped:
            self.state.increment("attachments_dropped", dropped)

        if add_marker(self.adapter, message, self.ctx.marker, channel):
            self.state.increment("markers_added")
        else:
            self.state.increment("markers_failed")

        log_with_context(
            logging.DEBUG,
            f"Migrated message {message['id']} from {author.display_name}",
            channel=channel,
            message_id=message["id"],
        )
        return True

    def _setup_channel_logging(self, channel: str) -> logging.Handler | None:
        """Set up channel-specific log handler."""
        if self.ctx.output_dir is None or not self.ctx.config.channel_logs:
            return None
        return setup_channel_logger(
            self.ctx.output_dir,
            channel,
            self.ctx.verbose,
            self.ctx.debug_api,
        )

    @staticmethod
    def _teardown_channel_logging(handler: logging.Handler | None) -> None:
        if handler is None:
            return
        logging.getLogger(LOGGER_NAME).removeHandler(handler)
        handler.close()
