"""
Find-or-create destination categories and channels matching source ones.

Destination twins are matched by exact name only. Lookups always re-query
the destination guild; a per-name lock makes concurrent branches that share
a name wait for each other, so a name is created at most once per run.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any

from discord_transfer.constants import (
    CHANNEL_TYPE_CATEGORY,
    CHANNEL_TYPE_TEXT,
    CHANNEL_TYPE_VOICE,
)
from discord_transfer.core.state import MigrationState
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.types import DiscordChannel
from discord_transfer.utils.logging import log_with_context

_KIND_NAMES = {
    CHANNEL_TYPE_CATEGORY: "category",
    CHANNEL_TYPE_TEXT: "text channel",
    CHANNEL_TYPE_VOICE: "voice channel",
}


class StructureMirror:
    """Resolves destination twins of source categories and channels."""

    def __init__(
        self,
        adapter: DiscordAdapter,
        guild_id: str,
        state: MigrationState,
    ) -> None:
        self.adapter = adapter
        self.guild_id = guild_id
        self.state = state
        self._locks: defaultdict[tuple[int, str | None, str], threading.Lock] = (
            defaultdict(threading.Lock)
        )
        self._locks_guard = threading.Lock()

    def _lock_for(self, kind: int, parent_id: str | None, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[(kind, parent_id, name)]

    def _find(
        self, kind: int, name: str, parent_id: str | None = None
    ) -> DiscordChannel | None:
        """Find a destination channel of ``kind`` named ``name`` under ``parent_id``."""
        for channel in self.adapter.list_guild_channels(self.guild_id):
            if channel.get("type") != kind or channel.get("name") != name:
                continue
            if kind != CHANNEL_TYPE_CATEGORY and channel.get("parent_id") != parent_id:
                continue
            return channel
        return None

    def find_category(self, name: str) -> DiscordChannel | None:
        """Return the destination category named ``name``, if any."""
        return self._find(CHANNEL_TYPE_CATEGORY, name)

    def _find_or_create(
        self,
        kind: int,
        name: str,
        parent_id: str | None,
        body: dict[str, Any],
        counter: str,
        **log_context: Any,
    ) -> tuple[DiscordChannel, bool]:
        with self._lock_for(kind, parent_id, name):
            existing = self._find(kind, name, parent_id)
            if existing is not None:
                log_with_context(
                    logging.DEBUG,
                    f"Reusing destination {_KIND_NAMES[kind]} '{name}' ({existing['id']})",
                    **log_context,
                )
                return existing, False

            created = self.adapter.create_channel(self.guild_id, body)
            self.state.increment(counter)
            log_with_context(
                logging.INFO,
                f"Created destination {_KIND_NAMES[kind]} '{name}' ({created['id']})",
                **log_context,
            )
            return created, True

    def find_or_create_category(self, source: DiscordChannel) -> DiscordChannel:
        """Return the destination category twin of ``source``, creating it if absent."""
        name = source["name"]
        category, _ = self._find_or_create(
            CHANNEL_TYPE_CATEGORY,
            name,
            None,
            {"name": name, "type": CHANNEL_TYPE_CATEGORY},
            "categories_created",
            category=name,
        )
        return category

    def find_or_create_text_channel(
        self,
        source: DiscordChannel,
        parent_id: str | None,
        channel: str | None = None,
    ) -> DiscordChannel:
        """Return the destination text channel twin of ``source``.

        A missing channel is created with the source's name, topic, NSFW
        flag and position under ``parent_id``.

        Args:
            source: Source text channel.
            parent_id: Destination category ID, or None for top level.
            channel: Channel log key for routing log records.

        Returns:
            The existing or newly created destination channel.
        """
        name = source["name"]
        body: dict[str, Any] = {
            "name": name,
            "type": CHANNEL_TYPE_TEXT,
            "nsfw": bool(source.get("nsfw", False)),
            "position": source.get("position", 0),
        }
        if source.get("topic"):
            body["topic"] = source["topic"]
        if parent_id is not None:
            body["parent_id"] = parent_id

        destination, _ = self._find_or_create(
            CHANNEL_TYPE_TEXT,
            name,
            parent_id,
            body,
            "text_channels_created",
            channel=channel,
        )
        return destination

    def ensure_voice_channel(self, source: DiscordChannel, parent_id: str) -> bool:
        """Create the voice channel twin of ``source`` unless one exists.

        An existing voice channel with the same name is left untouched.

        Returns:
            True if a channel was created.
        """
        name = source["name"]
        _, created = self._find_or_create(
            CHANNEL_TYPE_VOICE,
            name,
            parent_id,
            {
                "name": name,
                "type": CHANNEL_TYPE_VOICE,
                "parent_id": parent_id,
                "position": source.get("position", 0),
            },
            "voice_channels_created",
            category=parent_id,
        )
        return created
