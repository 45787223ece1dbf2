"""Scope selection: which categories and channels a run processes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from discord_transfer.constants import (
    CHANNEL_TYPE_CATEGORY,
    CHANNEL_TYPE_TEXT,
    CHANNEL_TYPE_VOICE,
)
from discord_transfer.core.config import MigrationScope
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.types import DiscordChannel
from discord_transfer.utils.logging import log_with_context


@dataclass
class ScopeSelection:
    """Working set of source channels for one run."""

    categories: list[DiscordChannel] = field(default_factory=list)
    text_channels: list[DiscordChannel] = field(default_factory=list)
    voice_channels: list[DiscordChannel] = field(default_factory=list)

    def voice_channels_in(self, category_id: str) -> list[DiscordChannel]:
        """Voice channels selected under one category."""
        return [c for c in self.voice_channels if c.get("parent_id") == category_id]

    @property
    def is_empty(self) -> bool:
        """True when nothing is in scope."""
        return not (self.categories or self.text_channels or self.voice_channels)


def select_categories(
    scope: MigrationScope, guild_channels: list[DiscordChannel]
) -> list[DiscordChannel]:
    """Pick the categories a run walks.

    - Explicit category IDs select exactly those IDs that exist in the guild
      and are categories; other IDs are dropped with a warning.
    - Otherwise, explicitly included channels mean no category is walked.
    - Otherwise every category of the guild is selected.

    Args:
        scope: The run scope.
        guild_channels: Every channel of the source guild.

    Returns:
        Selected categories in guild order.
    """
    categories = [c for c in guild_channels if c.get("type") == CHANNEL_TYPE_CATEGORY]

    if scope.category_ids is not None:
        by_id = {c["id"]: c for c in categories}
        for missing in sorted(scope.category_ids - set(by_id)):
            log_with_context(
                logging.WARNING,
                f"Ignoring category {missing}: not a category of the source server",
                category_id=missing,
            )
        return [c for c in categories if c["id"] in scope.category_ids]

    if scope.include_channel_ids:
        return []

    return categories


def select_scope(
    adapter: DiscordAdapter, guild_id: str, scope: MigrationScope
) -> ScopeSelection:
    """Resolve the full working set for a guild.

    The text channel set is the union of every text channel in a selected
    category and every explicitly included text channel, minus skipped
    channels. Voice channels are only selected under selected categories,
    and never in text-only mode.

    Args:
        adapter: Remote client for the source guild.
        guild_id: Source guild snowflake.
        scope: The run scope.

    Returns:
        The resolved :class:`ScopeSelection`; may be empty.
    """
    guild_channels = adapter.list_guild_channels(guild_id)
    categories = select_categories(scope, guild_channels)
    category_ids = {c["id"] for c in categories}

    def in_scope(channel: DiscordChannel, kind: int) -> bool:
        return (
            channel.get("type") == kind
            and channel.get("parent_id") in category_ids
            and channel["id"] not in scope.skip_channel_ids
        )

    text_channels = [c for c in guild_channels if in_scope(c, CHANNEL_TYPE_TEXT)]

    if scope.include_channel_ids:
        by_id = {c["id"]: c for c in guild_channels}
        selected = {c["id"] for c in text_channels}
        for channel_id in sorted(scope.include_channel_ids):
            channel = by_id.get(channel_id)
            if channel is None or channel.get("type") != CHANNEL_TYPE_TEXT:
                log_with_context(
                    logging.WARNING,
                    f"Ignoring included channel {channel_id}: not a text channel of the source server",
                    channel_id=channel_id,
                )
                continue
            if channel_id in scope.skip_channel_ids or channel_id in selected:
                continue
            text_channels.append(channel)
            selected.add(channel_id)

    voice_channels: list[DiscordChannel] = []
    if not scope.text_only:
        voice_channels = [
            c for c in guild_channels if in_scope(c, CHANNEL_TYPE_VOICE)
        ]

    selection = ScopeSelection(
        categories=categories,
        text_channels=text_channels,
        voice_channels=voice_channels,
    )
    log_with_context(
        logging.INFO,
        f"Scope: {len(categories)} categories, {len(text_channels)} text channels, "
        f"{len(voice_channels)} voice channels",
    )
    return selection
