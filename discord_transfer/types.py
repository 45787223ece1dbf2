"""Shared type definitions for the Discord transfer tool.

Provides TypedDicts for the Discord REST payloads flowing through the
migration pipeline, and the small result types returned at service
boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict

# ---------------------------------------------------------------------------
# Discord API payloads (only the fields the tool reads)
# ---------------------------------------------------------------------------


class DiscordUser(TypedDict, total=False):
    """A user object as embedded in messages and ``/users/@me``."""

    id: str
    username: str
    global_name: str | None
    discriminator: str
    avatar: str | None
    bot: bool
    system: bool


class DiscordGuild(TypedDict, total=False):
    """A guild (server) object."""

    id: str
    name: str


class DiscordChannel(TypedDict, total=False):
    """A guild channel (category, text or voice)."""

    id: str
    type: int
    guild_id: str
    name: str
    topic: str | None
    nsfw: bool
    position: int
    parent_id: str | None


class DiscordEmoji(TypedDict, total=False):
    """Emoji part of a reaction; ``id`` is None for unicode emoji."""

    id: str | None
    name: str | None


class DiscordReaction(TypedDict, total=False):
    """A reaction summary attached to a message."""

    count: int
    me: bool
    emoji: DiscordEmoji


class DiscordAttachment(TypedDict, total=False):
    """A file attached to a message."""

    id: str
    filename: str
    url: str
    content_type: str
    size: int
    width: int | None
    height: int | None


class DiscordEmbed(TypedDict, total=False):
    """A rich embed; nested objects are kept as plain dicts."""

    title: str
    type: str
    description: str
    url: str
    timestamp: str
    color: int
    footer: dict[str, Any]
    image: dict[str, Any]
    thumbnail: dict[str, Any]
    author: dict[str, Any]
    fields: list[dict[str, Any]]


class DiscordMessage(TypedDict, total=False):
    """A channel message."""

    id: str
    channel_id: str
    type: int
    content: str
    author: DiscordUser
    webhook_id: str
    timestamp: str
    edited_timestamp: str | None
    attachments: list[DiscordAttachment]
    embeds: list[DiscordEmbed]
    reactions: list[DiscordReaction]


# ---------------------------------------------------------------------------
# Internal tracking types
# ---------------------------------------------------------------------------


class MigrationSummary(TypedDict):
    """Aggregate run counters."""

    channels_processed: list[str]
    categories_created: int
    text_channels_created: int
    voice_channels_created: int
    messages_migrated: int
    messages_failed: int
    markers_added: int
    markers_failed: int
    markers_removed: int
    attachments_dropped: int


class FailedMessage(TypedDict):
    """A message that could not be replayed on the destination."""

    channel: str
    message_id: str
    error: str


# ---------------------------------------------------------------------------
# Service result types
# ---------------------------------------------------------------------------


class ChannelPhase(str, Enum):
    """Where a text channel branch is in its lifecycle."""

    PENDING = "PENDING"
    MIRRORING = "MIRRORING"
    REPLAYING = "REPLAYING"
    DONE = "DONE"
    FAILED = "FAILED"


class MessageResult(str, Enum):
    """Why a source message was not replayed."""

    ALREADY_MIGRATED = "ALREADY_MIGRATED"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    SYSTEM_AUTHOR = "SYSTEM_AUTHOR"
    IGNORED_BOT = "IGNORED_BOT"


@dataclass
class OutgoingFile:
    """Raw attachment bytes re-uploaded under their original filename."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass
class MessagePayload:
    """Destination message produced by the message builder.

    ``embeds`` holds, in order: the descriptive block, supplementary
    attachment blocks, then the cloned source embeds.
    """

    embeds: list[dict[str, Any]] = field(default_factory=list)
    files: list[OutgoingFile] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        """Return the JSON body understood by the create-message endpoint."""
        body: dict[str, Any] = {"embeds": self.embeds}
        if self.files:
            body["attachments"] = [
                {"id": index, "filename": f.filename}
                for index, f in enumerate(self.files)
            ]
        return body


@dataclass
class TextChannelMigrationResult:
    """Outcome of replaying one text channel during a run."""

    source_channel: DiscordChannel
    destination_channel: DiscordChannel | None
    message_count: int = 0
    phase: ChannelPhase = ChannelPhase.PENDING
    error: str | None = None

    @property
    def failed(self) -> bool:
        """True when the branch ended in the FAILED phase."""
        return self.phase == ChannelPhase.FAILED

    @property
    def channel_name(self) -> str:
        """Source channel name, for logs and reports."""
        return self.source_channel.get("name", self.source_channel.get("id", "?"))
