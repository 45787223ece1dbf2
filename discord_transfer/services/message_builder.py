"""
Build destination payloads from source messages.

Every replayed message starts with a descriptive embed (original author,
avatar, timestamp and text). Attachments are either re-uploaded or linked,
and embeds already on the source message are cloned after that.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from discord_transfer.constants import CDN_BASE_URL, ROLE_MENTION_PATTERN
from discord_transfer.exceptions import MalformedEmbedError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.services.file_download import download_attachment
from discord_transfer.types import (
    DiscordAttachment,
    DiscordEmbed,
    DiscordMessage,
    DiscordUser,
    MessagePayload,
)
from discord_transfer.utils.logging import log_with_context

_ROLE_MENTION_RE = re.compile(ROLE_MENTION_PATTERN)


@dataclass(frozen=True)
class MessageAuthor:
    """Attribution view of a message author, built from raw user data.

    Webhook and other account-less authors only exist as raw data on the
    message, so the same view is used for every author.
    """

    id: str
    username: str
    display_name: str
    avatar_url: str
    bot: bool = False
    system: bool = False

    @classmethod
    def from_raw(cls, data: DiscordUser | None) -> MessageAuthor:
        data = data or {}
        user_id = str(data.get("id", "0"))
        username = data.get("username") or "Unknown user"
        return cls(
            id=user_id,
            username=username,
            display_name=data.get("global_name") or username,
            avatar_url=avatar_url(data),
            bot=bool(data.get("bot", False)),
            system=bool(data.get("system", False)),
        )


def avatar_url(user: DiscordUser) -> str:
    """Return the CDN URL of a user's avatar, or of their default avatar."""
    user_id = str(user.get("id", "0"))
    avatar = user.get("avatar")
    if avatar:
        extension = "gif" if avatar.startswith("a_") else "png"
        return f"{CDN_BASE_URL}/avatars/{user_id}/{avatar}.{extension}"

    discriminator = user.get("discriminator") or "0"
    if discriminator != "0" and discriminator.isdigit():
        index = int(discriminator) % 5
    else:
        index = (int(user_id) >> 22) % 6 if user_id.isdigit() else 0
    return f"{CDN_BASE_URL}/embed/avatars/{index}.png"


def strip_role_mentions(content: str) -> str:
    """Remove role mention tokens such as ``<@&123>`` from message text."""
    return _ROLE_MENTION_RE.sub("", content)


def is_image(attachment: DiscordAttachment) -> bool:
    """Images are the attachments that carry dimensions."""
    if attachment.get("width") is not None:
        return True
    return (attachment.get("content_type") or "").startswith("image/")


def build_descriptive_embed(
    message: DiscordMessage, author: MessageAuthor
) -> dict[str, Any]:
    """Build the leading embed that attributes a replayed message."""
    embed: dict[str, Any] = {
        "author": {"name": author.display_name, "icon_url": author.avatar_url},
        "timestamp": message.get("edited_timestamp") or message.get("timestamp"),
    }
    description = strip_role_mentions(message.get("content") or "")
    if description.strip():
        embed["description"] = description
    return embed


def clone_embed(source: DiscordEmbed) -> dict[str, Any]:
    """Copy an embed field-for-field into a creatable embed body.

    Raises:
        MalformedEmbedError: If the embed has an author without a name.
    """
    embed: dict[str, Any] = {}

    author = source.get("author")
    if author is not None:
        if not author.get("name"):
            raise MalformedEmbedError("Embed author has no name")
        embed["author"] = {"name": author["name"]}
        if author.get("url"):
            embed["author"]["url"] = author["url"]
        if author.get("icon_url"):
            embed["author"]["icon_url"] = author["icon_url"]

    for key in ("title", "url", "color", "description", "timestamp"):
        if source.get(key) is not None:
            embed[key] = source[key]

    for key in ("thumbnail", "image"):
        url = (source.get(key) or {}).get("url")
        if url:
            embed[key] = {"url": url}

    fields = source.get("fields") or []
    if fields:
        embed["fields"] = [
            {
                "name": f.get("name", ""),
                "value": f.get("value", ""),
                "inline": bool(f.get("inline", False)),
            }
            for f in fields
        ]

    footer = source.get("footer")
    if footer is not None:
        embed["footer"] = {"text": footer.get("text", "")}
        if footer.get("icon_url"):
            embed["footer"]["icon_url"] = footer["icon_url"]

    return embed


class MessageBuilder:
    """Turns source messages into destination payloads.

    Args:
        adapter: Remote client, used to download attachments.
        reupload_attachments: Download and re-upload attachment bytes
            instead of linking to the originals.
    """

    def __init__(self, adapter: DiscordAdapter, reupload_attachments: bool = True) -> None:
        self.adapter = adapter
        self.reupload_attachments = reupload_attachments

    def build(
        self,
        message: DiscordMessage,
        author: MessageAuthor,
        channel: str | None = None,
    ) -> tuple[MessagePayload, int]:
        """Build the payload replaying ``message``.

        Args:
            message: The source message.
            author: Attribution for the descriptive embed.
            channel: Channel log key for logging context.

        Returns:
            The payload and the number of attachments that were dropped.

        Raises:
            MalformedEmbedError: If a source embed cannot be cloned.
        """
        descriptive = build_descriptive_embed(message, author)
        payload = MessagePayload()
        dropped = 0
        attachments = message.get("attachments") or []

        if self.reupload_attachments:
            payload.embeds.append(descriptive)
            for attachment in attachments:
                outgoing = download_attachment(self.adapter, attachment, channel)
                if outgoing is None:
                    dropped += 1
                else:
                    payload.files.append(outgoing)
        else:
            supplementary: list[dict[str, Any]] = []
            first_image = True
            for attachment in attachments:
                url = attachment.get("url")
                if is_image(attachment):
                    if first_image:
                        descriptive["image"] = {"url": url}
                        first_image = False
                    else:
                        supplementary.append({"image": {"url": url}})
                else:
                    supplementary.append(
                        {"title": attachment.get("filename", url), "url": url}
                    )
            payload.embeds.append(descriptive)
            payload.embeds.extend(supplementary)

        for source_embed in message.get("embeds") or []:
            payload.embeds.append(clone_embed(source_embed))

        if dropped:
            log_with_context(
                logging.WARNING,
                f"Dropped {dropped} attachment(s) from message {message.get('id')}",
                channel=channel,
                message_id=message.get("id"),
            )
        return payload, dropped
