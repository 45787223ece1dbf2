"""
Migration marker bookkeeping.

A source message counts as migrated when the acting account has reacted to
it with the marker emoji. The marker is the only record of what was copied,
so both the migrate and clean passes go through this module.
"""

from __future__ import annotations

import logging

from discord_transfer.exceptions import DiscordAPIError
from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.types import DiscordMessage
from discord_transfer.utils.logging import log_with_context


def has_marker(message: DiscordMessage, marker: str) -> bool:
    """Return True if the acting account reacted to ``message`` with ``marker``.

    Reactions by other accounts with the same emoji do not count.
    """
    for reaction in message.get("reactions") or []:
        emoji = reaction.get("emoji") or {}
        if reaction.get("me") and emoji.get("id") is None and emoji.get("name") == marker:
            return True
    return False


def add_marker(
    adapter: DiscordAdapter,
    message: DiscordMessage,
    marker: str,
    channel: str | None = None,
) -> bool:
    """Flag a source message as migrated.

    Failures are logged, not raised: the destination copy already exists,
    so the worst outcome is a duplicate on a later run.

    Returns:
        True if the marker was added.
    """
    try:
        adapter.add_own_reaction(message["channel_id"], message["id"], marker)
    except (DiscordAPIError, OSError) as e:
        log_with_context(
            logging.WARNING,
            f"Couldn't add migrated marker on message {message['id']}: {e}",
            channel=channel,
            message_id=message["id"],
        )
        return False
    return True


def remove_marker(
    adapter: DiscordAdapter,
    message: DiscordMessage,
    marker: str,
    channel: str | None = None,
) -> bool:
    """Remove the acting account's marker from a source message.

    Returns:
        True if the marker was removed.
    """
    try:
        adapter.remove_own_reaction(message["channel_id"], message["id"], marker)
    except (DiscordAPIError, OSError) as e:
        log_with_context(
            logging.WARNING,
            f"Couldn't remove migrated marker from message {message['id']}: {e}",
            channel=channel,
            message_id=message["id"],
        )
        return False
    return True
