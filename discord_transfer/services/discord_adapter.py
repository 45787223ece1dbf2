"""Typed adapter for the Discord REST API.

Replaces raw ``client.request("GET", "/guilds/...")`` calls with explicit
methods that are easier to mock, test, and type-check.

The adapter delegates to a :class:`~discord_transfer.utils.api.DiscordHttpClient`,
which owns retry logic, so it does **not** add its own.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import requests

from discord_transfer.constants import (
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    MESSAGES_PAGE_SIZE,
)
from discord_transfer.exceptions import DiscordAPIError
from discord_transfer.types import (
    DiscordChannel,
    DiscordGuild,
    DiscordMessage,
    DiscordUser,
    OutgoingFile,
)
from discord_transfer.utils.api import DiscordHttpClient

_MISSING_STATUSES = (HTTP_FORBIDDEN, HTTP_NOT_FOUND)


class DiscordAdapter:
    """Thin typed wrapper around the Discord REST API."""

    def __init__(self, http: DiscordHttpClient) -> None:
        self._http = http

    def bind_stop_event(self, stop_event: threading.Event) -> None:
        """Cut retry waits short once the run is asked to stop."""
        self._http.bind_stop_event(stop_event)

    # -- Users ----------------------------------------------------------------

    def get_current_user(self) -> DiscordUser:
        """Return the account the token authenticates as."""
        result: DiscordUser = self._http.request("GET", "/users/@me")
        return result

    # -- Guilds ---------------------------------------------------------------

    def get_guild(self, guild_id: str) -> DiscordGuild | None:
        """Get a guild by ID.

        Args:
            guild_id: Guild snowflake.

        Returns:
            Guild dict, or None when the guild does not exist or is not
            visible to the bot.
        """
        try:
            result: DiscordGuild = self._http.request("GET", f"/guilds/{guild_id}")
        except DiscordAPIError as e:
            if e.status in _MISSING_STATUSES:
                return None
            raise
        return result

    def list_guild_channels(self, guild_id: str) -> list[DiscordChannel]:
        """List every channel (including categories) of a guild, by position."""
        result: list[DiscordChannel] = (
            self._http.request("GET", f"/guilds/{guild_id}/channels") or []
        )
        return sorted(result, key=lambda c: (c.get("position", 0), int(c["id"])))

    # -- Channels -------------------------------------------------------------

    def get_channel(self, channel_id: str) -> DiscordChannel | None:
        """Get a channel by ID, or None if absent or inaccessible."""
        try:
            result: DiscordChannel = self._http.request(
                "GET", f"/channels/{channel_id}"
            )
        except DiscordAPIError as e:
            if e.status in _MISSING_STATUSES:
                return None
            raise
        return result

    def create_channel(self, guild_id: str, body: dict[str, Any]) -> DiscordChannel:
        """Create a guild channel.

        Args:
            guild_id: Guild snowflake.
            body: Channel body (``name``, ``type``, ``parent_id``, ...).

        Returns:
            Created channel dict.
        """
        result: DiscordChannel = self._http.request(
            "POST", f"/guilds/{guild_id}/channels", json=body
        )
        return result

    # -- Messages -------------------------------------------------------------

    def iter_messages_after(
        self,
        channel_id: str,
        after: str,
        page_size: int = MESSAGES_PAGE_SIZE,
    ) -> Iterator[DiscordMessage]:
        """Yield every message created after ``after``, oldest first.

        Pages are fetched lazily. Each page is sorted ascending by ID and
        the cursor advances to the newest ID seen, so the stream is
        chronological across pages.

        Args:
            channel_id: Text channel snowflake.
            after: Snowflake cursor; only messages with a greater ID are yielded.
            page_size: Messages per request (max 100).
        """
        cursor = after
        while True:
            page: list[DiscordMessage] = (
                self._http.request(
                    "GET",
                    f"/channels/{channel_id}/messages",
                    params={"after": cursor, "limit": page_size},
                )
                or []
            )
            if not page:
                return
            page.sort(key=lambda m: int(m["id"]))
            yield from page
            cursor = page[-1]["id"]
            if len(page) < page_size:
                return

    def create_message(
        self,
        channel_id: str,
        body: dict[str, Any],
        files: list[OutgoingFile] | None = None,
    ) -> DiscordMessage:
        """Create a message, uploading ``files`` as multipart parts when given.

        Args:
            channel_id: Destination channel snowflake.
            body: Message JSON body.
            files: Raw attachments to upload.

        Returns:
            Created message dict.
        """
        if not files:
            result: DiscordMessage = self._http.request(
                "POST", f"/channels/{channel_id}/messages", json=body
            )
            return result

        parts = [
            (
                f"files[{index}]",
                (f.filename, f.content, f.content_type or "application/octet-stream"),
            )
            for index, f in enumerate(files)
        ]
        result = self._http.request(
            "POST",
            f"/channels/{channel_id}/messages",
            data={"payload_json": json.dumps(body)},
            files=parts,
        )
        return result

    # -- Reactions ------------------------------------------------------------

    def add_own_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """React to a message as the current user."""
        self._http.request(
            "PUT",
            f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji)}/@me",
        )

    def remove_own_reaction(
        self, channel_id: str, message_id: str, emoji: str
    ) -> None:
        """Remove the current user's reaction from a message."""
        self._http.request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}/reactions/{quote(emoji)}/@me",
        )

    # -- Attachments ----------------------------------------------------------

    def download_attachment(self, url: str) -> requests.Response:
        """Fetch an attachment URL; the caller inspects the status."""
        return self._http.get_raw(url)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http.close()
