"""Unit test configuration and shared fixtures."""

from __future__ import annotations

import copy
import datetime
import itertools
import threading
from collections import defaultdict
from typing import Any

import pytest
import requests

from discord_transfer.constants import (
    CHANNEL_TYPE_CATEGORY,
    CHANNEL_TYPE_TEXT,
    CHANNEL_TYPE_VOICE,
)
from discord_transfer.core.config import MigrationConfig, MigrationScope
from discord_transfer.core.context import MigrationContext
from discord_transfer.core.state import MigrationState
from discord_transfer.exceptions import DiscordAPIError
from discord_transfer.utils.snowflake import datetime_to_snowflake, snowflake_to_datetime

BOT_USER_ID = "900000000000000001"
MARKER = "\U0001f504"


def make_response(status_code: int = 200, content: bytes = b"", headers: dict | None = None) -> requests.Response:
    """Build a real ``requests.Response`` with the given status and body."""
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.headers.update(headers or {})
    response.reason = "OK" if status_code < 400 else "Error"
    return response


# ---------------------------------------------------------------------------
# In-memory Discord
# ---------------------------------------------------------------------------


class FakeDiscordAdapter:
    """In-memory stand-in for DiscordAdapter.

    Guilds, channels and messages live in dicts. IDs are real snowflakes
    drawn from a clock that advances one minute per ID, so cursor and
    cutoff logic behave as they do against Discord.
    """

    def __init__(self) -> None:
        self.guilds: dict[str, dict[str, Any]] = {}
        self.channels: dict[str, dict[str, Any]] = {}
        self.messages: defaultdict[str, list[dict[str, Any]]] = defaultdict(list)
        self.created_channels: list[dict[str, Any]] = []
        self.downloads: list[str] = []
        self.download_responses: dict[str, requests.Response] = {}
        self.failing_messages: set[str] = set()
        self.failing_reactions: set[str] = set()
        self.failing_channel_creates: set[str] = set()
        self.closed = False
        self._clock = datetime.datetime(2022, 1, 1, tzinfo=datetime.timezone.utc)
        self._seq = itertools.count(1)
        self._lock = threading.RLock()

    # -- Builders --------------------------------------------------------------

    def next_id(self, at: datetime.datetime | None = None) -> str:
        with self._lock:
            if at is None:
                self._clock += datetime.timedelta(minutes=1)
                at = self._clock
            return str(int(datetime_to_snowflake(at)) + next(self._seq))

    def add_guild(self, name: str) -> str:
        guild_id = self.next_id()
        self.guilds[guild_id] = {"id": guild_id, "name": name}
        return guild_id

    def _add_channel(self, guild_id: str, kind: int, name: str, **fields: Any) -> str:
        channel_id = self.next_id()
        self.channels[channel_id] = {
            "id": channel_id,
            "guild_id": guild_id,
            "type": kind,
            "name": name,
            "position": fields.pop("position", len(self.channels)),
            "parent_id": fields.pop("parent_id", None),
            **fields,
        }
        return channel_id

    def add_category(self, guild_id: str, name: str, **fields: Any) -> str:
        return self._add_channel(guild_id, CHANNEL_TYPE_CATEGORY, name, **fields)

    def add_text_channel(
        self, guild_id: str, name: str, parent_id: str | None = None, **fields: Any
    ) -> str:
        return self._add_channel(
            guild_id, CHANNEL_TYPE_TEXT, name, parent_id=parent_id, **fields
        )

    def add_voice_channel(
        self, guild_id: str, name: str, parent_id: str | None = None, **fields: Any
    ) -> str:
        return self._add_channel(
            guild_id, CHANNEL_TYPE_VOICE, name, parent_id=parent_id, **fields
        )

    def add_message(
        self,
        channel_id: str,
        content: str = "hello",
        author: dict[str, Any] | None = None,
        at: datetime.datetime | None = None,
        **fields: Any,
    ) -> str:
        message_id = self.next_id(at)
        message = {
            "id": message_id,
            "channel_id": channel_id,
            "type": 0,
            "content": content,
            "author": author
            or {"id": "80351110224678912", "username": "nelly", "avatar": None},
            "timestamp": snowflake_to_datetime(message_id).isoformat(),
            "edited_timestamp": None,
            "attachments": [],
            "embeds": [],
            "reactions": [],
        }
        message.update(fields)
        with self._lock:
            self.messages[channel_id].append(message)
        return message_id

    def get_message(self, channel_id: str, message_id: str) -> dict[str, Any]:
        for message in self.messages[channel_id]:
            if message["id"] == message_id:
                return message
        raise KeyError(message_id)

    def channels_named(self, guild_id: str, name: str) -> list[dict[str, Any]]:
        return [
            c
            for c in self.channels.values()
            if c["guild_id"] == guild_id and c["name"] == name
        ]

    def has_own_marker(self, channel_id: str, message_id: str, emoji: str = MARKER) -> bool:
        message = self.get_message(channel_id, message_id)
        return any(
            r["me"] and r["emoji"]["name"] == emoji for r in message["reactions"]
        )

    # -- Adapter surface -------------------------------------------------------

    def bind_stop_event(self, stop_event: threading.Event) -> None:
        pass

    def get_current_user(self) -> dict[str, Any]:
        return {"id": BOT_USER_ID, "username": "transfer-bot", "bot": True}

    def get_guild(self, guild_id: str) -> dict[str, Any] | None:
        guild = self.guilds.get(guild_id)
        return copy.deepcopy(guild) if guild else None

    def list_guild_channels(self, guild_id: str) -> list[dict[str, Any]]:
        with self._lock:
            channels = [
                copy.deepcopy(c)
                for c in self.channels.values()
                if c["guild_id"] == guild_id
            ]
        return sorted(channels, key=lambda c: (c.get("position", 0), int(c["id"])))

    def get_channel(self, channel_id: str) -> dict[str, Any] | None:
        channel = self.channels.get(channel_id)
        return copy.deepcopy(channel) if channel else None

    def create_channel(self, guild_id: str, body: dict[str, Any]) -> dict[str, Any]:
        if body["name"] in self.failing_channel_creates:
            raise DiscordAPIError(403, "Missing Permissions", 50013)
        fields = {k: v for k, v in body.items() if k not in ("name", "type")}
        channel_id = self._add_channel(guild_id, body["type"], body["name"], **fields)
        with self._lock:
            self.created_channels.append(copy.deepcopy(self.channels[channel_id]))
        return copy.deepcopy(self.channels[channel_id])

    def iter_messages_after(self, channel_id: str, after: str, page_size: int = 100):
        with self._lock:
            snapshot = sorted(self.messages[channel_id], key=lambda m: int(m["id"]))
        for message in snapshot:
            if int(message["id"]) > int(after):
                yield copy.deepcopy(message)

    def create_message(
        self, channel_id: str, body: dict[str, Any], files: list | None = None
    ) -> dict[str, Any]:
        description = (body.get("embeds") or [{}])[0].get("description", "")
        if description in self.failing_messages:
            raise DiscordAPIError(400, "Invalid Form Body", 50035)
        message_id = self.add_message(
            channel_id,
            content="",
            author=self.get_current_user(),
            embeds=copy.deepcopy(body.get("embeds", [])),
            attachments=[
                {"id": str(i), "filename": f.filename, "size": len(f.content)}
                for i, f in enumerate(files or [])
            ],
        )
        return copy.deepcopy(self.get_message(channel_id, message_id))

    def add_own_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        if message_id in self.failing_reactions:
            raise DiscordAPIError(403, "Missing Permissions", 50013)
        with self._lock:
            message = self.get_message(channel_id, message_id)
            for reaction in message["reactions"]:
                if reaction["emoji"]["name"] == emoji and reaction["emoji"]["id"] is None:
                    if not reaction["me"]:
                        reaction["me"] = True
                        reaction["count"] += 1
                    return
            message["reactions"].append(
                {"emoji": {"id": None, "name": emoji}, "count": 1, "me": True}
            )

    def remove_own_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        if message_id in self.failing_reactions:
            raise DiscordAPIError(403, "Missing Permissions", 50013)
        with self._lock:
            message = self.get_message(channel_id, message_id)
            for reaction in list(message["reactions"]):
                if reaction["emoji"]["name"] == emoji and reaction["me"]:
                    reaction["me"] = False
                    reaction["count"] -= 1
                    if reaction["count"] == 0:
                        message["reactions"].remove(reaction)

    def download_attachment(self, url: str) -> requests.Response:
        with self._lock:
            self.downloads.append(url)
        if url in self.download_responses:
            return self.download_responses[url]
        return make_response(200, f"bytes of {url}".encode())

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_discord():
    """Fresh in-memory Discord."""
    return FakeDiscordAdapter()


@pytest.fixture()
def two_guilds(fake_discord):
    """A source and an empty destination guild; returns (adapter, source_id, dest_id)."""
    source = fake_discord.add_guild("Source")
    destination = fake_discord.add_guild("Destination")
    return fake_discord, source, destination


# ---------------------------------------------------------------------------
# Context factory
# ---------------------------------------------------------------------------


def make_ctx(
    adapter: FakeDiscordAdapter,
    source_id: str,
    destination_id: str | None = None,
    output_dir: str | None = None,
    config: MigrationConfig | None = None,
    **scope_kwargs: Any,
) -> MigrationContext:
    """Build a MigrationContext for guilds held by ``adapter``."""
    config = config or MigrationConfig(max_workers=2)
    return MigrationContext(
        source_guild=adapter.get_guild(source_id),
        destination_guild=adapter.get_guild(destination_id) if destination_id else None,
        scope=MigrationScope.build(**scope_kwargs),
        config=config,
        marker=config.marker,
        output_dir=output_dir,
    )


@pytest.fixture()
def state():
    """Fresh run state."""
    return MigrationState()


@pytest.fixture()
def ctx_factory():
    """Factory fixture: ``ctx_factory(adapter, source_id, destination_id, **scope)``."""
    return make_ctx


@pytest.fixture()
def marker():
    """The default marker emoji."""
    return MARKER
