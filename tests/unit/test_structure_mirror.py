"""Unit tests for the structure mirror."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from discord_transfer.constants import CHANNEL_TYPE_TEXT, CHANNEL_TYPE_VOICE
from discord_transfer.exceptions import DiscordAPIError
from discord_transfer.services.structure_mirror import StructureMirror


@pytest.fixture()
def mirror(two_guilds, state):
    adapter, _, dest = two_guilds
    return StructureMirror(adapter, dest, state)


def _source_text(**overrides):
    channel = {
        "id": "1",
        "type": CHANNEL_TYPE_TEXT,
        "name": "chat",
        "topic": "Talk here",
        "nsfw": True,
        "position": 3,
    }
    channel.update(overrides)
    return channel


class TestCategories:
    """Tests for category mirroring."""

    def test_creates_missing_category(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        category = mirror.find_or_create_category({"id": "5", "name": "General"})
        assert category["name"] == "General"
        assert len(adapter.channels_named(dest, "General")) == 1
        assert state.migration_summary["categories_created"] == 1

    def test_reuses_existing_category(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        existing = adapter.add_category(dest, "General")
        category = mirror.find_or_create_category({"id": "5", "name": "General"})
        assert category["id"] == existing
        assert adapter.created_channels == []
        assert state.migration_summary["categories_created"] == 0

    def test_name_match_is_exact(self, mirror, two_guilds):
        adapter, _, dest = two_guilds
        adapter.add_category(dest, "general")
        mirror.find_or_create_category({"id": "5", "name": "General"})
        assert len(adapter.created_channels) == 1

    def test_find_category_never_creates(self, mirror, two_guilds):
        adapter, _, _ = two_guilds
        assert mirror.find_category("General") is None
        assert adapter.created_channels == []

    def test_concurrent_lookups_create_once(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        barrier = threading.Barrier(4)

        def worker():
            barrier.wait()
            return mirror.find_or_create_category({"id": "5", "name": "General"})

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = [f.result() for f in [pool.submit(worker) for _ in range(4)]]

        assert len({r["id"] for r in results}) == 1
        assert len(adapter.channels_named(dest, "General")) == 1
        assert state.migration_summary["categories_created"] == 1


class TestTextChannels:
    """Tests for text channel mirroring."""

    def test_creates_with_source_attributes(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        created = mirror.find_or_create_text_channel(_source_text(), parent)
        assert created["name"] == "chat"
        assert created["topic"] == "Talk here"
        assert created["nsfw"] is True
        assert created["position"] == 3
        assert created["parent_id"] == parent
        assert state.migration_summary["text_channels_created"] == 1

    def test_top_level_channel(self, mirror):
        created = mirror.find_or_create_text_channel(_source_text(topic=None), None)
        assert created["parent_id"] is None
        assert "topic" not in created

    def test_reuses_existing_under_same_parent(self, mirror, two_guilds):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        existing = adapter.add_text_channel(dest, "chat", parent)
        assert mirror.find_or_create_text_channel(_source_text(), parent)["id"] == existing
        assert adapter.created_channels == []

    def test_same_name_under_other_parent_is_not_reused(self, mirror, two_guilds):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        other = adapter.add_category(dest, "Other")
        adapter.add_text_channel(dest, "chat", other)
        created = mirror.find_or_create_text_channel(_source_text(), parent)
        assert created["parent_id"] == parent

    def test_voice_channel_with_same_name_is_not_reused(self, mirror, two_guilds):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        adapter.add_voice_channel(dest, "chat", parent)
        created = mirror.find_or_create_text_channel(_source_text(), parent)
        assert created["type"] == CHANNEL_TYPE_TEXT

    def test_create_failure_propagates(self, mirror, two_guilds):
        adapter, _, _ = two_guilds
        adapter.failing_channel_creates.add("chat")
        with pytest.raises(DiscordAPIError):
            mirror.find_or_create_text_channel(_source_text(), None)


class TestVoiceChannels:
    """Tests for voice channel mirroring."""

    def test_creates_missing(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        source = {"id": "9", "type": CHANNEL_TYPE_VOICE, "name": "Lobby", "position": 1}
        assert mirror.ensure_voice_channel(source, parent) is True
        created = adapter.channels_named(dest, "Lobby")[0]
        assert created["type"] == CHANNEL_TYPE_VOICE
        assert created["parent_id"] == parent
        assert state.migration_summary["voice_channels_created"] == 1

    def test_existing_is_left_alone(self, mirror, two_guilds, state):
        adapter, _, dest = two_guilds
        parent = adapter.add_category(dest, "General")
        adapter.add_voice_channel(dest, "Lobby", parent, position=7)
        source = {"id": "9", "type": CHANNEL_TYPE_VOICE, "name": "Lobby", "position": 1}
        assert mirror.ensure_voice_channel(source, parent) is False
        assert adapter.channels_named(dest, "Lobby")[0]["position"] == 7
        assert state.migration_summary["voice_channels_created"] == 0
