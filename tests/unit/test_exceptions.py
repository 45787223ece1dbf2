"""Tests for the custom exception hierarchy."""

import pytest

from discord_transfer.exceptions import (
    ConfigError,
    DiscordAPIError,
    MalformedEmbedError,
    MigrationAbortedError,
    ResolutionError,
    TransferError,
)

EXCEPTION_CLASSES = [
    ConfigError,
    ResolutionError,
    MalformedEmbedError,
    MigrationAbortedError,
]


class TestExceptionHierarchy:
    """Tests for exception types, inheritance, and message handling."""

    @pytest.mark.parametrize("exc_class", EXCEPTION_CLASSES)
    def test_caught_as_transfer_error(self, exc_class):
        with pytest.raises(TransferError, match="boom"):
            raise exc_class("boom")

    def test_api_error_is_transfer_error(self):
        assert issubclass(DiscordAPIError, TransferError)


class TestDiscordAPIError:
    """Tests for DiscordAPIError."""

    def test_attributes(self):
        error = DiscordAPIError(403, "Missing Permissions", 50013, "POST", "/guilds/1/channels")
        assert error.status == 403
        assert error.code == 50013
        assert str(error) == "POST /guilds/1/channels: HTTP 403: Missing Permissions"

    def test_message_without_request(self):
        assert str(DiscordAPIError(404, "Unknown Message")) == "HTTP 404: Unknown Message"
