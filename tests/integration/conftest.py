"""Integration test configuration.

These tests require a real bot token and are skipped by default. Set the
DISCORD_TOKEN environment variable to enable them.
"""

import os

import pytest

skip_no_token = pytest.mark.skipif(
    not os.environ.get("DISCORD_TOKEN"),
    reason="Integration tests require DISCORD_TOKEN env var",
)
