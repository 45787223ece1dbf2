"""Immutable migration context.

MigrationContext is a frozen dataclass that holds all configuration and
resolved identities for a run.  It is created once before any branch starts
and shared (read-only) with every worker thread.
"""

from __future__ import annotations

from dataclasses import dataclass

from discord_transfer.core.config import MigrationConfig, MigrationScope
from discord_transfer.types import DiscordGuild


@dataclass(frozen=True)
class MigrationContext:
    """Immutable context for a run. Created once, shared everywhere."""

    # Guilds
    source_guild: DiscordGuild
    destination_guild: DiscordGuild | None

    # What to process and how
    scope: MigrationScope
    config: MigrationConfig

    # Resolved marker reaction (unicode emoji)
    marker: str

    # Mode flags
    verbose: bool = False
    debug_api: bool = False

    # Run artifacts
    output_dir: str | None = None

    @property
    def source_guild_id(self) -> str:
        """Snowflake of the guild messages are read from."""
        return self.source_guild["id"]

    @property
    def destination_guild_id(self) -> str:
        """Snowflake of the guild messages are written to."""
        if self.destination_guild is None:
            raise RuntimeError("No destination guild in this context")
        return self.destination_guild["id"]

    @property
    def log_prefix(self) -> str:
        """Mode-aware log prefix.

        Returns ``"[TEXT ONLY] "`` when voice channels are not mirrored so
        that operators can tell runs apart in shared log files.
        """
        if self.scope.text_only:
            return "[TEXT ONLY] "
        return ""
