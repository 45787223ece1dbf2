"""
Run state container for the Discord transfer tool.

Mutable tracking state for a run, separated from immutable configuration
(MigrationContext) for clear ownership boundaries. Branches run on worker
threads, so every mutation goes through a method holding ``_lock``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from discord_transfer.types import (
    FailedMessage,
    MigrationSummary,
    TextChannelMigrationResult,
)


def _default_migration_summary() -> MigrationSummary:
    """Return a fresh MigrationSummary with zeroed counters."""
    return MigrationSummary(
        channels_processed=[],
        categories_created=0,
        text_channels_created=0,
        voice_channels_created=0,
        messages_migrated=0,
        messages_failed=0,
        markers_added=0,
        markers_failed=0,
        markers_removed=0,
        attachments_dropped=0,
    )


@dataclass
class MigrationState:
    """Holds all mutable tracking state for a run."""

    migration_summary: MigrationSummary = field(
        default_factory=_default_migration_summary
    )
    channel_results: list[TextChannelMigrationResult] = field(default_factory=list)
    failed_messages: list[FailedMessage] = field(default_factory=list)
    branch_errors: list[str] = field(default_factory=list)
    stop_event: threading.Event = field(default_factory=threading.Event)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, counter: str, amount: int = 1) -> None:
        """Add ``amount`` to one of the integer summary counters."""
        if counter == "channels_processed":
            raise ValueError("channels_processed is a list, use record_channel()")
        with self._lock:
            self.migration_summary[counter] += amount  # type: ignore[literal-required]

    def record_channel(self, result: TextChannelMigrationResult) -> None:
        """Store the outcome of one text channel."""
        with self._lock:
            self.channel_results.append(result)
            self.migration_summary["channels_processed"].append(result.channel_name)

    def record_failed_message(self, channel: str, message_id: str, error: str) -> None:
        """Remember a message whose replay failed."""
        with self._lock:
            self.failed_messages.append(
                FailedMessage(channel=channel, message_id=message_id, error=error)
            )
            self.migration_summary["messages_failed"] += 1

    def record_branch_error(self, description: str) -> None:
        """Remember a category or channel branch that failed."""
        with self._lock:
            self.branch_errors.append(description)

    def request_stop(self) -> None:
        """Ask every branch to stop issuing new remote calls."""
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        """True once a stop was requested."""
        return self.stop_event.is_set()

    @property
    def has_errors(self) -> bool:
        """Return True if any branch or message failed."""
        return bool(self.branch_errors) or bool(self.failed_messages)

    @property
    def total_messages_attempted(self) -> int:
        """Return total messages attempted (migrated + failed)."""
        summary = self.migration_summary
        return summary["messages_migrated"] + summary["messages_failed"]

    @property
    def success_rate(self) -> float:
        """Return percentage of successful messages out of total attempted.

        Returns 100.0 if no messages were attempted.
        """
        total = self.total_messages_attempted
        if total == 0:
            return 100.0
        return (self.migration_summary["messages_migrated"] / total) * 100.0
