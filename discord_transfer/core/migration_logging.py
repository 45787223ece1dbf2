"""
End-of-run logging for the Discord transfer tool.

Kept apart from ``migrator.py`` so that the orchestrator stays focused on
control flow. Every function reads the :class:`MigrationState` only.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any

from discord_transfer.utils.logging import log_with_context

if TYPE_CHECKING:
    from discord_transfer.core.state import MigrationState


def _collect_statistics(state: MigrationState) -> dict[str, Any]:
    """Gather run statistics into a flat dict.

    The returned dict drives both the structured log kwargs and the
    human-readable summary lines.
    """
    summary = state.migration_summary
    return {
        "channels_processed": len(summary["channels_processed"]),
        "channels_failed": sum(1 for r in state.channel_results if r.failed),
        "categories_created": summary["categories_created"],
        "text_channels_created": summary["text_channels_created"],
        "voice_channels_created": summary["voice_channels_created"],
        "messages_migrated": summary["messages_migrated"],
        "messages_failed": summary["messages_failed"],
        "markers_failed": summary["markers_failed"],
        "attachments_dropped": summary["attachments_dropped"],
        "branch_errors": len(state.branch_errors),
    }


def log_migration_success(state: MigrationState, duration: float) -> None:
    """Log the final status and summary of a completed migrate run.

    Args:
        state: Run state holding the counters.
        duration: Run duration in seconds.
    """
    stats = _collect_statistics(state)

    if stats["channels_processed"] == 0:
        log_with_context(
            logging.WARNING,
            "MIGRATION FINISHED - NO TEXT CHANNELS WERE IN SCOPE",
            outcome="empty_scope",
        )
    elif state.has_errors:
        log_with_context(
            logging.WARNING,
            "MIGRATION COMPLETED WITH ERRORS",
            outcome="partial_success",
        )
    else:
        log_with_context(
            logging.INFO,
            "DISCORD MIGRATION COMPLETED SUCCESSFULLY",
            outcome="success",
        )

    log_with_context(
        logging.INFO,
        f"Duration: {duration / 60:.1f} minutes ({duration:.1f} seconds)",
        duration_seconds=duration,
    )
    for key, label in (
        ("channels_processed", "Text channels processed"),
        ("categories_created", "Categories created"),
        ("text_channels_created", "Text channels created"),
        ("voice_channels_created", "Voice channels created"),
        ("messages_migrated", "Messages migrated"),
    ):
        log_with_context(
            logging.INFO, f"{label}: {stats[key]}", stat=key, count=stats[key]
        )

    has_issues = False
    for key, label in (
        ("branch_errors", "Failed branches"),
        ("channels_failed", "Channels with errors"),
        ("messages_failed", "Messages that failed"),
        ("markers_failed", "Messages migrated but not marked"),
        ("attachments_dropped", "Attachments dropped"),
    ):
        if stats[key] > 0:
            has_issues = True
            log_with_context(
                logging.WARNING, f"{label}: {stats[key]}", stat=key, count=stats[key]
            )

    if not has_issues:
        log_with_context(logging.INFO, "No issues detected")
    else:
        log_with_context(
            logging.INFO,
            "Failed messages carry no marker and will be retried by the next run.",
        )
        if stats["markers_failed"]:
            log_with_context(
                logging.WARNING,
                "Unmarked messages that were already copied will be copied again"
                " by the next run.",
            )


def log_migration_failure(
    state: MigrationState, exception: BaseException, duration: float
) -> None:
    """Log an aborted run.

    Args:
        state: Run state holding the counters.
        exception: The error that stopped the run.
        duration: Run duration in seconds.
    """
    stats = _collect_statistics(state)

    if isinstance(exception, KeyboardInterrupt) or state.stopped:
        log_with_context(
            logging.WARNING,
            "MIGRATION INTERRUPTED BY USER",
            outcome="interrupted",
        )
    else:
        log_with_context(
            logging.ERROR,
            f"MIGRATION FAILED: {type(exception).__name__}: {exception}",
            outcome="failed",
            exception_type=type(exception).__name__,
        )
        log_with_context(
            logging.DEBUG,
            "".join(
                traceback.format_exception(
                    type(exception), exception, exception.__traceback__
                )
            ),
        )

    log_with_context(
        logging.INFO,
        f"Ran for {duration:.1f} seconds; {stats['messages_migrated']} message(s) "
        f"migrated in {stats['channels_processed']} channel(s) before stopping",
        duration_seconds=duration,
    )
    log_with_context(
        logging.INFO,
        "Progress is kept on the source messages; run the same command again to resume.",
    )


def log_clean_summary(state: MigrationState, duration: float) -> None:
    """Log the result of a clean run."""
    summary = state.migration_summary
    outcome = "partial_success" if state.branch_errors else "success"
    log_with_context(
        logging.INFO if outcome == "success" else logging.WARNING,
        "CLEAN COMPLETED" if outcome == "success" else "CLEAN COMPLETED WITH ERRORS",
        outcome=outcome,
    )
    log_with_context(
        logging.INFO,
        f"Markers removed: {summary['markers_removed']} across "
        f"{len(summary['channels_processed'])} channel(s) in {duration:.1f} seconds",
        stat="markers_removed",
        count=summary["markers_removed"],
    )
    if summary["markers_failed"]:
        log_with_context(
            logging.WARNING,
            f"Markers that could not be removed: {summary['markers_failed']}",
            stat="markers_failed",
            count=summary["markers_failed"],
        )
