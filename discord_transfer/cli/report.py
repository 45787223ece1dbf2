"""
Run report generation for the Discord transfer tool
"""

from __future__ import annotations

import datetime
import logging
import os
from collections import defaultdict
from typing import Any

import click
import yaml

from discord_transfer.core.context import MigrationContext
from discord_transfer.core.state import MigrationState
from discord_transfer.utils.logging import log_with_context

REPORT_FILENAME = "migration_report.yaml"


def build_report(
    ctx: MigrationContext, state: MigrationState, command: str
) -> dict[str, Any]:
    """Build the report dictionary for one run."""
    summary = state.migration_summary

    failed_by_channel: dict[str, list[dict[str, str]]] = defaultdict(list)
    for failed in state.failed_messages:
        failed_by_channel[failed["channel"]].append(
            {"message_id": failed["message_id"], "error": failed["error"]}
        )

    scope = ctx.scope
    report: dict[str, Any] = {
        "run_summary": {
            "command": command,
            "timestamp": datetime.datetime.now().isoformat(),
            "source_server": ctx.source_guild_id,
            "destination_server": (
                ctx.destination_guild_id if ctx.destination_guild else None
            ),
            "output_path": ctx.output_dir,
            "channels_processed": len(summary["channels_processed"]),
            "categories_created": summary["categories_created"],
            "text_channels_created": summary["text_channels_created"],
            "voice_channels_created": summary["voice_channels_created"],
            "messages_migrated": summary["messages_migrated"],
            "messages_failed": summary["messages_failed"],
            "markers_added": summary["markers_added"],
            "markers_failed": summary["markers_failed"],
            "markers_removed": summary["markers_removed"],
            "attachments_dropped": summary["attachments_dropped"],
            "success_rate": round(state.success_rate, 1),
        },
        "scope": {
            "categories": sorted(scope.category_ids) if scope.category_ids else "all",
            "skip_channels": sorted(scope.skip_channel_ids),
            "include_channels": sorted(scope.include_channel_ids),
            "after": scope.after.isoformat() if scope.after else None,
            "delay_ms": scope.delay_ms,
            "skip_bots": scope.skip_bots,
            "reupload_attachments": scope.reupload_attachments,
            "text_only": scope.text_only,
        },
        "channels": {},
        "failed_branches": list(state.branch_errors),
        "failed_messages": dict(failed_by_channel),
    }

    for result in state.channel_results:
        destination = result.destination_channel
        report["channels"][result.channel_name] = {
            "source_id": result.source_channel.get("id"),
            "destination_id": destination.get("id") if destination else None,
            "count": result.message_count,
            "phase": result.phase.value,
            "error": result.error,
        }

    return report


def generate_report(
    ctx: MigrationContext,
    state: MigrationState,
    command: str = "migrate",
    output_file: str = REPORT_FILENAME,
) -> str | None:
    """Write the YAML run report to the run output directory.

    Returns:
        The report path, or None if there is no output directory or the
        file could not be written.
    """
    if ctx.output_dir is None:
        return None

    report_path = os.path.join(ctx.output_dir, output_file)
    report = build_report(ctx, state, command)
    try:
        with open(report_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to write report {report_path}: {e}")
        return None

    log_with_context(logging.INFO, f"Run report saved to {report_path}")
    return report_path


def print_summary(
    state: MigrationState, command: str, total: int, report_path: str | None
) -> None:
    """Print a short summary of the run to the console."""
    summary = state.migration_summary
    click.echo("\n" + "=" * 80)
    click.echo(f"{command.upper()} SUMMARY")
    click.echo("=" * 80)
    click.echo(f"Channels processed: {len(summary['channels_processed'])}")
    if command == "clean":
        click.echo(f"Markers removed: {total}")
    else:
        click.echo(
            f"Categories / text channels / voice channels created: "
            f"{summary['categories_created']} / {summary['text_channels_created']} / "
            f"{summary['voice_channels_created']}"
        )
        click.echo(f"Messages migrated: {total}")
        if summary["messages_failed"]:
            click.echo(f"Messages failed: {summary['messages_failed']}")
    if state.branch_errors:
        click.echo(f"Failed branches: {len(state.branch_errors)}")
    if report_path:
        click.echo(f"\nDetailed report saved to {report_path}")
    click.echo("=" * 80)
