"""Tests for the click-based CLI."""

import glob
import os
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from discord_transfer.cli.commands import cli
from discord_transfer.cli.common import handle_exception
from discord_transfer.exceptions import (
    ConfigError,
    DiscordAPIError,
    MigrationAbortedError,
)


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def populated(two_guilds):
    """Source server with #chat under General holding one message."""
    adapter, source, dest = two_guilds
    general = adapter.add_category(source, "General")
    chat = adapter.add_text_channel(source, "chat", general)
    message_id = adapter.add_message(chat, "hello")
    return adapter, source, dest, chat, message_id


def _report():
    paths = glob.glob(os.path.join("migration_logs", "run_*", "migration_report.yaml"))
    assert len(paths) == 1
    with open(paths[0], encoding="utf-8") as f:
        return yaml.safe_load(f)


class TestCLIGroup:
    """Tests for the CLI group structure."""

    def test_cli_has_all_subcommands(self):
        assert set(cli.commands.keys()) == {"migrate", "clean", "init-config"}

    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "discord-transfer" in result.output

    def test_short_help_flag(self, runner):
        result = runner.invoke(cli, ["-h"])
        assert result.exit_code == 0
        assert "migrate" in result.output
        assert "clean" in result.output

    def test_no_subcommand_prints_help(self, runner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "init-config" in result.output


class TestMigrateCommand:
    """Tests for the migrate subcommand."""

    def test_help_shows_all_options(self, runner):
        result = runner.invoke(cli, ["migrate", "--help"])
        assert result.exit_code == 0
        for opt in [
            "--category",
            "--skip-channel",
            "--include-channel",
            "--after",
            "--delay",
            "--no-bot",
            "--no-reupload",
            "--text-only",
            "--config",
            "--verbose",
            "--debug-api",
        ]:
            assert opt in result.output

    def test_missing_arguments(self, runner):
        result = runner.invoke(cli, ["migrate", "123"])
        assert result.exit_code == 2

    def test_invalid_id(self, runner):
        result = runner.invoke(cli, ["migrate", "abc", "123"])
        assert result.exit_code == 2
        assert "Invalid ID" in result.output

    def test_invalid_timestamp(self, runner):
        result = runner.invoke(cli, ["migrate", "1", "2", "--after", "yesterday"])
        assert result.exit_code == 2

    def test_negative_delay(self, runner):
        result = runner.invoke(cli, ["migrate", "1", "2", "--delay", "-5"])
        assert result.exit_code == 2

    def test_missing_token(self, runner, monkeypatch):
        monkeypatch.delenv("DISCORD_TOKEN", raising=False)
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["migrate", "1", "2"])
        assert result.exit_code == 1

    def test_same_source_and_destination(self, runner):
        with patch("discord_transfer.cli.migrate_cmd.open_adapter") as mock_open:
            with runner.isolated_filesystem():
                result = runner.invoke(cli, ["migrate", "5", "5"])
        assert result.exit_code == 1
        mock_open.assert_not_called()

    def test_successful_run(self, runner, populated, marker):
        adapter, source, dest, chat, message_id = populated
        with patch(
            "discord_transfer.cli.migrate_cmd.open_adapter", return_value=adapter
        ):
            with runner.isolated_filesystem():
                result = runner.invoke(cli, ["migrate", source, dest, "--delay", "0"])
                report = _report()

        assert result.exit_code == 0, result.output
        assert "Messages migrated: 1" in result.output
        assert report["run_summary"]["command"] == "migrate"
        assert report["run_summary"]["messages_migrated"] == 1
        assert report["channels"]["chat"]["phase"] == "DONE"
        assert adapter.has_own_marker(chat, message_id, marker)
        assert adapter.closed

    def test_unknown_destination(self, runner, populated):
        adapter, source, *_ = populated
        with patch(
            "discord_transfer.cli.migrate_cmd.open_adapter", return_value=adapter
        ):
            with runner.isolated_filesystem():
                result = runner.invoke(cli, ["migrate", source, "999"])
        assert result.exit_code == 1
        assert adapter.closed
        assert adapter.created_channels == []

    def test_flags_reach_scope(self, runner, populated):
        adapter, source, dest, chat, _ = populated
        with patch(
            "discord_transfer.cli.migrate_cmd.open_adapter", return_value=adapter
        ):
            with runner.isolated_filesystem():
                result = runner.invoke(
                    cli,
                    [
                        "migrate",
                        source,
                        dest,
                        "--no-bot",
                        "--no-reupload",
                        "--text-only",
                        "-s",
                        chat,
                        "--after",
                        "2023-01-01T00:00:00Z",
                    ],
                )
                report = _report()

        assert result.exit_code == 0, result.output
        assert report["scope"]["skip_bots"] is True
        assert report["scope"]["reupload_attachments"] is False
        assert report["scope"]["text_only"] is True
        assert report["scope"]["skip_channels"] == [chat]
        assert report["scope"]["after"] == "2023-01-01T00:00:00+00:00"
        assert report["run_summary"]["messages_migrated"] == 0


class TestCleanCommand:
    """Tests for the clean subcommand."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["clean", "--help"])
        assert result.exit_code == 0
        assert "--include-channel" not in result.output
        assert "--category" in result.output

    def test_removes_markers(self, runner, populated, marker):
        adapter, source, _, chat, message_id = populated
        adapter.add_own_reaction(chat, message_id, marker)

        with patch("discord_transfer.cli.clean_cmd.open_adapter", return_value=adapter):
            with runner.isolated_filesystem():
                result = runner.invoke(cli, ["clean", source])

        assert result.exit_code == 0, result.output
        assert "Markers removed: 1" in result.output
        assert not adapter.has_own_marker(chat, message_id, marker)
        assert adapter.created_channels == []

    def test_unknown_server(self, runner, fake_discord):
        with patch(
            "discord_transfer.cli.clean_cmd.open_adapter", return_value=fake_discord
        ):
            with runner.isolated_filesystem():
                result = runner.invoke(cli, ["clean", "999"])
        assert result.exit_code == 1
        assert fake_discord.closed


class TestInitConfigCommand:
    """Tests for the init-config subcommand."""

    def test_writes_default_config(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init-config"])
            assert result.exit_code == 0
            with open("config.yaml", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        assert data["max_workers"] == 4

    def test_does_not_overwrite(self, runner):
        with runner.isolated_filesystem():
            with open("custom.yaml", "w", encoding="utf-8") as f:
                f.write("max_workers: 8\n")
            result = runner.invoke(cli, ["init-config", "custom.yaml"])
            with open("custom.yaml", encoding="utf-8") as f:
                content = f.read()
        assert result.exit_code == 1
        assert content == "max_workers: 8\n"


class TestHandleException:
    """Tests for handle_exception()."""

    @patch("discord_transfer.cli.common.log_with_context")
    def test_auth_error(self, mock_log):
        handle_exception(DiscordAPIError(401, "401: Unauthorized"))
        messages = [c.args[1] for c in mock_log.call_args_list]
        assert any("Authentication failed" in m for m in messages)
        assert any("DISCORD_TOKEN" in m for m in messages)

    @patch("discord_transfer.cli.common.log_with_context")
    def test_permission_error(self, mock_log):
        handle_exception(DiscordAPIError(403, "Missing Permissions"))
        assert "Missing permissions" in mock_log.call_args_list[0].args[1]

    @patch("discord_transfer.cli.common.log_with_context")
    def test_aborted(self, mock_log):
        handle_exception(MigrationAbortedError("stopped"))
        assert "interrupted" in mock_log.call_args_list[0].args[1]

    @patch("discord_transfer.cli.common.log_with_context")
    def test_config_error(self, mock_log):
        handle_exception(ConfigError("bad value"))
        mock_log.assert_called_once()
        assert mock_log.call_args.args[1] == "bad value"

    @patch("discord_transfer.cli.common.log_with_context")
    def test_unexpected_error_logs_traceback(self, mock_log):
        handle_exception(RuntimeError("boom"))
        assert mock_log.call_args.kwargs["exc_info"] is True
