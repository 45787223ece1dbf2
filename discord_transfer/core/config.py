"""
Configuration module for the Discord transfer tool.

This module provides the immutable :class:`MigrationScope` built from the
command line, the :class:`MigrationConfig` tunables loaded from an optional
YAML file, and helpers to create a default configuration file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import emoji
import yaml

from discord_transfer.constants import DEFAULT_MARKER_SHORTCODE
from discord_transfer.exceptions import ConfigError
from discord_transfer.utils.logging import log_with_context


@dataclass(frozen=True)
class MigrationScope:
    """What a single run is allowed to touch.

    Built once per invocation from command-line values and never mutated.
    ``delay_ms`` is the pause applied between successive messages of a
    channel.
    """

    category_ids: frozenset[str] | None = None
    skip_channel_ids: frozenset[str] = frozenset()
    include_channel_ids: frozenset[str] = frozenset()
    after: datetime | None = None
    delay_ms: int = 0
    skip_bots: bool = False
    reupload_attachments: bool = True
    text_only: bool = False

    def __post_init__(self) -> None:
        if self.delay_ms < 0:
            raise ConfigError(f"delay must be non-negative, got {self.delay_ms}")

    @classmethod
    def build(
        cls,
        categories: Iterable[str] = (),
        skip_channels: Iterable[str] = (),
        include_channels: Iterable[str] = (),
        after: datetime | None = None,
        delay_ms: int = 0,
        skip_bots: bool = False,
        reupload_attachments: bool = True,
        text_only: bool = False,
    ) -> MigrationScope:
        """Build a scope from repeated CLI values.

        An empty ``categories`` collection means "no explicit category
        selection" rather than "select nothing".
        """
        category_ids = frozenset(categories)
        return cls(
            category_ids=category_ids or None,
            skip_channel_ids=frozenset(skip_channels),
            include_channel_ids=frozenset(include_channels),
            after=after,
            delay_ms=delay_ms,
            skip_bots=skip_bots,
            reupload_attachments=reupload_attachments,
            text_only=text_only,
        )

    @property
    def delay_seconds(self) -> float:
        """Inter-message delay in seconds."""
        return self.delay_ms / 1000


@dataclass
class MigrationConfig:
    """Typed tunables for the transfer tool.

    All fields have defaults, so an absent config file yields a working run.
    """

    # Concurrency
    max_workers: int = 4

    # Retry
    max_retries: int = 3
    retry_delay: float = 2
    request_timeout: float = 30

    # Migration marker (emoji shortcode)
    marker_emoji: str = DEFAULT_MARKER_SHORTCODE

    # Run artifacts
    output_dir: str = "migration_logs"
    channel_logs: bool = True

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_retries < 0:
            raise ConfigError(
                f"max_retries must be non-negative, got {self.max_retries}"
            )
        if self.retry_delay < 0:
            raise ConfigError(
                f"retry_delay must be non-negative, got {self.retry_delay}"
            )
        if self.request_timeout <= 0:
            raise ConfigError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )
        # Fail early on unknown shortcodes
        resolve_marker_emoji(self.marker_emoji)

    @property
    def marker(self) -> str:
        """The marker reaction as a unicode emoji."""
        return resolve_marker_emoji(self.marker_emoji)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationConfig:
        """Create a MigrationConfig from a raw config dictionary."""
        defaults = cls.__dataclass_fields__
        unknown = set(data) - set(defaults)
        if unknown:
            log_with_context(
                logging.WARNING,
                f"Ignoring unknown config keys: {', '.join(sorted(unknown))}",
            )
        try:
            return cls(
                max_workers=int(data.get("max_workers", 4)),
                max_retries=int(data.get("max_retries", 3)),
                retry_delay=float(data.get("retry_delay", 2)),
                request_timeout=float(data.get("request_timeout", 30)),
                marker_emoji=str(data.get("marker_emoji", DEFAULT_MARKER_SHORTCODE)),
                output_dir=str(data.get("output_dir", "migration_logs")),
                channel_logs=bool(data.get("channel_logs", True)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e


def resolve_marker_emoji(value: str) -> str:
    """Turn a shortcode (``:name:``) or literal emoji into a unicode emoji.

    Raises:
        ConfigError: If the value is not a single known emoji.
    """
    resolved = emoji.emojize(value, language="alias")
    if not emoji.is_emoji(resolved):
        raise ConfigError(f"marker_emoji is not a known emoji: {value!r}")
    return resolved


def load_config(config_path: Path) -> MigrationConfig:
    """
    Load configuration from YAML file and apply default values.

    If the file doesn't exist or can't be parsed, a warning is logged and
    default settings are used. Values that parse but are invalid raise
    :class:`ConfigError`.

    Args:
        config_path: Path to the config YAML file

    Returns:
        MigrationConfig with all necessary defaults applied
    """
    raw: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
            # Handle None result from empty file
            if isinstance(loaded_config, dict):
                raw = loaded_config
            elif loaded_config is not None:
                log_with_context(
                    logging.WARNING,
                    f"Config file {config_path} is not a mapping, using default settings",
                )
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        except (yaml.YAMLError, OSError) as e:
            log_with_context(
                logging.WARNING, f"Failed to load config file {config_path}: {e}"
            )
    else:
        log_with_context(
            logging.DEBUG,
            f"Config file {config_path} not found, using default settings",
        )

    return MigrationConfig.from_dict(raw)


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    The function will not overwrite an existing configuration file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        # Parallel branches (categories, channels)
        "max_workers": 4,
        # Retry options for the Discord API
        "max_retries": 3,
        "retry_delay": 2,
        "request_timeout": 30,
        # Reaction used to flag migrated source messages
        "marker_emoji": DEFAULT_MARKER_SHORTCODE,
        # Where run logs and reports are written
        "output_dir": "migration_logs",
        "channel_logs": True,
    }

    try:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write("# discord-transfer configuration\n")
            yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False
