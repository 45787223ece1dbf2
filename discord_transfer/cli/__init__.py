"""Command-line interface built on click."""

__all__ = [
    "clean_cmd",
    "commands",
    "common",
    "config_cmd",
    "migrate_cmd",
    "report",
]
