"""Shared utilities for API access, logging, and snowflake IDs."""

__all__ = [
    "api",
    "logging",
    "snowflake",
]
