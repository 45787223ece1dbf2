"""Core migration logic including configuration and orchestration."""

__all__ = [
    "channel_processor",
    "cleanup",
    "config",
    "context",
    "migration_logging",
    "migrator",
    "scope",
    "state",
]
