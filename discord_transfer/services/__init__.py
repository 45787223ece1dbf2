"""Discord API access and the per-message and per-channel services built on it."""

__all__ = [
    "discord_adapter",
    "file_download",
    "message_builder",
    "migration_marker",
    "structure_mirror",
]
