"""Custom exception hierarchy for the Discord transfer tool."""

from __future__ import annotations


class TransferError(Exception):
    """Base exception for all transfer-related errors."""


class ConfigError(TransferError):
    """Raised when configuration is invalid or missing."""


class ResolutionError(TransferError):
    """Raised when a source or destination guild cannot be resolved."""


class MalformedEmbedError(TransferError):
    """Raised when a source embed lacks a mandatory sub-field."""


class MigrationAbortedError(TransferError):
    """Raised when a run is interrupted before all branches completed."""


class DiscordAPIError(TransferError):
    """Raised when a Discord API call fails in an unrecoverable way."""

    def __init__(
        self,
        status: int,
        message: str,
        code: int | None = None,
        method: str | None = None,
        path: str | None = None,
    ) -> None:
        self.status = status
        self.code = code
        self.method = method
        self.path = path
        detail = f"{method} {path}: " if method and path else ""
        super().__init__(f"{detail}HTTP {status}: {message}")
