"""Attachment download for re-upload to the destination server."""

from __future__ import annotations

import logging

import requests

from discord_transfer.services.discord_adapter import DiscordAdapter
from discord_transfer.types import DiscordAttachment, OutgoingFile
from discord_transfer.utils.logging import log_with_context


def _indent(text: str) -> str:
    return "\n\t" + text.strip().replace("\n", "\n\t")


def download_attachment(
    adapter: DiscordAdapter,
    attachment: DiscordAttachment,
    channel: str | None,
) -> OutgoingFile | None:
    """Download an attachment so it can be re-uploaded.

    A failed download never fails the message: the error is logged and the
    attachment is dropped.

    Args:
        adapter: Remote client used for the HTTP fetch.
        attachment: The source attachment.
        channel: Channel log key for logging context.

    Returns:
        The attachment bytes under the original filename, or None.
    """
    name = attachment.get("filename", f"file_{attachment.get('id', 'unknown')}")
    url = attachment.get("url")

    if not url:
        log_with_context(
            logging.WARNING,
            f"No URL found for attachment: {name}",
            channel=channel,
        )
        return None

    log_with_context(
        logging.DEBUG,
        f"Downloading attachment {name} from {url[:100]}{'...' if len(url) > 100 else ''}",
        channel=channel,
    )

    try:
        response = adapter.download_attachment(url)
    except requests.RequestException as e:
        log_with_context(
            logging.WARNING,
            f"Unable to forward attachment {name}: {e}",
            channel=channel,
        )
        return None

    if response.status_code // 100 != 2:
        body = response.text if response.content else ""
        detail = _indent(body) if body.strip() else f" HTTP {response.status_code}"
        log_with_context(
            logging.WARNING,
            f"Attachment HTTP error for {name}:{detail}",
            channel=channel,
            http_status=response.status_code,
        )
        return None

    content = response.content
    log_with_context(
        logging.DEBUG,
        f"Downloaded attachment: {name} ({len(content)} bytes)",
        channel=channel,
    )
    return OutgoingFile(
        filename=name,
        content=content,
        content_type=attachment.get("content_type"),
    )
