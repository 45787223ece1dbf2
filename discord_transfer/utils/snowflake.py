"""Helpers for Discord snowflake IDs.

A snowflake carries its creation time (milliseconds since the Discord epoch)
in its upper 42 bits, so IDs sort chronologically and can be used as
"everything after this point" cursors.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from discord_transfer.constants import DISCORD_EPOCH_MS, SNOWFLAKE_TIMESTAMP_SHIFT

_MAX_SNOWFLAKE = (1 << 64) - 1
_DISCORD_EPOCH = datetime.fromtimestamp(DISCORD_EPOCH_MS // 1000, tz=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def parse_snowflake(value: str | int) -> str:
    """Validate a snowflake ID and return it in canonical string form.

    Args:
        value: Decimal ID as string or int.

    Returns:
        The ID as a decimal string without leading zeros.

    Raises:
        ValueError: If the value is not a positive 64-bit integer.
    """
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError(f"Invalid ID (expected digits only): {value!r}")
    number = int(text)
    if number <= 0 or number > _MAX_SNOWFLAKE:
        raise ValueError(f"Invalid ID (out of range): {value!r}")
    return str(number)


def snowflake_to_datetime(snowflake: str | int) -> datetime:
    """Return the UTC creation time embedded in a snowflake."""
    ms = int(snowflake) >> SNOWFLAKE_TIMESTAMP_SHIFT
    return _DISCORD_EPOCH + ms * _ONE_MS


def datetime_to_snowflake(moment: datetime) -> str:
    """Build the smallest snowflake created at ``moment``.

    Naive datetimes are interpreted as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    ms = (moment - _DISCORD_EPOCH) // _ONE_MS
    if ms < 0:
        ms = 0
    return str(ms << SNOWFLAKE_TIMESTAMP_SHIFT)


def channel_start_cursor(channel_id: str, after: datetime | None) -> str:
    """Return the fetch cursor for a channel's history.

    The channel's own ID selects the whole history. When ``after`` is later
    than the channel creation time, a synthetic snowflake built from
    ``after`` narrows the fetch to messages created after the cutoff.

    Args:
        channel_id: Source channel snowflake.
        after: Optional cutoff timestamp.

    Returns:
        Snowflake string to pass as the ``after`` cursor.
    """
    if after is None:
        return channel_id
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    if after > snowflake_to_datetime(channel_id):
        return datetime_to_snowflake(after)
    return channel_id
