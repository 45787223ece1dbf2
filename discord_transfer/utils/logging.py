"""
Logging setup for the Discord transfer tool.

One logger (``discord_transfer``) fans out to a console handler, the run's
``migration.log``, one file per text channel, and an optional API trace.
Routing is driven by the ``channel`` attribute that :func:`log_with_context`
attaches to records.
"""

import json
import logging
import os
import re
from typing import Any, Dict, Optional

LOGGER_NAME = "discord_transfer"

# Set by setup_logger(); read by the API helpers below
_DEBUG_API_ENABLED = False

_SENSITIVE_KEYS = ("token", "auth", "password", "secret")
_PLAIN_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
_VERBOSE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(threadName)s %(module)s:%(lineno)d] - %(message)s"
)


class EnhancedFormatter(logging.Formatter):
    """Formatter with a verbose layout and optional API payload suffixes.

    With ``include_api_details`` the ``api_data`` and ``response`` record
    attributes are appended on their own lines.
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        verbose=False,
        include_api_details=False,
    ):
        if verbose:
            fmt = _VERBOSE_FORMAT
        super().__init__(fmt or _PLAIN_FORMAT, datefmt, style)
        self.include_api_details = include_api_details

    def format(self, record):
        text = super().format(record)
        if not self.include_api_details:
            return text

        api_data = getattr(record, "api_data", None)
        response = getattr(record, "response", None)
        if api_data:
            text = f"{text}\nAPI Data: {api_data}"
        if response:
            text = f"{text}\nResponse: {response}"
        return text


class MainLogFilter(logging.Filter):
    """Keep records that are not tied to a channel."""

    def filter(self, record):
        return not getattr(record, "channel", None)


class ChannelFilter(logging.Filter):
    """Keep only records tagged with one channel."""

    def __init__(self, channel: str):
        super().__init__()
        self.channel = channel

    def filter(self, record):
        return getattr(record, "channel", None) == self.channel


def _file_handler(
    path: str, mode: str, formatter: logging.Formatter, log_filter: Any = None
) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode=mode, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    if log_filter is not None:
        handler.addFilter(log_filter)
    logging.getLogger(LOGGER_NAME).addHandler(handler)
    return handler


def setup_main_log_file(
    output_dir: str, debug_api: bool = False
) -> logging.FileHandler:
    """
    Attach ``migration.log`` in ``output_dir`` for records without a channel.

    Args:
        output_dir: Run output directory (created if missing)
        debug_api: Append API payloads to records that carry them

    Returns:
        The attached file handler
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "migration.log")
    handler = _file_handler(
        path,
        "w",
        EnhancedFormatter(_PLAIN_FORMAT, include_api_details=debug_api),
        MainLogFilter(),
    )
    logging.getLogger(LOGGER_NAME).info(f"Writing main log to {path}")
    return handler


def _has_api_payload(record: logging.LogRecord) -> bool:
    return hasattr(record, "api_data") or hasattr(record, "response")


def setup_logger(
    verbose: bool = False, debug_api: bool = False, output_dir: Optional[str] = None
) -> logging.Logger:
    """
    Reset the tool logger and attach the handlers for one run.

    The logger itself always passes DEBUG; each handler applies its own
    level. Handlers from a previous call are closed first.

    Args:
        verbose: Show DEBUG records on the console
        debug_api: Trace API requests and responses
        output_dir: Run output directory; enables the file handlers

    Returns:
        The configured logger
    """
    global _DEBUG_API_ENABLED
    _DEBUG_API_ENABLED = debug_api

    logger = logging.getLogger(LOGGER_NAME)
    for old in logger.handlers[:]:
        logger.removeHandler(old)
        old.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(EnhancedFormatter(verbose=verbose, include_api_details=debug_api))
    logger.addHandler(console)

    if output_dir:
        setup_main_log_file(output_dir, debug_api)

    if not debug_api:
        return logger

    # One urllib3 line per connection and request
    logging.getLogger("urllib3").setLevel(logging.DEBUG)
    if output_dir:
        api_path = os.path.join(output_dir, "api_debug.log")
        _file_handler(
            api_path,
            "w",
            EnhancedFormatter(include_api_details=True),
            _has_api_payload,
        )
        logger.info(f"API trace enabled: {api_path}")
    else:
        logger.info("API trace enabled on the console")
    return logger


def channel_log_name(channel_name: str, channel_id: str) -> str:
    """Build a filesystem-safe log file stem for a channel."""
    safe = re.sub(r"[^\w.-]+", "_", channel_name).strip("_") or "channel"
    return f"{safe}_{channel_id}"


def setup_channel_logger(
    output_dir: str, channel: str, verbose: bool = False, debug_api: bool = False
) -> logging.FileHandler:
    """
    Attach ``channel_logs/<channel>.log`` for records tagged with ``channel``.

    The file is appended to, so reruns of the same channel accumulate.

    Args:
        output_dir: Run output directory
        channel: Channel log key from :func:`channel_log_name`
        verbose: Use the verbose record layout
        debug_api: Append API payloads to records that carry them

    Returns:
        The attached file handler; the caller removes it when done
    """
    logs_dir = os.path.join(output_dir, "channel_logs")
    os.makedirs(logs_dir, exist_ok=True)
    path = os.path.join(logs_dir, f"{channel}.log")
    handler = _file_handler(
        path,
        "a",
        EnhancedFormatter(verbose=verbose, include_api_details=debug_api),
        ChannelFilter(channel),
    )
    log_with_context(logging.DEBUG, f"Channel log opened at {path}", channel=channel)
    return handler


def log_with_context(level: int, message: str, **kwargs: Any) -> None:
    """
    Log ``message`` with keyword context stored as record attributes.

    ``None`` values are dropped; ``exc_info`` is forwarded to the logger.
    """
    extra = {key: value for key, value in kwargs.items() if value is not None}
    exc_info = extra.pop("exc_info", None)
    logging.getLogger(LOGGER_NAME).log(level, message, extra=extra, exc_info=exc_info)


def redact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a shallow copy of ``data`` with sensitive values masked."""
    return {
        key: "[REDACTED]"
        if any(s in key.lower() for s in _SENSITIVE_KEYS)
        else value
        for key, value in data.items()
    }


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "... [truncated]"


def log_api_request(
    method: str, url: str, data: Optional[Dict] = None, **kwargs: Any
) -> None:
    """Trace an outgoing request when API debugging is on."""
    if not is_debug_api_enabled():
        return

    context = dict(kwargs)
    if isinstance(data, dict) and data:
        context["api_data"] = json.dumps(redact(data), indent=2, default=str)
    log_with_context(logging.DEBUG, f"API Request: {method} {url}", **context)


def log_api_response(
    status_code: int, url: str, response_data: Any = None, **kwargs: Any
) -> None:
    """Trace a response when API debugging is on.

    JSON bodies are kept up to 2000 characters, anything else up to 1000.
    """
    if not is_debug_api_enabled():
        return

    context = dict(kwargs)
    if response_data:
        if isinstance(response_data, (dict, list)):
            context["response"] = _truncate(
                json.dumps(response_data, indent=2, default=str), 2000
            )
        else:
            context["response"] = _truncate(str(response_data), 1000)
    log_with_context(
        logging.DEBUG, f"API Response: {status_code} from {url}", **context
    )


def is_debug_api_enabled() -> bool:
    """True once setup_logger() enabled API tracing."""
    return _DEBUG_API_ENABLED


def get_logger():
    """Return the tool logger, giving it a console handler if it has none."""
    tool_logger = logging.getLogger(LOGGER_NAME)
    if not tool_logger.handlers:
        tool_logger.setLevel(logging.INFO)
        console = logging.StreamHandler()
        console.setLevel(logging.INFO)
        console.setFormatter(EnhancedFormatter())
        tool_logger.addHandler(console)
    return tool_logger


# Replaced by setup_logger() once a command starts
logger = get_logger()
