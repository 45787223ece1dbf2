"""
HTTP utilities for the Discord transfer tool
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter

import discord_transfer
from discord_transfer.constants import (
    API_BASE_URL,
    BACKOFF_FACTOR,
    HTTP_NO_CONTENT,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    MAX_BACKOFF_SECONDS,
    PROJECT_URL,
)
from discord_transfer.exceptions import DiscordAPIError
from discord_transfer.utils.logging import (
    log_api_request,
    log_api_response,
    log_with_context,
)


def user_agent() -> str:
    """Descriptive client identifier sent with every request."""
    return f"DiscordTransfer ({PROJECT_URL}, {discord_transfer.__version__})"


def _error_message(response: requests.Response) -> tuple[str, int | None]:
    """Extract Discord's JSON error message and code, falling back to text."""
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason or "").strip(), None
    if isinstance(body, dict):
        return str(body.get("message", body)), body.get("code")
    return str(body), None


def _retry_after(response: requests.Response) -> float | None:
    """Seconds to wait before retrying a rate-limited request, if advertised."""
    header = response.headers.get("Retry-After")
    if header:
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and "retry_after" in body:
        try:
            return max(0.0, float(body["retry_after"]))
        except (TypeError, ValueError):
            return None
    return None


class DiscordHttpClient:
    """Authenticated Discord REST client with retry logic.

    Transient failures (HTTP 429, HTTP 5xx, connection errors) are retried
    with exponential backoff. Other client errors raise
    :class:`DiscordAPIError` immediately.
    """

    def __init__(
        self,
        token: str,
        base_url: str = API_BASE_URL,
        max_retries: int = 3,
        retry_delay: float = 2,
        timeout: float = 30,
        pool_size: int = 10,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._stop_event: threading.Event | None = None

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount("https://", adapter)
        self.session = session
        self.session.headers.update(
            {
                "Authorization": f"Bot {token}",
                "User-Agent": user_agent(),
            }
        )

    def bind_stop_event(self, stop_event: threading.Event) -> None:
        """Abort retry waits early once ``stop_event`` is set."""
        self._stop_event = stop_event

    def _sleep(self, seconds: float) -> None:
        if self._stop_event is not None:
            self._stop_event.wait(seconds)
        else:
            time.sleep(seconds)

    def _backoff(self, attempt: int) -> float:
        return min(self.retry_delay * (BACKOFF_FACTOR**attempt), MAX_BACKOFF_SECONDS)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: list[tuple[str, tuple[str, bytes, str]]] | None = None,
        **log_context: Any,
    ) -> Any:
        """Send a request to the API and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: API path relative to the base URL (e.g. ``/guilds/1``).
            params: Query string parameters.
            json: JSON body.
            data: Form fields (used with ``files`` for multipart requests).
            files: Multipart file parts.
            **log_context: Extra context attached to log records.

        Returns:
            Decoded JSON, or None for empty responses.

        Raises:
            DiscordAPIError: On a non-retryable error or after the last retry.
            requests.RequestException: If the connection keeps failing.
        """
        url = f"{self.base_url}{path}"
        log_kwargs = {"component": "http", **log_context}

        for attempt in range(self.max_retries + 1):
            log_api_request(method, url, json if isinstance(json, dict) else params, **log_kwargs)
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    files=files,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                if attempt >= self.max_retries:
                    log_with_context(
                        logging.ERROR,
                        f"Max retries reached. Last error: {e}",
                        **log_kwargs,
                    )
                    raise
                sleep_time = self._backoff(attempt)
                log_with_context(
                    logging.WARNING,
                    f"Request {method} {path} failed ({type(e).__name__}); retrying in {sleep_time:.1f} seconds...",
                    **log_kwargs,
                )
                self._sleep(sleep_time)
                continue

            status = response.status_code
            if status < 400:
                if status == HTTP_NO_CONTENT or not response.content:
                    log_api_response(status, url, **log_kwargs)
                    return None
                body = response.json()
                log_api_response(status, url, body, **log_kwargs)
                return body

            message, code = _error_message(response)
            log_api_response(status, url, message, **log_kwargs)
            retryable = status == HTTP_RATE_LIMIT or status >= HTTP_SERVER_ERROR_MIN

            if not retryable:
                log_with_context(
                    logging.DEBUG,
                    f"Client error ({status}) not retried: {method} {path}: {message}",
                    **log_kwargs,
                )
                raise DiscordAPIError(status, message, code, method, path)

            if attempt >= self.max_retries:
                log_with_context(
                    logging.ERROR,
                    f"Max retries reached for {method} {path}. Last error: HTTP {status} {message}",
                    **log_kwargs,
                )
                raise DiscordAPIError(status, message, code, method, path)

            sleep_time = self._backoff(attempt)
            if status == HTTP_RATE_LIMIT:
                sleep_time = _retry_after(response) or sleep_time
                log_with_context(
                    logging.WARNING,
                    f"Rate limited on {method} {path}; retrying in {sleep_time:.1f} seconds...",
                    **log_kwargs,
                )
            else:
                log_with_context(
                    logging.WARNING,
                    f"Encountered {status} {response.reason} on {method} {path}; retrying in {sleep_time:.1f} seconds...",
                    **log_kwargs,
                )
            self._sleep(sleep_time)

        raise RuntimeError("Exited retry loop unexpectedly.")

    def get_raw(
        self, url: str, headers: dict[str, str] | None = None
    ) -> requests.Response:
        """GET an absolute URL without API authentication (CDN downloads)."""
        request_headers = {"User-Agent": user_agent()}
        if headers:
            request_headers.update(headers)
        return requests.get(url, headers=request_headers, timeout=self.timeout)

    def close(self) -> None:
        """Release pooled connections."""
        self.session.close()
