# src/copytrader/feed/rest.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests
from requests import exceptions as rex

DEFAULT_URL = "https://nof1.ai/api/account-totals"
DEFAULT_USER_AGENT = "DeepSeekCopyTrader/1.0"

log = logging.getLogger("copytrader.feed.rest")


class FeedUnavailableError(RuntimeError):
    """
    Raised when every fetch attempt failed with a transient network error.
    The last network error (requests Timeout / ConnectionError) is chained as __cause__.
    """


def is_retryable(err: BaseException) -> bool:
    """Timeout, connection reset / refused, DNS failure. Not SSL or proxy problems."""
    if isinstance(err, (rex.SSLError, rex.ProxyError)):
        return False
    return isinstance(err, (rex.Timeout, rex.ConnectionError, rex.ChunkedEncodingError))


class PositionsFeedREST:
    """
    GET client for the positions feed, with a bounded retry for transient network errors.
    HTTP error statuses and malformed bodies are not retried.
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_URL,
        timeout: float = 15.0,
        max_attempts: int = 3,
        retry_delay: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if int(max_attempts) < 1:
            raise ValueError("max_attempts must be >= 1")

        self.url = url
        self.timeout = float(timeout)
        self.max_attempts = int(max_attempts)
        self.retry_delay = float(retry_delay)
        self._sleep = sleep

        self.sess = session if session is not None else requests.Session()
        self.sess.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "application/json",
                "Connection": "keep-alive",
            }
        )

    def fetch(self, url: str | None = None, timeout: float | None = None) -> Any:
        url = url or self.url
        timeout = self.timeout if timeout is None else float(timeout)

        last_err: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            log.info("Fetching positions from %s (attempt %d/%d)", url, attempt, self.max_attempts)
            try:
                r = self.sess.get(url, timeout=timeout)
                r.raise_for_status()
                return r.json()

            except Exception as e:
                if not is_retryable(e):
                    log.error("Fetch failed (not retryable) %s | %r", url, e)
                    raise

                last_err = e
                if attempt < self.max_attempts:
                    log.warning(
                        "Fetch network error, retry %d/%d in %.1fs | %r",
                        attempt, self.max_attempts, self.retry_delay, e,
                    )
                    self._sleep(self.retry_delay)

        raise FeedUnavailableError(
            f"Feed unavailable after {self.max_attempts} attempts: GET {url} | last_err={last_err!r}"
        ) from last_err

    def check_connectivity(self, url: str, timeout: float = 5.0) -> bool:
        """One HEAD probe. Advisory only, never raises."""
        log.info("Testing connection to %s ...", url)
        try:
            r = self.sess.head(url, timeout=float(timeout), allow_redirects=True)
            log.info("Connection test finished: HTTP %s", r.status_code)
            return r.status_code < 500
        except Exception as e:
            log.warning("Connection test failed: %r (temporary network issue or site down?)", e)
            return False

    def close(self) -> None:
        self.sess.close()
