"""HTTP transport for repository requests with fixed-delay retries."""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Protocol

import requests

from metaharvest.harvest.errors import HarvestRequestError

logger = logging.getLogger(__name__)

USER_AGENT = "metaharvest OAI-PMH harvester"


class Transport(Protocol):
    def get(self, url: str, params: Mapping[str, str]) -> bytes:
        """Return the response body or raise ``HarvestRequestError``."""


class RetryableResponseError(Exception):
    def __init__(self, status_code: int, reason: str) -> None:
        super().__init__(f"HTTP {status_code} {reason}".strip())
        self.status_code = status_code


# Malformed request targets; failing again is certain.
_FATAL_REQUEST_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
)


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, RetryableResponseError):
        return True
    if isinstance(exc, _FATAL_REQUEST_ERRORS):
        return False
    return isinstance(exc, (requests.RequestException, TimeoutError, ConnectionError))


class HttpTransport:
    """``requests`` session wrapper.

    Every failed attempt (timeout, broken connection, non-2xx status) waits
    ``retry_wait`` seconds before the next one; after ``max_tries`` attempts
    the request fails with ``HarvestRequestError``. There is no backoff.
    """

    def __init__(
        self,
        source: str,
        *,
        max_tries: int = 5,
        retry_wait: float = 30.0,
        timeout: float = 60.0,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_tries < 1:
            raise ValueError("max_tries must be at least 1")
        if retry_wait < 0:
            raise ValueError("retry_wait cannot be negative")

        self._source = source
        self._max_tries = max_tries
        self._retry_wait = retry_wait
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._sleep = sleep

    @property
    def max_tries(self) -> int:
        return self._max_tries

    def close(self) -> None:
        self._session.close()

    def get(self, url: str, params: Mapping[str, str]) -> bytes:
        last_error: Exception | None = None

        for attempt in range(1, self._max_tries + 1):
            try:
                response = self._session.get(url, params=dict(params), timeout=self._timeout)
                if not 200 <= response.status_code < 300:
                    raise RetryableResponseError(response.status_code, response.reason or "")
                return response.content
            except Exception as exc:
                if isinstance(exc, _FATAL_REQUEST_ERRORS):
                    raise HarvestRequestError(source=self._source, url=url, message=str(exc)) from exc
                if not _is_retryable(exc):
                    raise
                last_error = exc
                if attempt >= self._max_tries:
                    break
                logger.warning(
                    "[%s] Request failed (%s), retrying in %s seconds (attempt %d/%d)",
                    self._source,
                    exc,
                    self._retry_wait,
                    attempt,
                    self._max_tries,
                )
                self._sleep(self._retry_wait)

        raise HarvestRequestError(
            source=self._source,
            url=url,
            message=f"Request failed after {self._max_tries} attempt(s): {last_error}",
        ) from last_error
