"""HTTP download of import sources."""

from __future__ import annotations

from dataclasses import dataclass
import random
import time
from typing import Callable

import requests

from FicArchive.config.imports import ImportConfig
from FicArchive.core.errors import FetchTimeoutError, StoryFetchError
from FicArchive.utils.log import log

DEFAULT_TIMEOUT = 60.0
MAX_ATTEMPTS = 3
BASE_PAUSE = 0.8
MAX_SLEEP = 8.0
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

HEADERS = {
    "User-Agent": "fic-archive-importer/0.1",
    "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
}


@dataclass(frozen=True, slots=True)
class FetchedSource:
    """Raw story page as downloaded."""

    url: str
    text: str
    status_code: int
    content_type: str = ""


class StoryFetcher:
    """Download story pages with a bounded per-request timeout.

    Connection errors and transient statuses are retried with backoff.
    Timeouts are not retried, so a fetch never takes longer than ``timeout``
    waiting on a silent server.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: ImportConfig) -> StoryFetcher:
        return cls(timeout=config.fetch_timeout, max_attempts=config.max_attempts)

    def close(self) -> None:
        self._session.close()

    def fetch(self, url: str, *, encoding: str | None = None) -> FetchedSource:
        """Fetch one URL.

        Args:
            url: Story or chapter page.
            encoding: Override for the response text encoding.

        Returns:
            The downloaded page.

        Raises:
            FetchTimeoutError: If the server did not answer within ``timeout``.
            StoryFetchError: For any other download failure.
        """
        response = self._get_with_retry(url)
        if response.status_code >= 400:
            raise StoryFetchError(f"{url} returned HTTP {response.status_code}")
        if encoding:
            response.encoding = encoding
        log.debug("Fetched %s status=%d bytes=%d", url, response.status_code, len(response.content or b""))
        return FetchedSource(
            url=url,
            text=response.text,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type", ""),
        )

    def _get_with_retry(self, url: str) -> requests.Response:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._session.get(url, headers=HEADERS, timeout=self.timeout)
            except requests.Timeout as error:
                raise FetchTimeoutError(url, self.timeout) from error
            except requests.ConnectionError as error:
                last_error = error
            except requests.RequestException as error:
                raise StoryFetchError(f"Could not download {url}: {error}") from error
            else:
                if response.status_code not in RETRYABLE_STATUS:
                    return response
                last_error = StoryFetchError(f"{url} returned HTTP {response.status_code}")

            if attempt < self.max_attempts:
                delay = min(BASE_PAUSE * (2 ** (attempt - 1)) + random.uniform(0, 0.3), MAX_SLEEP)
                log.debug("Import fetch retry attempt=%d/%d delay=%.2fs error=%s", attempt, self.max_attempts, delay, last_error)
                self._sleep(delay)

        assert last_error is not None
        raise StoryFetchError(f"Could not download {url}: {last_error}") from last_error
