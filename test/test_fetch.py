"""Tests for downloading import sources."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.config.imports import ImportConfig
from FicArchive.core.errors import FetchTimeoutError, StoryFetchError
from FicArchive.workflow.fetch import HEADERS, StoryFetcher


class _Response:
    def __init__(self, status_code: int, text: str = "", content_type: str = "text/html") -> None:
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = {"Content-Type": content_type}
        self.encoding = "utf-8"


class TestStoryFetcher(unittest.TestCase):
    def setUp(self) -> None:
        self.session = MagicMock()
        self.sleeps: list[float] = []
        self.fetcher = StoryFetcher(timeout=5.0, max_attempts=3, session=self.session, sleep=self.sleeps.append)

    def test_fetch_returns_source(self) -> None:
        self.session.get.return_value = _Response(200, "<p>story</p>")

        source = self.fetcher.fetch("http://example.com/s/1")

        self.assertEqual(source.text, "<p>story</p>")
        self.assertEqual(source.status_code, 200)
        self.assertEqual(source.content_type, "text/html")
        self.session.get.assert_called_once_with("http://example.com/s/1", headers=HEADERS, timeout=5.0)

    def test_timeout_is_raised_without_retry(self) -> None:
        self.session.get.side_effect = requests.Timeout("read timed out")

        with self.assertRaises(FetchTimeoutError) as raised:
            self.fetcher.fetch("http://slow.example.com")

        self.assertIsInstance(raised.exception, TimeoutError)
        self.assertEqual(raised.exception.url, "http://slow.example.com")
        self.assertEqual(self.session.get.call_count, 1)
        self.assertEqual(self.sleeps, [])

    def test_transient_status_is_retried(self) -> None:
        self.session.get.side_effect = [_Response(503), _Response(200, "ok")]

        source = self.fetcher.fetch("http://flaky.example.com")

        self.assertEqual(source.text, "ok")
        self.assertEqual(self.session.get.call_count, 2)
        self.assertEqual(len(self.sleeps), 1)

    def test_connection_errors_exhaust_attempts(self) -> None:
        self.session.get.side_effect = requests.ConnectionError("refused")

        with self.assertRaises(StoryFetchError):
            self.fetcher.fetch("http://down.example.com")

        self.assertEqual(self.session.get.call_count, 3)
        self.assertEqual(len(self.sleeps), 2)

    def test_client_error_is_not_retried(self) -> None:
        self.session.get.return_value = _Response(404)

        with self.assertRaisesRegex(StoryFetchError, "404"):
            self.fetcher.fetch("http://example.com/missing")

        self.assertEqual(self.session.get.call_count, 1)

    def test_invalid_url(self) -> None:
        self.session.get.side_effect = requests.exceptions.MissingSchema("no scheme")

        with self.assertRaises(StoryFetchError):
            self.fetcher.fetch("example.com")

    def test_encoding_override(self) -> None:
        response = _Response(200, "texte")
        self.session.get.return_value = response

        self.fetcher.fetch("http://example.fr", encoding="latin-1")

        self.assertEqual(response.encoding, "latin-1")

    def test_from_config(self) -> None:
        config = ImportConfig(max_works=1, max_works_by_archivist=1, max_chapters=1, fetch_timeout=7, max_attempts=2)

        fetcher = StoryFetcher.from_config(config)
        try:
            self.assertEqual(fetcher.timeout, 7)
            self.assertEqual(fetcher.max_attempts, 2)
        finally:
            fetcher.close()


if __name__ == "__main__":
    unittest.main()
