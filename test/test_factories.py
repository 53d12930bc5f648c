"""Tests for building services from the default configuration."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.config import load_config_with_defaults
from FicArchive.search import WorkSearchService, create_search_service
from FicArchive.storage import InMemoryWorkStore, SearchResults
from FicArchive.workflow import WorkflowEngine, WorkImporter, create_importer, create_workflow_engine

DEFAULT_CONFIG = REPO_ROOT / "config" / "default.yml"


class _EmptyIndex:
    def search(self, request):
        del request
        return SearchResults(items=[])


class _NullParser:
    def parse_story(self, source, options):
        raise NotImplementedError

    def parse_chapters(self, sources, options):
        raise NotImplementedError


class TestFactories(unittest.TestCase):
    def setUp(self) -> None:
        self.config = load_config_with_defaults(None, DEFAULT_CONFIG)
        self.store = InMemoryWorkStore()

    def test_search_service_uses_search_section(self) -> None:
        service = create_search_service(self.config, _EmptyIndex(), self.store)

        self.assertIsInstance(service, WorkSearchService)
        self.assertEqual(service.config.pages_to_cache, 5)
        self.assertIsNone(service.cache)

    def test_workflow_engine_uses_draft_expiry(self) -> None:
        engine = create_workflow_engine(self.config, self.store)

        self.assertIsInstance(engine, WorkflowEngine)
        self.assertEqual(engine.drafts.expiry_months, 1)

    def test_importer_fetcher_honors_timeout(self) -> None:
        importer = create_importer(self.config, self.store, _NullParser())
        try:
            self.assertIsInstance(importer, WorkImporter)
            self.assertEqual(importer.fetcher.timeout, 60)
            self.assertEqual(importer.config.max_works, 25)
        finally:
            importer.fetcher.close()


if __name__ == "__main__":
    unittest.main()
