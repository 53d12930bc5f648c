"""Tests for search pages, owner listings and their caching."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from typing import Any, Callable, Mapping

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.config.search import SearchConfig
from FicArchive.core.errors import NotFoundError
from FicArchive.core.models import (
    Collection,
    CollectionOwner,
    Pseud,
    PseudOwner,
    Tag,
    TagCategory,
    TagOwner,
    User,
    UserOwner,
    Work,
)
from FicArchive.search.service import (
    LATEST_WORKS_CACHE_KEY,
    ListingScope,
    WorkSearchService,
    index_page_title,
    request_reindex,
    resolve_owner,
)
from FicArchive.storage.memory import InMemoryWorkStore
from FicArchive.storage.protocols import SearchResults
from FicArchive.workflow.context import Viewer
from FicArchive.workflow.outcome import Redirected

ALICE = User(
    id=1,
    login="alice",
    pseuds=(
        Pseud(id=10, name="alice", user_id=1, user_login="alice", is_default=True),
        Pseud(id=11, name="Quill", user_id=1, user_login="alice"),
    ),
)
STAR_WARS = Tag("Star Wars", TagCategory.FANDOM, id=7)
SW_SYNONYM = Tag("SW", TagCategory.FANDOM, id=8, canonical=False, merger_id=7)
ORPHAN_SYNONYM = Tag("Starwars", TagCategory.FANDOM, id=9, canonical=False)
ZINE = Collection(id=3, name="zine", title="The Zine")

CONFIG = SearchConfig(
    pages_to_cache=2,
    index_cache_ttl_minutes=20,
    latest_cache_ttl_minutes=5,
    disable_filtering=False,
)


class _RecordingIndex:
    def __init__(self) -> None:
        self.requests: list[Mapping[str, Any]] = []

    def search(self, request: Mapping[str, Any]) -> SearchResults:
        self.requests.append(request)
        work = Work(title=f"hit {len(self.requests)}", posted=True)
        return SearchResults(items=[work], total=41, facets={"rating": {"General": 3}})


class _DictCache:
    def __init__(self) -> None:
        self.entries: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}

    def fetch(self, key: str, ttl_seconds: int, compute: Callable[[], Any]) -> Any:
        self.ttls[key] = ttl_seconds
        if key not in self.entries:
            self.entries[key] = compute()
        return self.entries[key]

    def delete(self, key: str) -> None:
        self.entries.pop(key, None)


class _RecordingQueue:
    def __init__(self) -> None:
        self.queued: list[tuple[list[int], str]] = []

    def queue_works(self, work_ids, *, priority: str) -> None:
        self.queued.append((list(work_ids), priority))


class TestResolveOwner(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryWorkStore(users=[ALICE], tags=[STAR_WARS, SW_SYNONYM, ORPHAN_SYNONYM])

    def test_most_specific_owner_wins(self) -> None:
        scope = resolve_owner(
            self.store, user_login="alice", pseud_name="Quill", tag_name="Star Wars", collection=ZINE
        )

        self.assertIsInstance(scope, ListingScope)
        self.assertEqual(scope.owner, PseudOwner(ALICE.pseuds[1]))
        self.assertEqual(scope.tag, STAR_WARS)

    def test_fallbacks(self) -> None:
        self.assertEqual(resolve_owner(self.store, user_login="alice", pseud_name="nobody").owner, UserOwner(ALICE))
        self.assertEqual(resolve_owner(self.store, collection=ZINE).owner, CollectionOwner(ZINE))
        self.assertEqual(resolve_owner(self.store, tag_name="Star Wars").owner, TagOwner(STAR_WARS))
        self.assertIsNone(resolve_owner(self.store).owner)

    def test_synonym_redirects_to_merger(self) -> None:
        plain = resolve_owner(self.store, tag_name="SW")
        in_collection = resolve_owner(self.store, tag_name="SW", collection=ZINE)
        unmerged = resolve_owner(self.store, tag_name="Starwars")

        self.assertIsInstance(plain, Redirected)
        self.assertEqual((plain.target.name, plain.target.params), ("tag_works", {"tag": "Star Wars"}))
        self.assertEqual(in_collection.target.name, "collection_tag_works")
        self.assertEqual(in_collection.target.params, {"collection": "zine", "tag": "Star Wars"})
        self.assertEqual((unmerged.target.name, unmerged.target.params), ("tag", {"tag": "Starwars"}))

    def test_unknown_tag(self) -> None:
        with self.assertRaises(NotFoundError):
            resolve_owner(self.store, tag_name="Nope")

    def test_page_title(self) -> None:
        self.assertEqual(index_page_title(None), "Latest Works")
        self.assertEqual(index_page_title(CollectionOwner(ZINE)), "The Zine - Works")


class TestWorkSearchService(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryWorkStore(users=[ALICE], tags=[STAR_WARS])
        self.store.save_work(Work(title="Posted", pseuds=[ALICE.pseuds[0]], posted=True))
        self.store.save_work(Work(title="Draft", pseuds=[ALICE.pseuds[0]]))
        self.index = _RecordingIndex()
        self.cache = _DictCache()
        self.service = WorkSearchService(self.index, self.store, CONFIG, self.cache)

    def test_search_form_only(self) -> None:
        page = self.service.search({}, Viewer())
        editing = self.service.search({"work_search": {"query": "x"}, "edit_search": "1"}, Viewer())

        self.assertFalse(page.searched)
        self.assertFalse(editing.searched)
        self.assertEqual(self.index.requests, [])

    def test_search_runs_query(self) -> None:
        page = self.service.search(
            {"work_search": {"query": "dragons sort:kudos"}, "page": "2"}, Viewer(user=ALICE)
        )

        self.assertTrue(page.searched)
        self.assertTrue(page.title.startswith("Works Matching 'dragons"))
        self.assertEqual(page.total, 41)
        request = self.index.requests[0]
        self.assertEqual(request["page"], 2)
        self.assertTrue(request["show_restricted"])
        self.assertEqual(request["sort"]["column"], "kudos_count")

    def test_listing_cache_key_depends_on_login(self) -> None:
        scope = ListingScope(owner=UserOwner(ALICE))

        self.service.index(scope, {}, Viewer(user=ALICE))
        self.service.index(scope, {}, Viewer())
        self.service.index(scope, {}, Viewer())

        self.assertEqual(
            sorted(self.cache.entries),
            ["user/1/works_logged_in_page1", "user/1/works_logged_out_page1"],
        )
        self.assertEqual(set(self.cache.ttls.values()), {20 * 60})
        self.assertEqual(len(self.index.requests), 2)

    def test_uncached_pages(self) -> None:
        scope = ListingScope(owner=UserOwner(ALICE))

        self.service.index(scope, {"page": "3"}, Viewer())
        self.service.index(scope, {"work_search": {"query": "x"}}, Viewer())
        self.service.index(scope, {}, Viewer(), fandom_id=7)

        self.assertEqual(self.cache.entries, {})
        self.assertEqual(len(self.index.requests), 3)
        self.assertEqual(self.index.requests[2]["filters"]["filter_ids"], [7])

    def test_cache_is_transparent(self) -> None:
        scope = ListingScope(owner=PseudOwner(ALICE.pseuds[0]))
        uncached = WorkSearchService(_RecordingIndex(), self.store, CONFIG)

        with_cache = self.service.index(scope, {}, Viewer())
        without_cache = uncached.index(scope, {}, Viewer())

        self.assertEqual([w.title for w in with_cache.works], [w.title for w in without_cache.works])
        self.assertEqual(with_cache.total, without_cache.total)
        self.assertEqual(with_cache.title, "alice - Works")

    def test_collection_tag_scope(self) -> None:
        scope = ListingScope(owner=CollectionOwner(ZINE), tag=STAR_WARS)

        self.service.index(scope, {}, Viewer())

        self.assertEqual(list(self.cache.entries), ["collection/3/works/tag/7_logged_out_page1"])
        request = self.index.requests[0]
        self.assertEqual(request["filters"]["filter_ids"], [7])
        self.assertEqual(request["parent"], {"kind": "collection", "name": "zine"})

    def test_latest_works(self) -> None:
        page = self.service.index(ListingScope(), {}, Viewer())

        self.assertEqual([w.title for w in page.works], ["Posted"])
        self.assertEqual(page.title, "Latest Works")
        self.assertEqual(self.cache.ttls, {LATEST_WORKS_CACHE_KEY: 5 * 60})
        self.assertEqual(self.index.requests, [])

    def test_disable_filtering_reads_store(self) -> None:
        config = SearchConfig(
            pages_to_cache=2, index_cache_ttl_minutes=20, latest_cache_ttl_minutes=5, disable_filtering=True
        )
        service = WorkSearchService(self.index, self.store, config, self.cache)

        page = service.index(ListingScope(owner=UserOwner(ALICE)), {}, Viewer())

        self.assertEqual([w.title for w in page.works], ["Posted"])
        self.assertEqual(self.index.requests, [])

    def test_collected(self) -> None:
        unknown = self.service.collected("ghost", {}, Viewer())
        known = self.service.collected("alice", {}, Viewer())

        self.assertFalse(unknown.searched)
        self.assertEqual(known.title, "alice - Collected Works")
        self.assertTrue(self.index.requests[0]["collected"])


class TestRequestReindex(unittest.TestCase):
    def test_permission_required(self) -> None:
        queue = _RecordingQueue()

        denied = request_reindex(5, Viewer(user=ALICE), queue)
        allowed = request_reindex(5, Viewer(user=ALICE, is_tag_wrangler=True), queue)

        self.assertEqual(denied.notices[0].key, "no_permission")
        self.assertEqual(allowed.notices[0].key, "reindex_queued")
        self.assertEqual(allowed.target.name, "back")
        self.assertEqual(queue.queued, [([5], "high")])


if __name__ == "__main__":
    unittest.main()
