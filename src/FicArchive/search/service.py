"""Search and listing service for works."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from FicArchive.config.search import SearchConfig
from FicArchive.core.errors import NotFoundError
from FicArchive.core.models import (
    Collection,
    CollectionOwner,
    Owner,
    PseudOwner,
    Tag,
    TagOwner,
    UserOwner,
    Work,
    works_index_cache_key,
)
from FicArchive.core.query import NormalizeWarning, WorkSearchQuery
from FicArchive.search.compile import compile_search_request
from FicArchive.search.normalize import normalize
from FicArchive.storage.protocols import ReindexQueue, ResultCache, SearchIndex, SearchResults, WorkStore
from FicArchive.utils.log import log
from FicArchive.workflow import messages
from FicArchive.workflow.context import Viewer
from FicArchive.workflow.outcome import Redirected, Route, notice

LATEST_WORKS_CACHE_KEY = "works/index/latest/v1"


@dataclass(frozen=True, slots=True)
class ListingScope:
    """Owner of a works listing plus the tag it is narrowed to, if any."""

    owner: Owner | None = None
    tag: Tag | None = None


@dataclass(frozen=True, slots=True)
class SearchPage:
    """One rendered page of search or listing results.

    Attributes:
        query: Normalized query the page was built from.
        warnings: Normalizer warnings for the caller to show.
        title: Page subtitle.
        works: Works on this page.
        total: Total matches, across pages.
        facets: Facet counts when the index returned them.
        searched: False when only the search form is shown.
    """

    query: WorkSearchQuery
    warnings: Sequence[NormalizeWarning] = ()
    title: str = ""
    works: Sequence[Work] = ()
    total: int = 0
    facets: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    searched: bool = True


def resolve_owner(
    store: WorkStore,
    *,
    user_login: str | None = None,
    pseud_name: str | None = None,
    tag_name: str | None = None,
    collection: Collection | None = None,
) -> ListingScope | Redirected:
    """Work out whose works a listing shows.

    The most specific owner wins: pseud, then user, then collection, then tag.
    A tag that is not canonical redirects to its merger's listing, or to the
    tag page when it has no merger.

    Raises:
        NotFoundError: If ``tag_name`` names no tag.
    """
    user = store.find_user_by_login(user_login) if user_login else None
    pseud = None
    if user is not None and pseud_name:
        pseud = next((p for p in user.pseuds if p.name == pseud_name), None)

    tag = None
    if tag_name:
        tag = store.find_tag_by_name(tag_name)
        if tag is None:
            raise NotFoundError(f"Couldn't find tag named '{tag_name}'")
        if not tag.canonical:
            merger = store.find_tag(tag.merger_id) if tag.merger_id is not None else None
            if merger is None:
                return Redirected(Route("tag", {"tag": tag.name}))
            if collection is not None:
                return Redirected(Route("collection_tag_works", {"collection": collection.name, "tag": merger.name}))
            return Redirected(Route("tag_works", {"tag": merger.name}))

    owner: Owner | None
    if pseud is not None:
        owner = PseudOwner(pseud)
    elif user is not None:
        owner = UserOwner(user)
    elif collection is not None:
        owner = CollectionOwner(collection)
    elif tag is not None:
        owner = TagOwner(tag)
    else:
        owner = None
    return ListingScope(owner=owner, tag=tag)


def index_page_title(owner: Owner | None) -> str:
    if owner is None:
        return messages.render("latest_works")
    return messages.render("owner_works", {"name": owner.display_name})


def request_reindex(work_id: int, viewer: Viewer, queue: ReindexQueue) -> Redirected:
    """Queue a high priority reindex; admins and tag wranglers only."""
    if not (viewer.is_admin or viewer.is_tag_wrangler):
        return Redirected(Route("back"), notices=[notice("no_permission")])
    queue.queue_works([work_id], priority="high")
    log.info("Queued reindex of work %s", work_id)
    return Redirected(Route("back"), notices=[notice("reindex_queued")])


class WorkSearchService:
    """Runs searches and owner listings against the index.

    The cache is optional. Without one every page is computed directly and
    the results are the same.
    """

    def __init__(
        self,
        index: SearchIndex,
        store: WorkStore,
        config: SearchConfig,
        cache: ResultCache | None = None,
    ) -> None:
        self._index = index
        self.store = store
        self.config = config
        self.cache = cache

    def search(self, params: Mapping[str, Any], viewer: Viewer) -> SearchPage:
        """The search page.

        The search only runs when ``work_search`` params were submitted and
        the caller is not just editing the search form.
        """
        work_search = params.get("work_search") or {}
        options = dict(work_search)
        if params.get("page"):
            options["page"] = params["page"]
        query, warnings = normalize(
            work_search.get("query"),
            options,
            show_restricted=viewer.can_see_restricted,
        )
        title = messages.render("search_title")
        if not work_search or params.get("edit_search"):
            return SearchPage(query=query, warnings=warnings, title=title, searched=False)

        if query.query:
            title = messages.render("search_matching", {"query": query.query})
        results = self._index.search(compile_search_request(query))
        return self._page(query, warnings, title, results)

    def index(
        self,
        scope: ListingScope,
        params: Mapping[str, Any],
        viewer: Viewer,
        *,
        fandom_id: int | None = None,
    ) -> SearchPage:
        """An owner's works listing, or the latest works with no owner."""
        owner = scope.owner
        work_search = params.get("work_search") or {}
        context_ids: list[int] = []
        if fandom_id is not None or (isinstance(owner, CollectionOwner) and scope.tag is not None):
            fandom = self.store.find_tag(fandom_id) if fandom_id is not None else None
            tag = fandom or scope.tag
            if tag is not None and tag.id is not None:
                context_ids.append(tag.id)

        options = dict(work_search)
        options["page"] = params.get("page")
        query, warnings = normalize(
            work_search.get("query"),
            options,
            show_restricted=viewer.can_see_restricted,
            context_filter_ids=context_ids,
        )
        title = index_page_title(owner)

        if owner is None:
            works = self._latest_works()
            return SearchPage(query=query, warnings=warnings, title=title, works=works, total=len(works))

        if self.config.disable_filtering:
            works = self.store.list_without_filters(owner, options)
            return SearchPage(query=query, warnings=warnings, title=title, works=works, total=len(works))

        request = compile_search_request(query, owner=owner, faceted=True)
        cacheable = (
            self.cache is not None
            and not work_search
            and fandom_id is None
            and query.page <= self.config.pages_to_cache
        )
        if cacheable:
            subtag = scope.tag if scope.tag is not None and not isinstance(owner, TagOwner) else None
            visibility = "logged_in" if viewer.logged_in else "logged_out"
            key = f"{works_index_cache_key(owner, subtag)}_{visibility}_page{query.page}"
            results = self.cache.fetch(
                key,
                self.config.index_cache_ttl_minutes * 60,
                lambda: self._index.search(request),
            )
        else:
            results = self._index.search(request)
        return self._page(query, warnings, title, results)

    def collected(self, user_login: str, params: Mapping[str, Any], viewer: Viewer) -> SearchPage:
        """Works in collections a user takes part in."""
        work_search = params.get("work_search") or {}
        options = dict(work_search)
        options["page"] = params.get("page")
        query, warnings = normalize(
            work_search.get("query"),
            options,
            show_restricted=viewer.can_see_restricted,
        )
        user = self.store.find_user_by_login(user_login)
        if user is None:
            log.debug("Collected works requested for unknown user %s", user_login)
            return SearchPage(query=query, warnings=warnings, searched=False)

        title = messages.render("collected_works", {"name": user.login})
        if self.config.disable_filtering:
            works = self.store.collected_without_filters(user, options)
            return SearchPage(query=query, warnings=warnings, title=title, works=works, total=len(works))

        results = self._index.search(compile_search_request(query, owner=UserOwner(user), collected=True))
        return self._page(query, warnings, title, results)

    def _latest_works(self) -> list[Work]:
        if self.cache is None:
            return self.store.latest_works()
        return self.cache.fetch(
            LATEST_WORKS_CACHE_KEY,
            self.config.latest_cache_ttl_minutes * 60,
            self.store.latest_works,
        )

    @staticmethod
    def _page(
        query: WorkSearchQuery,
        warnings: Sequence[NormalizeWarning],
        title: str,
        results: SearchResults,
    ) -> SearchPage:
        return SearchPage(
            query=query,
            warnings=warnings,
            title=title,
            works=list(results.items),
            total=results.total,
            facets=results.facets,
        )
