"""Work search layer for FicArchive.

Query normalization, compilation to index requests, and the listing service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from FicArchive.search.compile import compile_search_request
from FicArchive.search.normalize import normalize
from FicArchive.search.service import (
    ListingScope,
    SearchPage,
    WorkSearchService,
    index_page_title,
    request_reindex,
    resolve_owner,
)

if TYPE_CHECKING:
    from FicArchive.config import AppConfig
    from FicArchive.storage.protocols import ResultCache, SearchIndex, WorkStore


def create_search_service(
    config: AppConfig,
    index: SearchIndex,
    store: WorkStore,
    cache: ResultCache | None = None,
) -> WorkSearchService:
    """Create the search service from configuration.

    Args:
        config: Application configuration containing search settings.
        index: External full-text index.
        store: Persistence store, used for unfiltered listings.
        cache: Optional result cache.

    Returns:
        Configured WorkSearchService instance.
    """
    return WorkSearchService(index=index, store=store, config=config.search, cache=cache)


__all__ = [
    "ListingScope",
    "SearchPage",
    "WorkSearchService",
    "compile_search_request",
    "create_search_service",
    "index_page_title",
    "normalize",
    "request_reindex",
    "resolve_owner",
]
