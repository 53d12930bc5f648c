"""Search listing configuration (result page caching)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from FicArchive.config.common import check_positive, expect_bool, expect_int, get_section, require


@dataclass(frozen=True, slots=True)
class SearchConfig:
    """Store validated listing and cache settings.

    Attributes:
        pages_to_cache: Only listing pages 1..N are read through the cache.
        index_cache_ttl_minutes: TTL of cached owner listings.
        latest_cache_ttl_minutes: TTL of the cached latest-works list.
        disable_filtering: Serve owner listings straight from the store,
            bypassing the index.
    """

    pages_to_cache: int
    index_cache_ttl_minutes: int
    latest_cache_ttl_minutes: int
    disable_filtering: bool


def load_search(raw: Mapping[str, Any]) -> SearchConfig:
    section = get_section(raw, "search", required=True)

    def get_int(field: str) -> int:
        key = f"search.{field}"
        return expect_int(require(section, field, key), key)

    return SearchConfig(
        pages_to_cache=get_int("pages_to_cache"),
        index_cache_ttl_minutes=get_int("index_cache_ttl_minutes"),
        latest_cache_ttl_minutes=get_int("latest_cache_ttl_minutes"),
        disable_filtering=expect_bool(
            section.get("disable_filtering", False), "search.disable_filtering"
        ),
    )


def check_search(config: SearchConfig) -> None:
    if config.pages_to_cache < 0:
        raise ValueError("search.pages_to_cache must be 0 or positive")
    check_positive(config.index_cache_ttl_minutes, "search.index_cache_ttl_minutes")
    check_positive(config.latest_cache_ttl_minutes, "search.latest_cache_ttl_minutes")
