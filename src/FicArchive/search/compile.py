"""Compiler from `WorkSearchQuery` to the external index request."""

from __future__ import annotations

from typing import Any

from FicArchive.core.models import Owner
from FicArchive.core.query import WorkSearchQuery


def compile_search_request(
    query: WorkSearchQuery,
    *,
    owner: Owner | None = None,
    faceted: bool = False,
    collected: bool = False,
) -> dict[str, Any]:
    """Compile a normalized query into the index request mapping.

    Args:
        query: Normalized query.
        owner: Listing owner the results are scoped to, if any.
        faceted: Whether the index should return facet counts.
        collected: Whether to list works collected by the owner rather than
            works created by it.

    Returns:
        Mapping with ``query``, ``filters``, ``sort``, ``page`` and scope keys.
        Keys without a value are omitted.
    """
    request: dict[str, Any] = {
        "page": query.page,
        "show_restricted": query.show_restricted,
    }
    if query.query is not None:
        request["query"] = query.query

    filters: dict[str, Any] = {
        name: _count_clause(count.op, count.value, count.upper)
        for name, count in query.count_filters.items()
    }
    if query.filter_ids:
        filters["filter_ids"] = list(query.filter_ids)
    if query.categories:
        filters["categories"] = list(query.categories)
    for key, value in query.extra.items():
        filters[key] = value
    if filters:
        request["filters"] = filters

    if query.sort_column is not None:
        sort: dict[str, str] = {"column": query.sort_column.value}
        if query.sort_direction is not None:
            sort["direction"] = query.sort_direction.value
        request["sort"] = sort

    if owner is not None:
        request["parent"] = {"kind": owner.kind, "name": owner.display_name}
        if collected:
            request["collected"] = True
    if faceted:
        request["faceted"] = True
    return request


def _count_clause(op: str, value: int, upper: int | None) -> dict[str, int]:
    if op == "range":
        return {"gte": value, "lte": upper if upper is not None else value}
    if op == ">":
        return {"gt": value}
    if op == "<":
        return {"lt": value}
    return {"eq": value}
