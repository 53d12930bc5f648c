from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any, Literal, Mapping, Optional, Sequence

CountOp = Literal[">", "<", "=", "range"]

_COUNT_VALUE_RE = re.compile(r"^\s*([<>=:])?\s*(\d+)(?:\s*-\s*(\d+))?\s*$")


@dataclass(frozen=True, slots=True)
class CountFilter:
    """Comparator over a numeric count field.

    Attributes:
        op: One of ``>``, ``<``, ``=`` or ``range``.
        value: Compared value, or the lower bound of a range.
        upper: Upper bound when ``op == "range"``.
    """

    op: CountOp
    value: int
    upper: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> CountFilter | None:
        """Parse ``[<>=:]? int [- int]?``; return None on malformed input."""
        match = _COUNT_VALUE_RE.match(str(text))
        if match is None:
            return None
        op, low, high = match.groups()
        if high is not None:
            return cls(op="range", value=int(low), upper=int(high))
        if op in (None, ":", "="):
            return cls(op="=", value=int(low))
        return cls(op=op, value=int(low))  # type: ignore[arg-type]

    def to_text(self) -> str:
        if self.op == "range":
            return f"{self.value}-{self.upper}"
        if self.op == "=":
            return str(self.value)
        return f"{self.op}{self.value}"


class SortColumn(str, Enum):
    """Sortable columns, in the order used to resolve a sort field name."""

    AUTHOR = "authors_to_sort_on"
    TITLE = "title_to_sort_on"
    CREATED_AT = "created_at"
    REVISED_AT = "revised_at"
    WORD_COUNT = "word_count"
    HITS = "hits"
    KUDOS = "kudos_count"
    COMMENTS = "comments_count"
    BOOKMARKS = "bookmarks_count"

    @property
    def label(self) -> str:
        return _SORT_LABELS[self]


_SORT_LABELS: Mapping[SortColumn, str] = {
    SortColumn.AUTHOR: "Author",
    SortColumn.TITLE: "Title",
    SortColumn.CREATED_AT: "Date Posted",
    SortColumn.REVISED_AT: "Date Updated",
    SortColumn.WORD_COUNT: "Word Count",
    SortColumn.HITS: "Hits",
    SortColumn.KUDOS: "Kudos",
    SortColumn.COMMENTS: "Comments",
    SortColumn.BOOKMARKS: "Bookmarks",
}


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True, slots=True)
class NormalizeWarning:
    """Non-fatal note produced while normalizing a search request."""

    code: str
    message: str


@dataclass(frozen=True, slots=True)
class WorkSearchQuery:
    """Canonical, typed work search request.

    Built fresh for each request by the normalizer and handed to the search
    index after compilation.

    Attributes:
        query: Residual free text, None when nothing is left to match.
        word_count: Word count filter.
        kudos_count: Kudos count filter.
        comments_count: Comment count filter.
        bookmarks_count: Bookmark count filter.
        hits: Hit count filter.
        sort_column: Sort column, None for index default ordering.
        sort_direction: Sort direction, None for the column's default.
        categories: Pairing category tokens found in the text, e.g. ``m/m``.
        show_restricted: Whether restricted works may appear.
        page: 1-based page number.
        filter_ids: Tag/fandom ids the results are scoped to.
        extra: Other recognized structured params, passed through verbatim.
    """

    query: Optional[str] = None
    word_count: Optional[CountFilter] = None
    kudos_count: Optional[CountFilter] = None
    comments_count: Optional[CountFilter] = None
    bookmarks_count: Optional[CountFilter] = None
    hits: Optional[CountFilter] = None
    sort_column: Optional[SortColumn] = None
    sort_direction: Optional[SortDirection] = None
    categories: Sequence[str] = ()
    show_restricted: bool = False
    page: int = 1
    filter_ids: Sequence[int] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @property
    def count_filters(self) -> dict[str, CountFilter]:
        """Return the count filters that are set, keyed by field name."""
        out: dict[str, CountFilter] = {}
        for name in ("word_count", "kudos_count", "comments_count", "bookmarks_count", "hits"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out
