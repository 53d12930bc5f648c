"""Work search query normalizer.

Turns the free text typed into the search box, plus the structured params of
the advanced search form, into a typed `WorkSearchQuery`.

Rules
- `&gt;`/`&lt;` are read as `>`/`<` while extracting, and every `>`/`<` left
  in the residual text is escaped again afterwards.
- Countable terms are pulled out of the text in a fixed order:
  word / kudo / comment / bookmark / hit, e.g. `words: >5000`,
  `kudos_count=10-20`, `hits<300`. Count and sort extraction repeat until a
  pass removes nothing, so the residual never yields a further match.
- A structured param that is already set wins over the same term in text.
- `sort: kudos descending`, `sorted by >word_count` select the sort column
  and direction. Operators map `>` -> asc and `<` -> desc.
- Pairing shorthand (`m/m`, `f/f`, `f/m`, `m/f`) is wrapped in double quotes so
  the index matches it as a phrase.
- Whitespace-only residual text becomes None.

Malformed fragments are never an error; they stay in the residual text.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from FicArchive.core.query import (
    CountFilter,
    NormalizeWarning,
    SortColumn,
    SortDirection,
    WorkSearchQuery,
)
from FicArchive.utils.log import log

COUNTABLE_TERMS: tuple[str, ...] = ("word", "kudo", "comment", "bookmark", "hit")
CATEGORY_TOKENS: tuple[str, ...] = ("m/m", "f/f", "f/m", "m/f")
PASSTHROUGH_PARAMS = frozenset(
    {
        "title",
        "creators",
        "revised_at",
        "complete",
        "crossover",
        "single_chapter",
        "language_id",
        "fandom_names",
        "rating_ids",
        "warning_ids",
        "category_ids",
        "character_names",
        "relationship_names",
        "freeform_names",
        "other_tag_names",
    }
)

_SORT_RE = re.compile(
    r"sort(?:ed)?\s*(?:by)?\s*:?\s*(<|>|=|:)\s*(\w+)\s*(ascending|descending)?",
    re.IGNORECASE,
)
_COUNT_SUFFIX_RE = re.compile(r"\s*_?count", re.IGNORECASE)
_LEADING_EQ_RE = re.compile(r"^[:=]")
_BLANK_RE = re.compile(r"^\s*$")
_QUOTE = "(?:\"|')?"


def _countable_pattern(term: str) -> re.Pattern[str]:
    return re.compile(
        rf"{term}s?\s*(?:_?count)?\s*:?\s*((?:<|>|=|:)\s*\d+(?:-\d+)?)",
        re.IGNORECASE,
    )


_COUNTABLE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (term, _countable_pattern(term)) for term in COUNTABLE_TERMS
)
_CATEGORY_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = tuple(
    (token, re.compile(f"{_QUOTE}{re.escape(token)}{_QUOTE}")) for token in CATEGORY_TOKENS
)


def countable_field(term: str) -> str:
    """Map a countable search term to its query field name.

    ``word`` keeps its singular form; every other term is pluralized. ``hit``
    is irregular: its field is ``hits`` with no ``_count`` suffix.
    """
    if term == "hit":
        return "hits"
    plural = term if term == "word" else f"{term}s"
    return f"{plural}_count"


def singularize(word: str) -> str:
    """Cheap singular form for sort field names (``kudos`` -> ``kudo``)."""
    lowered = word.lower()
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lowered.endswith("ss"):
        return word
    if lowered.endswith("s"):
        return word[:-1]
    return word


def resolve_sort_column(name: str) -> SortColumn | None:
    """Resolve a loose sort field name to a sortable column.

    The name is matched case-insensitively as a substring of each column
    label; columns are tried in declaration order and the first match wins.
    """
    needle = re.compile(re.escape(name), re.IGNORECASE)
    for column in SortColumn:
        if needle.search(column.label):
            return column
    return None


def sort_direction(token: str | None) -> SortDirection | None:
    """Map a sort direction token (operator or word) to a direction."""
    if token is None:
        return None
    lowered = token.lower()
    if lowered in (">", "ascending"):
        return SortDirection.ASC
    if lowered in ("<", "descending"):
        return SortDirection.DESC
    return None


def normalize(
    raw_query: str | None,
    params: Mapping[str, Any] | None = None,
    *,
    show_restricted: bool = False,
    context_filter_ids: Iterable[Any] = (),
) -> tuple[WorkSearchQuery, list[NormalizeWarning]]:
    """Normalize raw search text and structured params.

    Args:
        raw_query: Free text from the search box.
        params: Structured params from the search form. Never mutated.
        show_restricted: Whether the viewer may see restricted works.
        context_filter_ids: Tag/fandom ids implied by the page being viewed.

    Returns:
        The typed query and any warnings produced on the way.
    """
    params = params or {}
    warnings: list[NormalizeWarning] = []

    counts: dict[str, CountFilter | None] = {}
    for term in COUNTABLE_TERMS:
        field_name = countable_field(term)
        counts[field_name] = _structured_count(params, field_name, warnings)

    sort_column = _structured_sort_column(params.get("sort_column"), warnings)
    direction = _structured_sort_direction(params.get("sort_direction"), warnings)
    categories: list[str] = []
    text: str | None = raw_query

    if text is not None and text != "":
        text = text.replace("&gt;", ">").replace("&lt;", "<")

        # Removing one match can join the text around it into a new match,
        # so extraction repeats until a pass removes nothing. The text only
        # shrinks, which bounds the loop.
        extracted = True
        while extracted:
            extracted = False
            for term, pattern in _COUNTABLE_PATTERNS:
                matches = list(pattern.finditer(text))
                if not matches:
                    continue
                extracted = True
                text = pattern.sub("", text)
                field_name = countable_field(term)
                value = _LEADING_EQ_RE.sub("", matches[-1].group(1))
                if _is_present(params.get(field_name)):
                    _warn_once(
                        warnings,
                        "structured_param_wins",
                        f"{field_name} from the search text was ignored; the form value is used",
                    )
                    continue
                counts[field_name] = CountFilter.parse(value)

            sort_matches = list(_SORT_RE.finditer(text))
            if sort_matches:
                extracted = True
                text = _SORT_RE.sub("", text)
                match = sort_matches[-1]
                sort_by = singularize(_COUNT_SUFFIX_RE.sub("", match.group(2)))
                resolved = resolve_sort_column(sort_by)
                if resolved is None:
                    warnings.append(
                        NormalizeWarning("unknown_sort_field", f"Cannot sort by '{match.group(2)}'")
                    )
                else:
                    sort_column = resolved
                resolved_direction = sort_direction(match.group(3) or match.group(1))
                if resolved_direction is not None:
                    direction = resolved_direction

        for token, pattern in _CATEGORY_PATTERNS:
            text, replaced = pattern.subn(f'"{token}"', text)
            if replaced and token not in categories:
                categories.append(token)

        text = text.replace(">", "&gt;").replace("<", "&lt;")

        if _BLANK_RE.match(text):
            text = None
    else:
        text = None

    query = WorkSearchQuery(
        query=text,
        sort_column=sort_column,
        sort_direction=direction,
        categories=tuple(categories),
        show_restricted=show_restricted,
        page=_page(params.get("page"), warnings),
        filter_ids=_merge_filter_ids(params.get("filter_ids"), context_filter_ids, warnings),
        extra={key: value for key, value in params.items() if key in PASSTHROUGH_PARAMS},
        **counts,
    )
    log.debug("Normalized search query=%r -> %s (warnings=%d)", raw_query, query, len(warnings))
    return query, warnings


def _warn_once(warnings: list[NormalizeWarning], code: str, message: str) -> None:
    warning = NormalizeWarning(code, message)
    if warning not in warnings:
        warnings.append(warning)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _structured_count(
    params: Mapping[str, Any], field_name: str, warnings: list[NormalizeWarning]
) -> CountFilter | None:
    value = params.get(field_name)
    if not _is_present(value):
        return None
    if isinstance(value, CountFilter):
        return value
    parsed = CountFilter.parse(str(value))
    if parsed is None:
        warnings.append(NormalizeWarning("invalid_count", f"{field_name} value '{value}' is not a count"))
    return parsed


def _structured_sort_column(value: Any, warnings: list[NormalizeWarning]) -> SortColumn | None:
    if not _is_present(value):
        return None
    try:
        return SortColumn(value)
    except ValueError:
        warnings.append(NormalizeWarning("unknown_sort_field", f"Cannot sort by '{value}'"))
        return None


def _structured_sort_direction(value: Any, warnings: list[NormalizeWarning]) -> SortDirection | None:
    if not _is_present(value):
        return None
    try:
        return SortDirection(str(value).lower())
    except ValueError:
        warnings.append(NormalizeWarning("invalid_sort_direction", f"Unknown sort direction '{value}'"))
        return None


def _page(value: Any, warnings: list[NormalizeWarning]) -> int:
    if not _is_present(value):
        return 1
    try:
        page = int(str(value).strip())
    except ValueError:
        page = 0
    if page < 1:
        warnings.append(NormalizeWarning("invalid_page", f"Page '{value}' is not a positive number"))
        return 1
    return page


def _merge_filter_ids(
    requested: Any, context_ids: Iterable[Any], warnings: list[NormalizeWarning]
) -> tuple[int, ...]:
    if requested is None:
        requested = ()
    elif isinstance(requested, (str, int)):
        requested = (requested,)

    merged: list[int] = []
    seen: set[int] = set()
    for raw in (*requested, *context_ids):
        try:
            tag_id = int(raw)
        except (TypeError, ValueError):
            warnings.append(NormalizeWarning("invalid_filter_id", f"Ignoring filter id '{raw}'"))
            continue
        if tag_id in seen:
            continue
        seen.add(tag_id)
        merged.append(tag_id)
    return tuple(merged)
