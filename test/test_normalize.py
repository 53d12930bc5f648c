"""Tests for search query normalization."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.core.query import CountFilter, SortColumn, SortDirection
from FicArchive.search.normalize import countable_field, normalize, resolve_sort_column


class TestNormalize(unittest.TestCase):
    def test_count_and_sort_are_extracted(self) -> None:
        query, warnings = normalize("word_count:>5000 sort:kudos descending")

        self.assertEqual(query.word_count, CountFilter(op=">", value=5000))
        self.assertEqual(query.sort_column, SortColumn.KUDOS)
        self.assertEqual(query.sort_direction, SortDirection.DESC)
        self.assertIsNone(query.query)
        self.assertEqual(warnings, [])

    def test_html_escaped_operators_are_read(self) -> None:
        query, _ = normalize("words: &gt;1000 kudos &lt; 20 dragons")

        self.assertEqual(query.word_count, CountFilter(op=">", value=1000))
        self.assertEqual(query.kudos_count, CountFilter(op="<", value=20))
        self.assertEqual(query.query.strip(), "dragons")

    def test_leftover_operators_are_escaped_again(self) -> None:
        query, _ = normalize("a > b")

        self.assertEqual(query.query, "a &gt; b")

    def test_range_and_equality(self) -> None:
        query, _ = normalize("comments:10-20 bookmarks=7")

        self.assertEqual(query.comments_count, CountFilter(op="range", value=10, upper=20))
        self.assertEqual(query.bookmarks_count, CountFilter(op="=", value=7))

    def test_hits_field_name(self) -> None:
        query, _ = normalize("hits:>300 fluff")

        self.assertEqual(query.hits, CountFilter(op=">", value=300))
        self.assertEqual(countable_field("hit"), "hits")
        self.assertEqual(countable_field("kudo"), "kudos_count")
        self.assertEqual(countable_field("word"), "word_count")

    def test_last_repeated_term_wins(self) -> None:
        query, _ = normalize("words:>10 words:<50")

        self.assertEqual(query.word_count, CountFilter(op="<", value=50))
        self.assertIsNone(query.query)

    def test_category_is_quoted(self) -> None:
        query, _ = normalize("m/m hurt/comfort")

        self.assertIn('"m/m"', query.query)
        self.assertEqual(tuple(query.categories), ("m/m",))

    def test_already_quoted_category_is_not_double_quoted(self) -> None:
        query, _ = normalize("'f/f' romance")

        self.assertEqual(query.query, '"f/f" romance')

    def test_normalizing_the_residual_again_changes_nothing(self) -> None:
        samples = [
            "word_count:>5000 sort:kudos descending",
            "m/m sorted by >word_count angst",
            "words: &gt;1000 f/m hits=4-9 a < b",
            "kudos:maybe not a number",
            "wordkudos:>1s:>5",
            "wordsort:title:>5 dragons",
            "",
        ]
        for raw in samples:
            with self.subTest(raw=raw):
                first, _ = normalize(raw)
                second, _ = normalize(first.query)
                self.assertEqual(second.query, first.query)
                self.assertEqual(second.count_filters, {})
                self.assertIsNone(second.sort_column)

    def test_terms_joined_by_a_removal_are_extracted(self) -> None:
        query, _ = normalize("wordkudos:>1s:>5")

        self.assertEqual(query.kudos_count, CountFilter(op=">", value=1))
        self.assertEqual(query.word_count, CountFilter(op=">", value=5))
        self.assertIsNone(query.query)

        joined_by_sort, _ = normalize("wordsort:title:>5 dragons")
        self.assertEqual(joined_by_sort.sort_column, SortColumn.TITLE)
        self.assertEqual(joined_by_sort.word_count, CountFilter(op=">", value=5))
        self.assertEqual(joined_by_sort.query.strip(), "dragons")

    def test_structured_param_wins_over_text(self) -> None:
        params = {"word_count": "<100"}

        query, warnings = normalize("words:>5000 drabble", params)

        self.assertEqual(query.word_count, CountFilter(op="<", value=100))
        self.assertEqual([w.code for w in warnings], ["structured_param_wins"])
        self.assertEqual(params, {"word_count": "<100"})

    def test_unknown_sort_field_keeps_column(self) -> None:
        query, warnings = normalize("sort:>sparkles", {"sort_column": "title_to_sort_on"})

        self.assertEqual(query.sort_column, SortColumn.TITLE)
        self.assertEqual(query.sort_direction, SortDirection.ASC)
        self.assertIn("unknown_sort_field", [w.code for w in warnings])

    def test_colon_sort_keeps_direction(self) -> None:
        query, _ = normalize("sort: hits", {"sort_direction": "desc"})

        self.assertEqual(query.sort_column, SortColumn.HITS)
        self.assertEqual(query.sort_direction, SortDirection.DESC)

    def test_sort_resolution_uses_declaration_order(self) -> None:
        self.assertEqual(resolve_sort_column("date"), SortColumn.CREATED_AT)
        self.assertEqual(resolve_sort_column("word"), SortColumn.WORD_COUNT)
        self.assertIsNone(resolve_sort_column("sparkles"))

    def test_malformed_text_is_left_alone(self) -> None:
        query, warnings = normalize("kudos:lots of them")

        self.assertIsNone(query.kudos_count)
        self.assertEqual(query.query, "kudos:lots of them")
        self.assertEqual(warnings, [])

    def test_page_and_filter_ids(self) -> None:
        query, warnings = normalize(
            None,
            {"page": "abc", "filter_ids": ["3", "3", "x"]},
            show_restricted=True,
            context_filter_ids=[7, 3],
        )

        self.assertEqual(query.page, 1)
        self.assertEqual(tuple(query.filter_ids), (3, 7))
        self.assertTrue(query.show_restricted)
        self.assertEqual(sorted(w.code for w in warnings), ["invalid_filter_id", "invalid_page"])

    def test_passthrough_params(self) -> None:
        query, _ = normalize("x", {"fandom_names": "Star Trek", "bogus": "1"})

        self.assertEqual(dict(query.extra), {"fandom_names": "Star Trek"})


if __name__ == "__main__":
    unittest.main()
