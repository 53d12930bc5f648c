"""Tests for bulk edit and bulk delete."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.core.errors import StorageError, ValidationError
from FicArchive.core.models import Pseud, User, Work
from FicArchive.storage.memory import InMemoryWorkStore
from FicArchive.workflow.bulk import BulkEditor, scope_owned_works, sparse_patch
from FicArchive.workflow.context import RequestContext, Viewer
from FicArchive.workflow.outcome import Redirected, Rendered

ALICE = User(id=1, login="alice", pseuds=(Pseud(id=10, name="alice", user_id=1, user_login="alice", is_default=True),))
BOB = User(id=2, login="bob", pseuds=(Pseud(id=20, name="bob", user_id=2, user_login="bob", is_default=True),))


def _no_restricted_broken(work: Work) -> list[ValidationError]:
    if work.title == "Broken" and work.restricted:
        return [ValidationError("restricted", "cannot be restricted right now")]
    return []


class _StickyStore(InMemoryWorkStore):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.undeletable: set[str] = set()

    def destroy_work(self, work: Work) -> None:
        if work.title in self.undeletable:
            raise StorageError(f"{work.title} is locked")
        super().destroy_work(work)


class TestSparsePatch(unittest.TestCase):
    def test_blank_and_zero_are_no_ops(self) -> None:
        patch = sparse_patch(
            {
                "title": "",
                "restricted": "0",
                "fandom_string": "Star Trek",
                "language_id": "  ",
                "anon_commenting_disabled": "allow_anon",
                "moderated_commenting_enabled": "not_moderated",
                "summary": "not editable in bulk",
            }
        )

        self.assertEqual(
            patch,
            {
                "fandom_string": "Star Trek",
                "anon_commenting_disabled": False,
                "moderated_commenting_enabled": False,
            },
        )

    def test_flags_are_coerced(self) -> None:
        self.assertEqual(sparse_patch({"restricted": "true"}), {"restricted": True})
        self.assertEqual(sparse_patch({"anon_commenting_disabled": "1"}), {"anon_commenting_disabled": True})


class TestBulkEditor(unittest.TestCase):
    def setUp(self) -> None:
        self.store = _StickyStore(users=[ALICE, BOB], validators=[_no_restricted_broken])
        self.good = self.store.save_work(Work(title="Good", pseuds=[ALICE.pseuds[0]], posted=True))
        self.broken = self.store.save_work(Work(title="Broken", pseuds=[ALICE.pseuds[0]], posted=True))
        self.foreign = self.store.save_work(Work(title="Bob's", pseuds=[BOB.pseuds[0]], posted=True))
        self.editor = BulkEditor(self.store)
        self.ctx = RequestContext(viewer=Viewer(user=ALICE))

    def test_scope_dedups_and_checks_ownership(self) -> None:
        works = scope_owned_works(
            self.store, ALICE, [self.good.id, str(self.good.id), self.foreign.id, "nope", 999]
        )

        self.assertEqual([(i, w.id) for i, w in works], [(0, self.good.id)])

    def test_update_multiple_isolates_failures(self) -> None:
        outcome = self.editor.update_multiple(
            [self.good.id, self.broken.id],
            {"title": "", "restricted": "true"},
            self.ctx,
        )

        self.assertIsInstance(outcome, Redirected)
        batch = outcome.batch
        self.assertEqual([w.title for w in batch.succeeded], ["Good"])
        self.assertEqual(len(batch.failures), 1)
        failure = batch.failures[0]
        self.assertEqual((failure.index, failure.key, failure.kind), (1, "Broken", "save"))
        self.assertIn("cannot be restricted", failure.reason)
        self.assertEqual(outcome.notices[0].key, "bulk_edit_failed")

        good = self.store.find_work(self.good.id)
        self.assertEqual(good.title, "Good")
        self.assertTrue(good.restricted)
        self.assertFalse(self.store.find_work(self.broken.id).restricted)

    def test_update_multiple_skips_foreign_works(self) -> None:
        outcome = self.editor.update_multiple([self.foreign.id, self.good.id], {"restricted": "1"}, self.ctx)

        self.assertEqual([w.id for w in outcome.batch.succeeded], [self.good.id])
        self.assertEqual(outcome.notices[0].key, "bulk_edit_done")
        self.assertFalse(self.store.find_work(self.foreign.id).restricted)

    def test_failure_index_matches_submitted_position(self) -> None:
        outcome = self.editor.update_multiple(
            [self.foreign.id, self.good.id, self.broken.id], {"restricted": "1"}, self.ctx
        )

        self.assertEqual([(f.index, f.key) for f in outcome.batch.failures], [(2, "Broken")])

        self.store.undeletable.add("Good")
        deleted = self.editor.delete_multiple(["junk", self.good.id], self.ctx)
        self.assertEqual([(f.index, f.key) for f in deleted.batch.failures], [(1, "Good")])

    def test_bad_language_id_never_aborts_the_batch(self) -> None:
        self.assertEqual(sparse_patch({"language_id": "abc"}), {})
        self.assertEqual(sparse_patch({"language_id": " 7 "}), {"language_id": 7})

        outcome = self.editor.update_multiple(
            [self.good.id, self.broken.id], {"language_id": "abc", "fandom_string": "Dune"}, self.ctx
        )

        self.assertTrue(outcome.batch.ok)
        self.assertEqual(len(outcome.batch.succeeded), 2)
        self.assertIsNone(self.store.find_work(self.good.id).language_id)

    def test_value_error_is_an_item_failure(self) -> None:
        update_work = self.store.update_work

        def reject_broken(work, attributes):
            if work.title == "Broken":
                raise ValueError("invalid literal for int() with base 10: 'abc'")
            return update_work(work, attributes)

        with patch.object(self.store, "update_work", side_effect=reject_broken):
            outcome = self.editor.update_multiple([self.good.id, self.broken.id], {"fandom_string": "Dune"}, self.ctx)

        self.assertEqual([w.title for w in outcome.batch.succeeded], ["Good"])
        self.assertEqual([(f.index, f.kind) for f in outcome.batch.failures], [(1, "save")])

    def test_edit_multiple_routes_by_commit(self) -> None:
        ids = [self.good.id, self.broken.id]

        orphan = self.editor.edit_multiple(ids, "Orphan", self.ctx)
        delete = self.editor.edit_multiple(ids, "Delete", self.ctx)
        edit = self.editor.edit_multiple(ids, None, self.ctx)

        self.assertIsInstance(orphan, Redirected)
        self.assertEqual(orphan.target.params, {"work_ids": ids})
        self.assertIsInstance(delete, Rendered)
        self.assertEqual(delete.view, "confirm_delete_multiple")
        self.assertEqual(edit.view, "edit_multiple")

    def test_delete_multiple_reports_both_sides(self) -> None:
        self.store.undeletable.add("Broken")

        outcome = self.editor.delete_multiple([self.good.id, self.broken.id, self.foreign.id], self.ctx)

        self.assertEqual(outcome.batch.succeeded, ["Good"])
        self.assertEqual([f.key for f in outcome.batch.failures], ["Broken"])
        self.assertEqual([n.key for n in outcome.notices], ["works_deleted", "bulk_delete_failed"])
        self.assertIsNone(self.store.find_work(self.good.id))
        self.assertIsNotNone(self.store.find_work(self.foreign.id))


if __name__ == "__main__":
    unittest.main()
