"""Tests for the work posting state machine."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from FicArchive.core.errors import InvalidTransitionError
from FicArchive.core.models import Work
from FicArchive.workflow.states import WorkEvent, WorkState


class TestWorkState(unittest.TestCase):
    def test_state_of_work(self) -> None:
        self.assertEqual(WorkState.of(Work(title="new")), WorkState.UNPOSTED)
        self.assertEqual(WorkState.of(Work(title="draft", id=4)), WorkState.PREVIEWED)
        self.assertEqual(WorkState.of(Work(title="live", id=4, posted=True)), WorkState.POSTED)

    def test_posting_path(self) -> None:
        state = WorkState.UNPOSTED.transition(WorkEvent.PREVIEW)
        self.assertEqual(state, WorkState.PREVIEWED)
        state = state.transition(WorkEvent.POST)
        self.assertEqual(state, WorkState.POSTED)
        self.assertEqual(state.transition(WorkEvent.UPDATE), WorkState.POSTED)
        self.assertEqual(state.transition(WorkEvent.DELETE), WorkState.DELETED)

    def test_posted_never_returns_to_draft(self) -> None:
        for event in WorkEvent:
            with self.subTest(event=event):
                self.assertNotEqual(WorkState.POSTED.transition(event), WorkState.PREVIEWED)

    def test_invalid_transitions(self) -> None:
        with self.assertRaises(InvalidTransitionError):
            WorkState.UNPOSTED.transition(WorkEvent.DELETE)
        with self.assertRaises(InvalidTransitionError):
            WorkState.UNPOSTED.transition(WorkEvent.UPDATE)
        for event in WorkEvent:
            with self.subTest(event=event), self.assertRaises(InvalidTransitionError):
                WorkState.DELETED.transition(event)


if __name__ == "__main__":
    unittest.main()
