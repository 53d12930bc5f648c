"""Storage layer for FicArchive.

Protocols for the collaborators provided by the hosting application and an
in-process store used by the CLI and the tests.
"""

from __future__ import annotations

from FicArchive.storage.memory import InMemoryWorkStore
from FicArchive.storage.protocols import (
    ActivityLog,
    InviteNotifier,
    ReindexQueue,
    ResultCache,
    SearchIndex,
    SearchResults,
    WorkStore,
)

__all__ = [
    "ActivityLog",
    "InMemoryWorkStore",
    "InviteNotifier",
    "ReindexQueue",
    "ResultCache",
    "SearchIndex",
    "SearchResults",
    "WorkStore",
]
