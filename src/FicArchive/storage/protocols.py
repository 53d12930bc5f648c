"""Protocols for the collaborators that live outside this package.

The persistence store, the search index, the result cache, the invitation
service, the reindex queue and the admin activity log are all provided by
the hosting application.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, Sequence, TypeVar

from FicArchive.core.models import (
    Chapter,
    Collection,
    ExternalAuthor,
    Owner,
    Pseud,
    Tag,
    User,
    Work,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SearchResults:
    """One page of ranked results returned by the index.

    Attributes:
        items: Works on this page, ranked.
        total: Total number of matches across all pages.
        facets: Facet name -> {value: count}.
    """

    items: Sequence[Work]
    total: int = 0
    facets: Mapping[str, Mapping[str, int]] = field(default_factory=dict)


class WorkStore(Protocol):
    """Persistence store for works and the records around them.

    ``save_chapter``/``save_work``/``update_work`` raise
    ``StoreValidationError`` for per-field problems and ``ConflictError`` when
    the stored version moved on. ``destroy_work`` raises ``StorageError``.
    """

    def find_work(self, work_id: int) -> Work | None:
        raise NotImplementedError

    def find_user_by_login(self, login: str) -> User | None:
        raise NotImplementedError

    def find_pseud(self, pseud_id: int) -> Pseud | None:
        raise NotImplementedError

    def find_pseuds_by_byline(self, byline: str) -> list[Pseud]:
        raise NotImplementedError

    def find_tag(self, tag_id: int) -> Tag | None:
        raise NotImplementedError

    def find_tag_by_name(self, name: str) -> Tag | None:
        raise NotImplementedError

    def find_collection_by_name(self, name: str) -> Collection | None:
        raise NotImplementedError

    def save_chapter(self, work: Work, chapter: Chapter) -> Chapter:
        raise NotImplementedError

    def save_work(self, work: Work) -> Work:
        raise NotImplementedError

    def update_work(self, work: Work, attributes: Mapping[str, Any]) -> Work:
        raise NotImplementedError

    def destroy_work(self, work: Work) -> None:
        raise NotImplementedError

    def unposted_works(self, user: User, pseud: Pseud | None = None) -> list[Work]:
        raise NotImplementedError

    def latest_works(self) -> list[Work]:
        raise NotImplementedError

    def list_without_filters(self, owner: Owner, options: Mapping[str, Any]) -> list[Work]:
        raise NotImplementedError

    def collected_without_filters(self, user: User, options: Mapping[str, Any]) -> list[Work]:
        raise NotImplementedError


class SearchIndex(Protocol):
    """External full-text index."""

    def search(self, request: Mapping[str, Any]) -> SearchResults:
        raise NotImplementedError


class ResultCache(Protocol):
    """External key-value cache with per-entry TTL."""

    def fetch(self, key: str, ttl_seconds: int, compute: Callable[[], T]) -> T:
        """Return the cached value for ``key``, computing and storing it on a miss."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class InviteNotifier(Protocol):
    """Invites external (non-account) authors of imported works."""

    def find_or_invite(self, external_author: ExternalAuthor, inviter: User) -> None:
        raise NotImplementedError


class ReindexQueue(Protocol):
    def queue_works(self, work_ids: Sequence[int], *, priority: str) -> None:
        raise NotImplementedError


class ActivityLog(Protocol):
    """Audit log of admin actions on works."""

    def log_action(self, admin: User, work: Work, *, action: str, summary: str | None) -> None:
        raise NotImplementedError
