"""Bulk edit, delete and orphan over a user's own works.

Every work is handled independently. One failure is recorded against the
work's title and never stops its siblings.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from FicArchive.core.errors import ConflictError, StorageError, StoreValidationError
from FicArchive.core.models import FLAG_FIELDS, TAG_STRING_FIELDS, User, Work, coerce_flag
from FicArchive.storage.protocols import WorkStore
from FicArchive.utils.log import log
from FicArchive.workflow.context import RequestContext
from FicArchive.workflow.outcome import (
    BatchFailure,
    BatchResult,
    Outcome,
    Redirected,
    Rendered,
    Route,
    error_notice,
    notice,
)

BULK_FIELDS = TAG_STRING_FIELDS | frozenset(
    {"restricted", "anon_commenting_disabled", "moderated_commenting_enabled", "language_id"}
)

# Values that force a flag off instead of leaving it untouched.
CLEAR_SENTINELS: Mapping[str, str] = {
    "anon_commenting_disabled": "allow_anon",
    "moderated_commenting_enabled": "not_moderated",
}


def sparse_patch(params: Mapping[str, Any]) -> dict[str, Any]:
    """Build the attribute patch for a bulk edit.

    Blank and ``"0"`` values mean "leave as is" and are dropped. The comment
    toggles accept a sentinel that clears the flag on every work.
    """
    patch: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        text = str(value).strip()
        if text in ("", "0"):
            continue
        if key not in BULK_FIELDS:
            log.debug("Bulk edit ignores field %s", key)
            continue
        if CLEAR_SENTINELS.get(key) == text:
            patch[key] = False
        elif key in FLAG_FIELDS:
            patch[key] = coerce_flag(text)
        elif key == "language_id":
            if not text.isdigit():
                log.warning("Bulk edit ignores language_id %r", value)
                continue
            patch[key] = int(text)
        else:
            patch[key] = value
    return patch


def scope_owned_works(store: WorkStore, user: User, work_ids: Iterable[Any]) -> list[tuple[int, Work]]:
    """Load each distinct id and keep only works ``user`` owns.

    Returns:
        ``(input_index, work)`` pairs; the index is the id's position in
        ``work_ids``.
    """
    works: list[tuple[int, Work]] = []
    seen: set[int] = set()
    for index, raw_id in enumerate(work_ids):
        try:
            work_id = int(raw_id)
        except (TypeError, ValueError):
            log.warning("Bulk request skipped bad work id %r", raw_id)
            continue
        if work_id in seen:
            continue
        seen.add(work_id)
        work = store.find_work(work_id)
        if work is None or not work.is_owned_by(user):
            log.warning("Bulk request skipped work %s not owned by %s", work_id, user.login)
            continue
        works.append((index, work))
    return works


class BulkEditor:
    """Multi-work operations for the works owner."""

    def __init__(self, store: WorkStore) -> None:
        self.store = store

    def edit_multiple(self, work_ids: Iterable[Any], commit: str | None, ctx: RequestContext) -> Outcome:
        user = ctx.require_user()
        works = [work for _, work in scope_owned_works(self.store, user, work_ids)]
        if commit == "Orphan":
            return Redirected(Route("orphan_new", {"work_ids": [work.id for work in works]}))
        if commit == "Delete":
            return Rendered("confirm_delete_multiple", data={"works": works})
        return Rendered("edit_multiple", data={"works": works})

    def update_multiple(
        self,
        work_ids: Iterable[Any],
        params: Mapping[str, Any],
        ctx: RequestContext,
    ) -> Redirected:
        """Apply one sparse patch to every owned work.

        Returns:
            A redirect back to the selection page carrying the batch result.
        """
        user = ctx.require_user()
        patch = sparse_patch(params)
        result: BatchResult[Work] = BatchResult()
        for index, work in scope_owned_works(self.store, user, work_ids):
            try:
                result.succeeded.append(self.store.update_work(work, patch))
            except ValueError as error:
                log.warning("Bulk edit rejected value: work=%s error=%s", work.id, error)
                result.failures.append(BatchFailure(index, work.title, "save", str(error)))
            except StoreValidationError as error:
                log.warning("Bulk edit failed: work=%s error=%s", work.id, error)
                reason = "; ".join(e.reason for e in error.errors) or str(error)
                result.failures.append(BatchFailure(index, work.title, "save", reason))
            except ConflictError as error:
                log.warning("Bulk edit conflict: work=%s error=%s", work.id, error)
                result.failures.append(BatchFailure(index, work.title, "conflict", str(error)))

        target = Route("user_works_show_multiple", {"login": user.login})
        if result.failures:
            errors = ", ".join(
                error_notice("bulk_edit_item_failed", title=f.key, error=f.reason).text for f in result.failures
            )
            notices = [error_notice("bulk_edit_failed", errors=errors)]
        else:
            notices = [notice("bulk_edit_done")]
        return Redirected(target, notices=notices, batch=result)

    def delete_multiple(self, work_ids: Iterable[Any], ctx: RequestContext) -> Redirected:
        user = ctx.require_user()
        result: BatchResult[str] = BatchResult()
        for index, work in scope_owned_works(self.store, user, work_ids):
            try:
                self.store.destroy_work(work)
            except StorageError as error:
                log.warning("Bulk delete failed: work=%s error=%s", work.id, error)
                result.failures.append(BatchFailure(index, work.title, "storage", str(error)))
                continue
            result.succeeded.append(work.title)

        notices = []
        if result.succeeded:
            notices.append(notice("works_deleted", titles=", ".join(result.succeeded)))
        if result.failures:
            notices.append(error_notice("bulk_delete_failed", titles=", ".join(f.key for f in result.failures)))
        return Redirected(Route("user_works_show_multiple", {"login": user.login}), notices=notices, batch=result)
