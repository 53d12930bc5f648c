"""Moderated collection checks run after a work is saved."""

from __future__ import annotations

from FicArchive.core.models import ApprovalStatus, Collection, User, Work
from FicArchive.workflow.outcome import Notice, notice


def pending_moderation(work: Work, user: User | None) -> list[Collection]:
    """Collections where the work waits for a moderator.

    A collection counts when it is moderated, the user is not one of its
    posting participants, and the work's link to it has been submitted by the
    user but not yet approved by the collection.
    """
    pending: list[Collection] = []
    for collection in work.collections:
        if collection is None or not collection.moderated:
            continue
        if collection.user_is_posting_participant(user):
            continue
        for item in work.collection_items:
            if item.collection_id != collection.id:
                continue
            if (
                item.user_approval_status == ApprovalStatus.APPROVED
                and item.collection_approval_status == ApprovalStatus.NEUTRAL
                and collection not in pending
            ):
                pending.append(collection)
    return pending


def moderation_notice(collections: list[Collection]) -> Notice | None:
    if not collections:
        return None
    titles = ", ".join(collection.title for collection in collections)
    key = "moderated_pending_many" if len(collections) > 1 else "moderated_pending_one"
    return notice(key, collections=titles)
