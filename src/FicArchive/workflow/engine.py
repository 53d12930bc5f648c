"""Posting and authorization workflow for single works.

Each public method handles one mutating request: it validates, decides the
state transition, persists through the store and returns a tagged outcome.
Exactly one of preview / cancel / edit / save-or-post runs per request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

from dateutil.relativedelta import relativedelta

from FicArchive.config.drafts import DraftConfig
from FicArchive.core.errors import (
    ArchivePermissionError,
    ConflictError,
    NotFoundError,
    StorageError,
    StoreValidationError,
    ValidationError,
)
from FicArchive.core.models import (
    TAG_STRING_FIELDS,
    ApprovalStatus,
    Chapter,
    CollectionItem,
    User,
    Work,
    assign_attributes,
    split_tag_string,
)
from FicArchive.storage.protocols import ActivityLog, ResultCache, WorkStore
from FicArchive.utils.log import log
from FicArchive.workflow import messages
from FicArchive.workflow.authorship import AuthorAttributes, AuthorshipResolution, resolve_authorship
from FicArchive.workflow.context import FormAction, RequestContext
from FicArchive.workflow.gate import validity_gate
from FicArchive.workflow.moderation import moderation_notice, pending_moderation
from FicArchive.workflow.outcome import (
    Notice,
    Outcome,
    Redirected,
    Rendered,
    Route,
    Saved,
    error_notice,
    notice,
)
from FicArchive.workflow.states import WorkEvent, WorkState
from FicArchive.workflow.tags import has_required_tags, invalid_tags, missing_summary, tag_errors

# Attributes a work form may assign; posting is decided by the action.
_FORM_FIELDS = frozenset(
    {
        "title",
        "summary",
        "notes",
        "restricted",
        "anon_commenting_disabled",
        "moderated_commenting_enabled",
        "language_id",
    }
) | TAG_STRING_FIELDS


def tag_groups_cache_key(work_id: int | None) -> str:
    return f"work_tag_groups/{work_id}"


@dataclass(frozen=True, slots=True)
class WorkForm:
    """Submitted work form.

    Attributes:
        attributes: Work attributes (title, tag strings, flags...).
        chapter: First chapter fields (``content``, ``title``), if submitted.
        authors: Authorship fields, None when the form had none.
        collection_names: Comma separated collection names, if submitted.
    """

    attributes: Mapping[str, Any] = field(default_factory=dict)
    chapter: Mapping[str, Any] | None = None
    authors: AuthorAttributes | None = None
    collection_names: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> WorkForm:
        work_params = params.get("work") or {}
        authors = None
        if "author_attributes" in work_params or params.get("pseud"):
            authors = AuthorAttributes.from_params({**work_params, "pseud": params.get("pseud") or {}})
        return cls(
            attributes={k: v for k, v in work_params.items() if k in _FORM_FIELDS},
            chapter=work_params.get("chapter_attributes"),
            authors=authors,
            collection_names=work_params.get("collection_names"),
        )


class WorkflowEngine:
    """Drives a work through draft, preview, posted and deleted states."""

    def __init__(
        self,
        store: WorkStore,
        *,
        drafts: DraftConfig,
        cache: ResultCache | None = None,
        activity_log: ActivityLog | None = None,
    ) -> None:
        self.store = store
        self.drafts = drafts
        self.cache = cache
        self.activity_log = activity_log

    # -- loading -----------------------------------------------------------

    def load_work(self, work_id: int, ctx: RequestContext, *, allow_admin: bool = False) -> Work | Redirected:
        """Load a work the acting account may modify.

        Returns a redirect to the work itself when the request is scoped to a
        collection the work is not in.

        Raises:
            NotFoundError: If there is no such work.
            ArchivePermissionError: If the actor neither owns the work nor
                (when ``allow_admin``) is an admin.
        """
        work = self.store.find_work(work_id)
        if work is None:
            raise NotFoundError(f"Couldn't find work with id '{work_id}'")
        if ctx.collection is not None and not any(c.id == ctx.collection.id for c in work.collections):
            return Redirected(Route("work", {"work_id": work.id}))
        if not work.is_owned_by(ctx.viewer.user) and not (allow_admin and ctx.viewer.is_admin):
            raise ArchivePermissionError(
                "Sorry, you don't have permission to access the page you were trying to reach."
            )
        return work

    # -- create ------------------------------------------------------------

    def create(self, form: WorkForm, ctx: RequestContext) -> Outcome:
        """Create a new work, as a previewed draft or posted directly."""
        user = ctx.require_user()
        work = Work(title="", ip_address=ctx.remote_ip)
        collection_names = form.collection_names
        if collection_names is None and ctx.collection is not None:
            collection_names = ctx.collection.name
        work = self._apply_form(work, form, user, collection_names=collection_names)

        if ctx.action is FormAction.EDIT:
            return Rendered("new", work=work)
        if ctx.action is FormAction.CANCEL:
            return Redirected(Route("user", {"login": user.login}), notices=[notice("posting_canceled")])

        resolution = resolve_authorship(self.store, user, form.authors)
        if not resolution.owned_by_actor and not resolution.needs_disambiguation:
            return self._pseud_not_allowed(work, resolution, "new")
        work.pseuds = list(resolution.pseuds)

        previewing = ctx.action.is_preview
        chapter = work.first_chapter or Chapter(content="")
        if not work.chapters:
            work.chapters.append(chapter)
        if not previewing:
            work.posted = True
            chapter.posted = True

        errors = validity_gate(work, resolution)
        if not errors:
            errors = self._save_chapter(work, chapter) or self._save_work(work)
        if errors:
            if not work.errors and resolution.needs_disambiguation:
                return self._choose_coauthor(work, resolution)
            return Rendered("new", work=work, errors=errors, notices=self._tag_notices(work, resolution.notices))

        event = WorkEvent.PREVIEW if previewing else WorkEvent.POST
        state = WorkState.UNPOSTED.transition(event)
        notices = list(resolution.notices)
        if previewing:
            notices.append(notice("draft_created", deletion_date=self.deletion_date(work, ctx.now)))
            target = Route("work_preview", {"work_id": work.id})
        else:
            notices.append(notice("work_posted"))
            target = Route("work", {"work_id": work.id})
        self._add_moderation_notice(work, user, notices)
        log.info("Created work id=%s state=%s by user=%s", work.id, state.value, user.login)
        return Saved(work=work, state=state, target=target, notices=notices)

    # -- update ------------------------------------------------------------

    def update(self, work_id: int, form: WorkForm, ctx: RequestContext) -> Outcome:
        """Apply an edit to an existing work.

        Preview renders without saving, cancel discards, edit returns to the
        form, and save/post validates, persists and bumps ``minor_version``.
        """
        user = ctx.require_user()
        loaded = self.load_work(work_id, ctx)
        if isinstance(loaded, Redirected):
            return loaded
        before = WorkState.of(loaded)

        if form.authors is None:
            resolution = AuthorshipResolution(pseuds=list(loaded.pseuds), owned_by_actor=True)
        else:
            resolution = resolve_authorship(self.store, user, form.authors)
        if not resolution.owned_by_actor and not resolution.needs_disambiguation:
            return self._pseud_not_allowed(loaded, resolution, "edit")

        work = self._apply_form(loaded, form, user, collection_names=form.collection_names)
        if work.errors:
            return Rendered("edit", work=work, errors=list(work.errors))
        work.pseuds = list(resolution.pseuds)

        if resolution.needs_disambiguation:
            return self._choose_coauthor(work, resolution)
        if ctx.action.is_preview:
            return self._preview(work, user, ctx, form_view="edit", preview_view="preview")
        if ctx.action is FormAction.CANCEL:
            return self.cancel_posting(work, user)
        if ctx.action is FormAction.EDIT:
            return Rendered("edit", work=work)

        chapter = work.first_chapter
        if ctx.action is FormAction.POST:
            work.posted = True
            if chapter is not None:
                chapter.posted = True
        posted_changed = work.posted and before is not WorkState.POSTED

        errors = self._save_chapter(work, chapter) if chapter is not None else []
        errors.extend(tag_errors(work))
        if errors:
            return Rendered("edit", work=work, errors=errors, notices=self._tag_notices(work, ()))

        self._claim_collections(work)
        work.minor_version += 1
        errors = self._save_work(work)
        if errors:
            return Rendered("edit", work=work, errors=errors)

        state = before.transition(WorkEvent.POST if posted_changed else WorkEvent.UPDATE)
        notices = list(resolution.notices)
        notices.append(notice("work_posted" if posted_changed else "work_updated"))
        self._add_moderation_notice(work, user, notices)
        log.info("Updated work id=%s minor_version=%d state=%s", work.id, work.minor_version, state.value)
        return Saved(work=work, state=state, target=Route("work", {"work_id": work.id}), notices=notices)

    def update_tags(self, work_id: int, form: WorkForm, ctx: RequestContext) -> Outcome:
        """Change only the tags of a work. Owners and admins may do this."""
        if not ctx.viewer.is_admin:
            ctx.require_user()
        loaded = self.load_work(work_id, ctx, allow_admin=True)
        if isinstance(loaded, Redirected):
            return loaded
        before = WorkState.of(loaded)
        if ctx.viewer.is_admin and self.activity_log is not None and ctx.viewer.user is not None:
            summary = "Old tags: " + ", ".join(tag.name for tag in loaded.tags)
            self.activity_log.log_action(ctx.viewer.user, loaded, action="update_tags", summary=summary)

        tag_attributes = {k: v for k, v in form.attributes.items() if k in TAG_STRING_FIELDS}
        work = assign_attributes(loaded, tag_attributes)
        if work.errors:
            return Rendered("edit_tags", work=work, errors=list(work.errors))

        if ctx.action.is_preview:
            return self._preview(work, ctx.viewer.user, ctx, form_view="edit_tags", preview_view="preview_tags")
        if ctx.action is FormAction.CANCEL:
            return self.cancel_posting(work, ctx.viewer.user)
        if ctx.action is FormAction.EDIT:
            return Rendered("edit_tags", work=work)

        errors = tag_errors(work)
        if errors:
            return Rendered("edit_tags", work=work, errors=errors, notices=self._tag_notices(work, ()))

        if ctx.action is FormAction.SAVE:
            event = WorkEvent.UPDATE
            notices = [notice("tags_updated")]
        else:
            event = WorkEvent.POST
            work.posted = True
            notices = [notice("work_updated")]
        work.minor_version += 1
        errors = self._save_work(work)
        if errors:
            return Rendered("edit_tags", work=work, errors=errors)
        if self.cache is not None:
            self.cache.delete(tag_groups_cache_key(work.id))

        state = before.transition(event)
        return Saved(work=work, state=state, target=Route("work", {"work_id": work.id}), notices=notices)

    def preview(self, work_id: int, ctx: RequestContext) -> Outcome:
        """Show the stored preview of a work."""
        ctx.require_user()
        loaded = self.load_work(work_id, ctx)
        if isinstance(loaded, Redirected):
            return loaded
        return Rendered("preview", work=loaded)

    def post_draft(self, work_id: int, ctx: RequestContext) -> Outcome:
        """Post a stored draft without going through the edit form."""
        user = ctx.require_user()
        work = self.store.find_work(work_id)
        if work is None:
            raise NotFoundError(f"Couldn't find work with id '{work_id}'")
        if not work.is_owned_by(user):
            return Redirected(Route("user", {"login": user.login}), notices=[error_notice("post_own_only")])
        edit_route = Route("work_edit", {"login": user.login, "work_id": work.id})
        if work.posted:
            return Redirected(edit_route, notices=[error_notice("already_posted")])

        before = WorkState.of(work)
        work.posted = True
        for chapter in work.chapters:
            chapter.posted = True
        work.minor_version += 1
        errors = validity_gate(work) or self._save_work(work)
        if errors:
            return Redirected(edit_route, notices=[error_notice("posting_problems")], errors=errors)

        state = before.transition(WorkEvent.POST)
        if ctx.collection is not None and ctx.collection.moderated:
            notices: list[Notice] = [notice("moderated_submitted")]
        else:
            notices = [notice("draft_posted")]
        return Saved(work=work, state=state, target=Route("work", {"work_id": work.id}), notices=notices)

    # -- delete and authorship --------------------------------------------

    def delete(self, work_id: int, ctx: RequestContext) -> Outcome:
        """Destroy a work; store failures become a retry advisory."""
        user = ctx.require_user()
        loaded = self.load_work(work_id, ctx)
        if isinstance(loaded, Redirected):
            return loaded
        work = loaded
        was_draft = not work.posted
        target = Route("user_drafts" if was_draft else "user_works", {"login": user.login})
        before = WorkState.of(work)
        try:
            self.store.destroy_work(work)
        except StorageError as error:
            log.warning("Delete failed: work=%s error=%s", work.id, error)
            return Redirected(target, notices=[error_notice("delete_failed")])
        log.info("Deleted work id=%s title=%r", work.id, work.title)
        return Saved(
            work=work,
            state=before.transition(WorkEvent.DELETE),
            target=target,
            notices=[notice("work_deleted", title=work.title)],
        )

    def remove_self_as_author(self, work_id: int, ctx: RequestContext) -> Outcome:
        """Drop the acting user's pseuds from a co-authored work.

        A sole author is sent to the orphaning flow instead.
        """
        user = ctx.require_user()
        loaded = self.load_work(work_id, ctx)
        if isinstance(loaded, Redirected):
            return loaded
        work = loaded
        remaining = [pseud for pseud in work.pseuds if not user.owns(pseud)]
        if not remaining:
            return Redirected(Route("orphan_new", {"work_ids": [work.id]}))
        work.pseuds = remaining
        errors = self._save_work(work)
        if errors:
            return Rendered("edit", work=work, errors=errors)
        return Redirected(Route("user", {"login": user.login}), notices=[notice("removed_as_author")])

    def drafts(self, user_login: str | None, ctx: RequestContext, *, pseud_name: str | None = None) -> Outcome:
        """List a user's unposted works with their deletion dates."""
        viewer_user = ctx.require_user()
        if not user_login:
            return Redirected(Route("users"), notices=[error_notice("drafts_whose")])
        owner = self.store.find_user_by_login(user_login)
        if owner is None:
            raise NotFoundError(f"Couldn't find user named '{user_login}'")
        if owner.id != viewer_user.id:
            return Redirected(Route("user", {"login": viewer_user.login}), notices=[error_notice("drafts_not_own")])

        pseud = None
        if pseud_name:
            pseud = next((p for p in owner.pseuds if p.name == pseud_name), None)
            if pseud is None:
                raise NotFoundError(f"Couldn't find pseud named '{pseud_name}'")
        works = self.store.unposted_works(owner, pseud)
        deletion_dates = {work.id: self.deletion_date(work, ctx.now) for work in works}
        return Rendered("drafts", data={"works": works, "deletion_dates": deletion_dates})

    # -- shared branches ---------------------------------------------------

    def cancel_posting(self, work: Work, user: User | None) -> Redirected:
        """Discard in-memory changes and explain what happens to the work."""
        login = user.login if user is not None else None
        if work.posted:
            return Redirected(Route("user_works", {"login": login}), notices=[notice("work_not_updated")])
        return Redirected(
            Route("user_drafts", {"login": login}),
            notices=[notice("draft_retained", months=self.drafts.expiry_months)],
        )

    def deletion_date(self, work: Work, now: datetime) -> str:
        created = work.created_at or now
        return (created + relativedelta(months=self.drafts.expiry_months)).date().isoformat()

    def _preview(
        self,
        work: Work,
        user: User | None,
        ctx: RequestContext,
        *,
        form_view: str,
        preview_view: str,
    ) -> Rendered:
        if not has_required_tags(work) or invalid_tags(work):
            return Rendered(form_view, work=work, errors=tag_errors(work), notices=self._tag_notices(work, ()))
        notices: list[Notice] = []
        if not work.posted:
            notices.append(notice("changes_not_saved"))
            notices.append(notice("draft_expiry", deletion_date=self.deletion_date(work, ctx.now)))
        self._add_moderation_notice(work, user, notices)
        return Rendered(preview_view, work=work, notices=notices)

    def _apply_form(
        self,
        work: Work,
        form: WorkForm,
        user: User,
        *,
        collection_names: str | None,
    ) -> Work:
        attributes = {key: value for key, value in form.attributes.items() if key in _FORM_FIELDS}
        ignored = sorted(set(form.attributes) - set(attributes))
        if ignored:
            log.debug("Ignoring work form fields: %s", ", ".join(ignored))
        try:
            work = assign_attributes(work, attributes)
        except ValueError as error:
            work.errors.append(ValidationError("base", str(error)))

        if form.chapter is not None:
            chapter = work.first_chapter
            if chapter is None:
                chapter = Chapter(content="")
                work.chapters.append(chapter)
            if "content" in form.chapter:
                chapter.content = str(form.chapter["content"] or "")
            if "title" in form.chapter:
                chapter.title = str(form.chapter["title"] or "")

        if collection_names:
            self._assign_collections(work, collection_names, user)
        return work

    def _assign_collections(self, work: Work, names: str, user: User) -> None:
        for name in split_tag_string(names):
            collection = self.store.find_collection_by_name(name)
            if collection is None:
                work.errors.append(ValidationError("collection_names", f"We couldn't find the collection {name}."))
                continue
            if any(existing.id == collection.id for existing in work.collections):
                continue
            work.collections.append(collection)
            approved = not collection.moderated or collection.user_is_posting_participant(user)
            work.collection_items.append(
                CollectionItem(
                    collection_id=collection.id,
                    user_approval_status=ApprovalStatus.APPROVED,
                    collection_approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.NEUTRAL,
                )
            )

    def _claim_collections(self, work: Work) -> None:
        for claim in work.challenge_claims:
            if not any(collection.id == claim.collection.id for collection in work.collections):
                work.collections.append(claim.collection)

    def _save_chapter(self, work: Work, chapter: Chapter) -> list[ValidationError]:
        try:
            self.store.save_chapter(work, chapter)
        except StoreValidationError as error:
            return list(error.errors)
        except ConflictError as error:
            log.warning("Chapter save conflict: work=%s error=%s", work.id, error)
            return [ValidationError("base", messages.render("conflict"))]
        return []

    def _save_work(self, work: Work) -> list[ValidationError]:
        try:
            self.store.save_work(work)
        except StoreValidationError as error:
            return list(error.errors)
        except ConflictError as error:
            log.warning("Work save conflict: work=%s error=%s", work.id, error)
            return [ValidationError("base", messages.render("conflict"))]
        return []

    def _add_moderation_notice(self, work: Work, user: User | None, notices: list[Notice]) -> None:
        moderated = moderation_notice(pending_moderation(work, user))
        if moderated is not None:
            notices.append(moderated)

    def _tag_notices(self, work: Work, notices: Sequence[Notice]) -> list[Notice]:
        out = list(notices)
        if not has_required_tags(work):
            out.append(error_notice("required_tags_missing", missing=missing_summary(work)))
        return out

    def _choose_coauthor(self, work: Work, resolution: AuthorshipResolution) -> Rendered:
        return Rendered(
            "choose_coauthor",
            work=work,
            notices=list(resolution.notices),
            data={"ambiguous": dict(resolution.ambiguous), "invalid": list(resolution.invalid)},
        )

    def _pseud_not_allowed(self, work: Work, resolution: AuthorshipResolution, view: str) -> Rendered:
        return Rendered(
            view,
            work=work,
            notices=[*resolution.notices, error_notice("pseud_not_allowed")],
            errors=[ValidationError("pseuds", messages.render("pseud_not_allowed"))],
        )
