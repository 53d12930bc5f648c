"""Explicit per-request context handed to every workflow operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from FicArchive.core.errors import ArchivePermissionError
from FicArchive.core.models import Collection, User


class FormAction(str, Enum):
    """Which submit button the form was sent with.

    ``SUBMIT`` means no recognized button was present; operations treat it as
    their save/post branch.
    """

    PREVIEW = "preview_button"
    CANCEL_COAUTHOR = "cancel_coauthor_button"
    CANCEL = "cancel_button"
    EDIT = "edit_button"
    SAVE = "save_button"
    POST = "post_button"
    SUBMIT = "submit"

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> FormAction:
        for action in (cls.PREVIEW, cls.CANCEL_COAUTHOR, cls.CANCEL, cls.EDIT, cls.SAVE, cls.POST):
            if params.get(action.value):
                return action
        return cls.SUBMIT

    @property
    def is_preview(self) -> bool:
        # cancelling the co-author chooser behaves like a preview
        return self in (FormAction.PREVIEW, FormAction.CANCEL_COAUTHOR)


@dataclass(frozen=True, slots=True)
class Viewer:
    """Who is acting, as reported by the hosting application.

    Attributes:
        user: Logged-in account, None for anonymous viewers.
        is_admin: Logged in as an administrator.
        is_archivist: Account has the archivist role.
        is_tag_wrangler: Account may wrangle tags.
    """

    user: Optional[User] = None
    is_admin: bool = False
    is_archivist: bool = False
    is_tag_wrangler: bool = False

    @property
    def logged_in(self) -> bool:
        return self.user is not None

    @property
    def can_see_restricted(self) -> bool:
        return self.user is not None or self.is_admin


@dataclass(frozen=True, slots=True)
class RequestContext:
    viewer: Viewer
    action: FormAction = FormAction.SUBMIT
    collection: Optional[Collection] = None
    remote_ip: Optional[str] = None
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def require_user(self) -> User:
        """Return the acting user or raise for anonymous requests."""
        if self.viewer.user is None:
            raise ArchivePermissionError("Please log in to do that.")
        return self.viewer.user
