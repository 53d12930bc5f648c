"""Work posting state machine."""

from __future__ import annotations

from enum import Enum
from typing import Mapping

from FicArchive.core.errors import InvalidTransitionError
from FicArchive.core.models import Work


class WorkEvent(str, Enum):
    PREVIEW = "preview"
    POST = "post"
    UPDATE = "update"
    DELETE = "delete"


class WorkState(str, Enum):
    """Posting state of a work.

    UNPOSTED: never validated or stored.
    PREVIEWED: stored as a draft, not public.
    POSTED: public. Edits keep it posted.
    DELETED: terminal.
    """

    UNPOSTED = "unposted"
    PREVIEWED = "previewed"
    POSTED = "posted"
    DELETED = "deleted"

    @classmethod
    def of(cls, work: Work) -> WorkState:
        if work.posted:
            return cls.POSTED
        if work.id is not None:
            return cls.PREVIEWED
        return cls.UNPOSTED

    def transition(self, event: WorkEvent) -> WorkState:
        target = _TRANSITIONS.get(self, {}).get(event)
        if target is None:
            raise InvalidTransitionError(f"Cannot {event.value} a work that is {self.value}")
        return target


_TRANSITIONS: Mapping[WorkState, Mapping[WorkEvent, WorkState]] = {
    WorkState.UNPOSTED: {
        WorkEvent.PREVIEW: WorkState.PREVIEWED,
        WorkEvent.POST: WorkState.POSTED,
    },
    WorkState.PREVIEWED: {
        WorkEvent.PREVIEW: WorkState.PREVIEWED,
        WorkEvent.UPDATE: WorkState.PREVIEWED,
        WorkEvent.POST: WorkState.POSTED,
        WorkEvent.DELETE: WorkState.DELETED,
    },
    WorkState.POSTED: {
        WorkEvent.PREVIEW: WorkState.POSTED,
        WorkEvent.UPDATE: WorkState.POSTED,
        WorkEvent.POST: WorkState.POSTED,
        WorkEvent.DELETE: WorkState.DELETED,
    },
}
