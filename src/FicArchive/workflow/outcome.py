"""Tagged results returned by workflow operations.

Operations never render or redirect themselves. They return one of
`Rendered`, `Redirected` or `Saved` and the calling layer decides how to
present it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Mapping, Optional, Sequence, TypeVar, Union

from FicArchive.core.errors import PartialBatchFailure, ValidationError
from FicArchive.core.models import Work
from FicArchive.workflow import messages
from FicArchive.workflow.states import WorkState

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Notice:
    """A parameterized user-facing message."""

    key: str
    params: Mapping[str, Any] = field(default_factory=dict)
    level: Literal["notice", "error"] = "notice"

    @property
    def text(self) -> str:
        return messages.render(self.key, self.params)


def notice(key: str, **params: Any) -> Notice:
    return Notice(key=key, params=params)


def error_notice(key: str, **params: Any) -> Notice:
    return Notice(key=key, params=params, level="error")


@dataclass(frozen=True, slots=True)
class Route:
    """Named destination, e.g. ``Route("work", {"work_id": 3})``."""

    name: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BatchFailure:
    """One failed item of a bulk or batch operation.

    Attributes:
        index: Position of the item in the submitted input.
        key: Work title or source URL identifying the item.
        kind: Failure class (``timeout``, ``fetch``, ``parse``, ``save``,
            ``conflict``, ``storage``).
        reason: Human-readable reason.
    """

    index: int
    key: str
    kind: str
    reason: str

    @property
    def retriable(self) -> bool:
        return self.kind in ("timeout", "conflict")


@dataclass(slots=True)
class BatchResult(Generic[T]):
    """Per-item outcome of a partial-failure batch."""

    succeeded: list[T] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when at least one item succeeded."""
        return bool(self.succeeded)

    def raise_for_failures(self) -> None:
        if self.failures:
            raise PartialBatchFailure(self)


@dataclass(frozen=True, slots=True)
class Rendered:
    """Show a view (form, preview, listing) without redirecting."""

    view: str
    work: Optional[Work] = None
    notices: Sequence[Notice] = ()
    errors: Sequence[ValidationError] = ()
    data: Mapping[str, Any] = field(default_factory=dict)
    batch: Optional[BatchResult[Any]] = None


@dataclass(frozen=True, slots=True)
class Redirected:
    target: Route
    notices: Sequence[Notice] = ()
    errors: Sequence[ValidationError] = ()
    batch: Optional[BatchResult[Any]] = None


@dataclass(frozen=True, slots=True)
class Saved:
    """The work was persisted and moved to ``state``."""

    work: Work
    state: WorkState
    target: Route
    notices: Sequence[Notice] = ()


Outcome = Union[Rendered, Redirected, Saved]
