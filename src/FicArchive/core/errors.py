"""Error taxonomy shared by the search and workflow layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from FicArchive.workflow.outcome import BatchResult


class ArchiveError(Exception):
    """Base class for all archive errors."""


class ValidationError(ArchiveError):
    """A single field failed validation.

    Attributes:
        field: Field name, or ``"base"`` for whole-record problems.
        reason: Human-readable reason.
    """

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return (self.field, self.reason) == (other.field, other.reason)

    def __hash__(self) -> int:
        return hash((self.field, self.reason))


class StoreValidationError(ArchiveError):
    """The persistence store rejected a save with per-field errors."""

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = tuple(errors)
        super().__init__("; ".join(str(error) for error in self.errors) or "record is invalid")


class ConflictError(ArchiveError):
    """The record changed underneath us; the caller may retry."""

    retriable = True


class NotFoundError(ArchiveError):
    """Unknown work, tag, user, pseud or collection."""


class StorageError(ArchiveError):
    """Generic store failure (e.g. destroy failed)."""


class FetchTimeoutError(ArchiveError, TimeoutError):
    """Fetching an import source exceeded its time bound."""

    retriable = True

    def __init__(self, url: str, timeout: float) -> None:
        self.url = url
        self.timeout = timeout
        super().__init__(f"Fetching {url} timed out after {timeout:.0f}s")


class StoryFetchError(ArchiveError):
    """Non-timeout failure while downloading an import source."""


class StoryParseError(ArchiveError):
    """Downloaded content could not be turned into a work."""


class ArchivePermissionError(ArchiveError, PermissionError):
    """The acting account may not perform this mutation."""


class InvalidTransitionError(ArchiveError):
    """Requested work state transition is not allowed."""


class PartialBatchFailure(ArchiveError):
    """Some items of a bulk or batch operation failed.

    Attributes:
        result: The full batch result, with successes and per-item failures.
    """

    def __init__(self, result: BatchResult) -> None:
        self.result = result
        super().__init__(
            f"{len(result.failures)} of {len(result.failures) + len(result.succeeded)} items failed"
        )
