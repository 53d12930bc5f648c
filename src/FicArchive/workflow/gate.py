"""Validity gate a work must pass before it is previewed or posted."""

from __future__ import annotations

from FicArchive.core.errors import ValidationError
from FicArchive.core.models import Work
from FicArchive.workflow.authorship import AuthorshipResolution
from FicArchive.workflow.tags import tag_errors


def validity_gate(work: Work, authorship: AuthorshipResolution | None = None) -> list[ValidationError]:
    """Return every reason ``work`` may not be saved as a draft or posted.

    Covers errors recorded while assigning form attributes, unresolved or
    foreign authorship, and required/invalid tags. Chapter persistence is
    checked by the engine when it saves.
    """
    errors = list(work.errors)
    if authorship is not None:
        for identifier in authorship.invalid:
            errors.append(ValidationError("pseuds", f"We couldn't find the pseud '{identifier}'."))
        for byline in authorship.ambiguous:
            errors.append(ValidationError("pseuds", f"The pseud '{byline}' is ambiguous."))
        if not authorship.owned_by_actor:
            errors.append(ValidationError("pseuds", "You're not allowed to use that pseud."))
    errors.extend(tag_errors(work))
    return errors
