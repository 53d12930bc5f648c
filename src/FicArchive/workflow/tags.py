"""Required-tag completeness and tag name validity."""

from __future__ import annotations

from FicArchive.core.errors import ValidationError
from FicArchive.core.models import Tag, TagCategory, Work

REQUIRED_CATEGORIES: tuple[TagCategory, ...] = (TagCategory.FANDOM, TagCategory.WARNING)
TAG_MAX_LENGTH = 100
FORBIDDEN_TAG_CHARACTERS = ",^*<>{}=`%"


def missing_required_categories(work: Work) -> list[TagCategory]:
    return [category for category in REQUIRED_CATEGORIES if not work.tags_in(category)]


def has_required_tags(work: Work) -> bool:
    return not missing_required_categories(work)


def invalid_tag_reason(name: str) -> str | None:
    """Return why a tag name is unusable, or None if it is fine."""
    if not name.strip():
        return "cannot be blank"
    if len(name) > TAG_MAX_LENGTH:
        return f"is too long (maximum is {TAG_MAX_LENGTH} characters)"
    bad = sorted({char for char in name if char in FORBIDDEN_TAG_CHARACTERS})
    if bad:
        return "cannot include the following restricted characters: " + " ".join(bad)
    return None


def invalid_tags(work: Work) -> list[Tag]:
    return [tag for tag in work.tags if invalid_tag_reason(tag.name) is not None]


def tag_errors(work: Work) -> list[ValidationError]:
    """Validation errors for missing required categories and bad tag names.

    Each missing category yields its own error, e.g.
    ``ValidationError("fandom", "Fandom is missing.")``.
    """
    errors = [
        ValidationError(category.value.lower(), f"{category.value} is missing.")
        for category in missing_required_categories(work)
    ]
    for tag in invalid_tags(work):
        errors.append(
            ValidationError(f"{tag.category.value.lower()}_tags", f"Tag '{tag.name}' {invalid_tag_reason(tag.name)}")
        )
    return errors


def missing_summary(work: Work) -> str:
    """Sentence naming every missing required category, for notices."""
    return " ".join(f"{category.value} is missing." for category in missing_required_categories(work))
