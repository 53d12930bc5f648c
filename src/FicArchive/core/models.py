from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar, Literal, Mapping, Optional, Sequence, Union

from FicArchive.core.errors import ValidationError


class TagCategory(str, Enum):
    """Tag categories. Fandom and Warning are required on every work."""

    FANDOM = "Fandom"
    WARNING = "Warning"
    RATING = "Rating"
    CATEGORY = "Category"
    RELATIONSHIP = "Relationship"
    CHARACTER = "Character"
    FREEFORM = "Freeform"


class ApprovalStatus(IntEnum):
    """Approval state of one side of a work/collection link."""

    REJECTED = -1
    NEUTRAL = 0
    APPROVED = 1


@dataclass(frozen=True, slots=True)
class Pseud:
    """An authoring identity owned by exactly one user.

    Attributes:
        id: Store identifier.
        name: Pen name.
        user_id: Owning user id.
        user_login: Owning user login, used for disambiguating bylines.
        is_default: Whether this is the user's default pseud.
    """

    id: int
    name: str
    user_id: int
    user_login: str
    is_default: bool = False

    @property
    def byline(self) -> str:
        if self.name == self.user_login:
            return self.name
        return f"{self.name} ({self.user_login})"


@dataclass(frozen=True, slots=True)
class User:
    id: int
    login: str
    pseuds: Sequence[Pseud] = ()

    @property
    def default_pseud(self) -> Pseud:
        for pseud in self.pseuds:
            if pseud.is_default:
                return pseud
        if not self.pseuds:
            raise ValueError(f"User {self.login} has no pseuds")
        return self.pseuds[0]

    def owns(self, pseud: Pseud) -> bool:
        return pseud.user_id == self.id


@dataclass(frozen=True, slots=True)
class Tag:
    """A tag in one category.

    Attributes:
        name: Display name.
        category: Tag category.
        id: Store identifier, None for tags not yet persisted.
        canonical: Whether this is the canonical form of the tag.
        merger_id: Canonical tag this one was merged into, if any.
    """

    name: str
    category: TagCategory
    id: Optional[int] = None
    canonical: bool = True
    merger_id: Optional[int] = None


@dataclass(frozen=True, slots=True)
class Collection:
    id: int
    name: str
    title: str
    moderated: bool = False
    posting_participant_ids: frozenset[int] = frozenset()

    def user_is_posting_participant(self, user: User | None) -> bool:
        return user is not None and user.id in self.posting_participant_ids


@dataclass(frozen=True, slots=True)
class CollectionItem:
    """Link between a work and a collection with two-sided approval."""

    collection_id: int
    user_approval_status: ApprovalStatus = ApprovalStatus.NEUTRAL
    collection_approval_status: ApprovalStatus = ApprovalStatus.NEUTRAL


@dataclass(frozen=True, slots=True)
class ChallengeClaim:
    id: int
    collection: Collection


@dataclass(frozen=True, slots=True)
class ExternalAuthor:
    """A non-account author of an imported work."""

    name: str
    email: str


@dataclass(slots=True)
class Chapter:
    content: str
    title: str = ""
    position: int = 1
    posted: bool = False
    id: Optional[int] = None


@dataclass(slots=True)
class Work:
    """A work as edited during one mutating request.

    The engine mutates this draft while it validates and saves; persistence
    is delegated to the store, which owns ``id`` and ``version``.
    """

    title: str
    pseuds: list[Pseud] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    chapters: list[Chapter] = field(default_factory=list)
    posted: bool = False
    minor_version: int = 0
    collections: list[Collection] = field(default_factory=list)
    collection_items: list[CollectionItem] = field(default_factory=list)
    challenge_claims: list[ChallengeClaim] = field(default_factory=list)
    external_authors: list[ExternalAuthor] = field(default_factory=list)
    restricted: bool = False
    anon_commenting_disabled: bool = False
    moderated_commenting_enabled: bool = False
    language_id: Optional[int] = None
    summary: str = ""
    notes: str = ""
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None
    revised_at: Optional[datetime] = None
    id: Optional[int] = None
    version: int = 0
    errors: list[ValidationError] = field(default_factory=list)

    def tags_in(self, category: TagCategory) -> list[Tag]:
        return [tag for tag in self.tags if tag.category == category]

    @property
    def fandoms(self) -> list[Tag]:
        return self.tags_in(TagCategory.FANDOM)

    @property
    def warnings(self) -> list[Tag]:
        return self.tags_in(TagCategory.WARNING)

    @property
    def first_chapter(self) -> Chapter | None:
        if not self.chapters:
            return None
        return min(self.chapters, key=lambda chapter: chapter.position)

    def is_owned_by(self, user: User | None) -> bool:
        return user is not None and any(user.owns(pseud) for pseud in self.pseuds)


# Attributes a sparse patch (bulk edit, import options) may set.
TAG_FIELD_CATEGORIES: Mapping[str, TagCategory] = {
    "fandom_string": TagCategory.FANDOM,
    "warning_strings": TagCategory.WARNING,
    "rating_string": TagCategory.RATING,
    "category_string": TagCategory.CATEGORY,
    "relationship_string": TagCategory.RELATIONSHIP,
    "character_string": TagCategory.CHARACTER,
    "freeform_string": TagCategory.FREEFORM,
}
_PLAIN_FIELDS = frozenset(
    {
        "title",
        "summary",
        "notes",
        "restricted",
        "anon_commenting_disabled",
        "moderated_commenting_enabled",
        "language_id",
        "posted",
    }
)
ASSIGNABLE_FIELDS = frozenset(TAG_FIELD_CATEGORIES) | _PLAIN_FIELDS
TAG_STRING_FIELDS = frozenset(TAG_FIELD_CATEGORIES)
FLAG_FIELDS = frozenset({"restricted", "anon_commenting_disabled", "moderated_commenting_enabled", "posted"})
_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


def coerce_flag(value: Any) -> bool:
    """Read a checkbox-style form value as a boolean."""
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def split_tag_string(value: str) -> list[str]:
    """Split a comma separated tag string into stripped, non-empty names."""
    return [name.strip() for name in str(value).split(",") if name.strip()]


def assign_attributes(work: Work, attributes: Mapping[str, Any]) -> Work:
    """Return a copy of ``work`` with ``attributes`` applied.

    Tag string fields replace every tag of their category. Unknown keys raise
    ``KeyError`` so callers filter before assigning.
    """
    plain: dict[str, Any] = {}
    tags = list(work.tags)
    for key, value in attributes.items():
        if key in TAG_FIELD_CATEGORIES:
            category = TAG_FIELD_CATEGORIES[key]
            tags = [tag for tag in tags if tag.category != category]
            tags.extend(Tag(name=name, category=category) for name in split_tag_string(value))
        elif key in FLAG_FIELDS:
            plain[key] = coerce_flag(value)
        elif key == "language_id":
            plain[key] = int(value) if value not in (None, "") else None
        elif key in _PLAIN_FIELDS:
            plain[key] = value
        else:
            raise KeyError(f"Unknown work attribute: {key}")
    return replace(work, tags=tags, errors=list(work.errors), **plain)


@dataclass(frozen=True, slots=True)
class PseudOwner:
    pseud: Pseud
    kind: ClassVar[Literal["pseud"]] = "pseud"

    @property
    def display_name(self) -> str:
        return self.pseud.name

    @property
    def cache_key(self) -> str:
        return f"pseud/{self.pseud.id}/works"


@dataclass(frozen=True, slots=True)
class UserOwner:
    user: User
    kind: ClassVar[Literal["user"]] = "user"

    @property
    def display_name(self) -> str:
        return self.user.login

    @property
    def cache_key(self) -> str:
        return f"user/{self.user.id}/works"


@dataclass(frozen=True, slots=True)
class CollectionOwner:
    collection: Collection
    kind: ClassVar[Literal["collection"]] = "collection"

    @property
    def display_name(self) -> str:
        return self.collection.title

    @property
    def cache_key(self) -> str:
        return f"collection/{self.collection.id}/works"


@dataclass(frozen=True, slots=True)
class TagOwner:
    tag: Tag
    kind: ClassVar[Literal["tag"]] = "tag"

    @property
    def display_name(self) -> str:
        return self.tag.name

    @property
    def cache_key(self) -> str:
        return f"tag/{self.tag.id}/works"


Owner = Union[PseudOwner, UserOwner, CollectionOwner, TagOwner]


def works_index_cache_key(owner: Owner, subtag: Tag | None = None) -> str:
    """Cache key for an owner's works listing, optionally narrowed to a tag."""
    if subtag is None:
        return owner.cache_key
    return f"{owner.cache_key}/tag/{subtag.id}"
