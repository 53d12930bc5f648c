"""In-process work store.

Keeps records in dictionaries and enforces the same contract the hosted
store does: optimistic version checks on save, pluggable per-field
validation and ``StorageError`` on failed destroys.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import re
from typing import Any, Callable, Iterable, Mapping, Sequence

from FicArchive.core.errors import (
    ConflictError,
    StorageError,
    StoreValidationError,
    ValidationError,
)
from FicArchive.core.models import (
    Chapter,
    Collection,
    CollectionOwner,
    Owner,
    Pseud,
    PseudOwner,
    Tag,
    TagOwner,
    User,
    UserOwner,
    Work,
    assign_attributes,
)
from FicArchive.utils.log import log

Validator = Callable[[Work], Sequence[ValidationError]]

_BYLINE_RE = re.compile(r"^\s*(?P<name>.+?)\s*\((?P<login>[^()]+)\)\s*$")


class InMemoryWorkStore:
    """Dictionary-backed implementation of ``WorkStore``."""

    def __init__(
        self,
        *,
        users: Iterable[User] = (),
        tags: Iterable[Tag] = (),
        collections: Iterable[Collection] = (),
        validators: Iterable[Validator] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._users: dict[int, User] = {}
        self._pseuds: dict[int, Pseud] = {}
        for user in users:
            self.add_user(user)
        self._tags: dict[int, Tag] = {tag.id: tag for tag in tags if tag.id is not None}
        self._collections: dict[str, Collection] = {c.name: c for c in collections}
        self._works: dict[int, Work] = {}
        self._validators = list(validators)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._next_work_id = 1
        self._next_chapter_id = 1

    def add_user(self, user: User) -> None:
        self._users[user.id] = user
        for pseud in user.pseuds:
            self._pseuds[pseud.id] = pseud

    def find_work(self, work_id: int) -> Work | None:
        stored = self._works.get(int(work_id))
        if stored is None:
            return None
        return _snapshot(stored)

    def find_user_by_login(self, login: str) -> User | None:
        for user in self._users.values():
            if user.login == login:
                return user
        return None

    def find_pseud(self, pseud_id: int) -> Pseud | None:
        return self._pseuds.get(int(pseud_id))

    def find_pseuds_by_byline(self, byline: str) -> list[Pseud]:
        match = _BYLINE_RE.match(byline)
        if match:
            name, login = match.group("name"), match.group("login").strip()
            return [
                pseud
                for pseud in self._pseuds.values()
                if pseud.name.casefold() == name.casefold() and pseud.user_login == login
            ]
        wanted = byline.strip().casefold()
        return [pseud for pseud in self._pseuds.values() if pseud.name.casefold() == wanted]

    def find_tag(self, tag_id: int) -> Tag | None:
        return self._tags.get(int(tag_id))

    def find_tag_by_name(self, name: str) -> Tag | None:
        for tag in self._tags.values():
            if tag.name == name:
                return tag
        return None

    def find_collection_by_name(self, name: str) -> Collection | None:
        return self._collections.get(name)

    def save_chapter(self, work: Work, chapter: Chapter) -> Chapter:
        if not chapter.content.strip():
            raise StoreValidationError([ValidationError("chapter.content", "Content can't be blank")])
        if chapter.id is None:
            chapter.id = self._next_chapter_id
            self._next_chapter_id += 1
        return chapter

    def save_work(self, work: Work) -> Work:
        errors = [error for validator in self._validators for error in validator(work)]
        if errors:
            raise StoreValidationError(errors)

        if work.id is not None:
            stored = self._works.get(work.id)
            if stored is None:
                raise ConflictError(f"Work {work.id} was deleted by another request")
            if stored.version != work.version:
                raise ConflictError(
                    f"Work {work.id} was modified by another request (version {stored.version} != {work.version})"
                )
        else:
            work.id = self._next_work_id
            self._next_work_id += 1
            work.created_at = work.created_at or self._clock()

        work.version += 1
        work.revised_at = self._clock()
        self._works[work.id] = _snapshot(work)
        log.debug("Saved work id=%s version=%d posted=%s", work.id, work.version, work.posted)
        return work

    def update_work(self, work: Work, attributes: Mapping[str, Any]) -> Work:
        updated = assign_attributes(work, attributes)
        return self.save_work(updated)

    def destroy_work(self, work: Work) -> None:
        if work.id is None or self._works.pop(work.id, None) is None:
            raise StorageError(f"work {work.id} is not stored")

    def unposted_works(self, user: User, pseud: Pseud | None = None) -> list[Work]:
        drafts = [w for w in self._works.values() if not w.posted and w.is_owned_by(user)]
        if pseud is not None:
            drafts = [w for w in drafts if any(p.id == pseud.id for p in w.pseuds)]
        return [_snapshot(w) for w in drafts]

    def latest_works(self) -> list[Work]:
        posted = [w for w in self._works.values() if w.posted]
        ordered = sorted(posted, key=lambda w: w.revised_at or self._clock(), reverse=True)
        return [_snapshot(w) for w in ordered[:20]]

    def list_without_filters(self, owner: Owner, options: Mapping[str, Any]) -> list[Work]:
        del options
        return [_snapshot(w) for w in self._works.values() if w.posted and _belongs_to(w, owner)]

    def collected_without_filters(self, user: User, options: Mapping[str, Any]) -> list[Work]:
        del options
        return [
            _snapshot(w)
            for w in self._works.values()
            if w.posted and any(c.user_is_posting_participant(user) for c in w.collections)
        ]


def _snapshot(work: Work) -> Work:
    return replace(
        work,
        pseuds=list(work.pseuds),
        tags=list(work.tags),
        chapters=[replace(chapter) for chapter in work.chapters],
        collections=list(work.collections),
        collection_items=list(work.collection_items),
        challenge_claims=list(work.challenge_claims),
        external_authors=list(work.external_authors),
        errors=[],
    )


def _belongs_to(work: Work, owner: Owner) -> bool:
    if isinstance(owner, PseudOwner):
        return any(p.id == owner.pseud.id for p in work.pseuds)
    if isinstance(owner, UserOwner):
        return work.is_owned_by(owner.user)
    if isinstance(owner, CollectionOwner):
        return any(c.id == owner.collection.id for c in work.collections)
    if isinstance(owner, TagOwner):
        return any(t.name == owner.tag.name for t in work.tags)
    return False
