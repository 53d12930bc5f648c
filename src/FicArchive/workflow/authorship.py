"""Resolution of the pseuds a work is credited to."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from FicArchive.core.models import Pseud, User
from FicArchive.storage.protocols import WorkStore
from FicArchive.utils.log import log
from FicArchive.workflow.outcome import Notice, notice


@dataclass(frozen=True, slots=True)
class AuthorAttributes:
    """Authorship fields submitted with a work form.

    Attributes:
        ids: Selected pseud ids of the acting user (and kept co-authors).
        byline: Comma separated bylines of new co-authors, ``name`` or
            ``name (login)``.
        coauthors: Pseud ids of co-authors already chosen.
    """

    ids: Sequence[Any] = ()
    byline: str | None = None
    coauthors: Sequence[Any] = ()

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> AuthorAttributes:
        attrs = params.get("author_attributes") or {}
        pseud = params.get("pseud") or {}
        return cls(
            ids=tuple(attrs.get("ids") or ()),
            byline=(pseud.get("byline") or attrs.get("byline") or None),
            coauthors=tuple(attrs.get("coauthors") or ()),
        )


@dataclass(slots=True)
class AuthorshipResolution:
    """Outcome of resolving submitted authorship.

    Attributes:
        pseuds: Pseuds that resolved to exactly one identity, in input order.
        invalid: Identifiers that matched nothing.
        ambiguous: Byline -> candidate pseuds, for bylines that matched more
            than one identity.
        notices: Non-fatal advisories.
        owned_by_actor: At least one resolved pseud belongs to the acting user.
    """

    pseuds: list[Pseud] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    ambiguous: dict[str, list[Pseud]] = field(default_factory=dict)
    notices: list[Notice] = field(default_factory=list)
    owned_by_actor: bool = False

    @property
    def needs_disambiguation(self) -> bool:
        return bool(self.invalid or self.ambiguous)

    def coauthors_of(self, user: User) -> list[Pseud]:
        """Resolved pseuds that belong to someone other than ``user``."""
        return [pseud for pseud in self.pseuds if not user.owns(pseud)]


def resolve_authorship(
    store: WorkStore,
    user: User,
    attributes: AuthorAttributes | None,
) -> AuthorshipResolution:
    """Resolve selected pseud ids, new co-author bylines and kept co-authors.

    A selection where no id resolves, empty or not, falls back to the user's
    default pseud with a ``no_pseud_selected`` advisory. Bylines matching
    several identities are reported as ambiguous. Unknown co-author ids and
    bylines are reported as invalid, as are unknown selected ids when some
    other selected id resolved.

    Args:
        store: Store used to look up pseuds.
        user: Acting user.
        attributes: Submitted authorship, None when the form had none.

    Returns:
        The resolution; callers decide whether it passes the validity gate.
    """
    attributes = attributes or AuthorAttributes()
    resolution = AuthorshipResolution()

    seen: set[int] = set()

    def add(pseud: Pseud) -> None:
        if pseud.id not in seen:
            seen.add(pseud.id)
            resolution.pseuds.append(pseud)

    selected = [(raw_id, _find_pseud(store, raw_id)) for raw_id in attributes.ids]
    if not any(pseud is not None for _, pseud in selected):
        if selected:
            log.debug("No selected pseud id resolved %s, using the default pseud", list(attributes.ids))
        resolution.notices.append(notice("no_pseud_selected"))
        selected = [(user.default_pseud.id, user.default_pseud)]
    selected.extend((raw_id, _find_pseud(store, raw_id)) for raw_id in attributes.coauthors)

    for raw_id, pseud in selected:
        if pseud is None:
            resolution.invalid.append(str(raw_id))
            continue
        add(pseud)

    for byline in _split_bylines(attributes.byline):
        matches = store.find_pseuds_by_byline(byline)
        if not matches:
            resolution.invalid.append(byline)
        elif len(matches) > 1:
            resolution.ambiguous[byline] = list(matches)
        else:
            add(matches[0])

    resolution.owned_by_actor = any(user.owns(pseud) for pseud in resolution.pseuds)
    if resolution.needs_disambiguation:
        log.debug(
            "Authorship needs disambiguation: invalid=%s ambiguous=%s",
            resolution.invalid,
            sorted(resolution.ambiguous),
        )
    return resolution


def _split_bylines(byline: str | None) -> list[str]:
    if not byline:
        return []
    return [part.strip() for part in byline.split(",") if part.strip()]


def _find_pseud(store: WorkStore, raw_id: Any) -> Pseud | None:
    try:
        return store.find_pseud(int(raw_id))
    except (TypeError, ValueError):
        return None
