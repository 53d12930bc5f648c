"""Import of works from external story URLs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

from FicArchive.config.imports import ImportConfig
from FicArchive.core.errors import (
    ConflictError,
    FetchTimeoutError,
    StoreValidationError,
    StoryFetchError,
    StoryParseError,
    ValidationError,
)
from FicArchive.core.models import (
    TAG_FIELD_CATEGORIES,
    TAG_STRING_FIELDS,
    ExternalAuthor,
    Pseud,
    User,
    Work,
    assign_attributes,
    coerce_flag,
)
from FicArchive.storage.protocols import InviteNotifier, WorkStore
from FicArchive.utils.log import log
from FicArchive.workflow.context import RequestContext
from FicArchive.workflow.fetch import FetchedSource, StoryFetcher
from FicArchive.workflow.outcome import (
    BatchFailure,
    BatchResult,
    Notice,
    Outcome,
    Rendered,
    Route,
    Saved,
    error_notice,
    notice,
)
from FicArchive.workflow.states import WorkEvent, WorkState


@dataclass(frozen=True, slots=True)
class ImportOptions:
    """Settings applied to every imported work.

    Attributes:
        pseuds: Pseuds the imported works are credited to.
        post_without_preview: Post immediately instead of saving drafts.
        importing_for_others: Archivist import on behalf of external authors.
        restricted: Only show the works to logged-in users.
        override_tags: Replace detected tags with ``tag_strings``.
        detect_tags: Ask the parser to pick up tags from the source.
        tag_strings: Tag string fields, e.g. ``fandom_string``.
        notes: Notes added to every work.
        encoding: Override for the source text encoding.
        external_author: Author to credit when importing for others.
        external_coauthor: Co-author to credit when importing for others.
        language_id: Language of the works.
    """

    pseuds: tuple[Pseud, ...] = ()
    post_without_preview: bool = False
    importing_for_others: bool = False
    restricted: bool = False
    override_tags: bool = False
    detect_tags: bool = False
    tag_strings: Mapping[str, str] = field(default_factory=dict)
    notes: str = ""
    encoding: str | None = None
    external_author: ExternalAuthor | None = None
    external_coauthor: ExternalAuthor | None = None
    language_id: int | None = None


@dataclass(frozen=True, slots=True)
class ImportRequest:
    """Submitted import form."""

    url_text: str = ""
    import_multiple: str | None = None
    importing_for_others: bool = False
    external_author_name: str = ""
    external_author_email: str = ""
    external_coauthor_name: str = ""
    external_coauthor_email: str = ""
    pseuds_to_apply: str | None = None
    post_without_preview: bool = False
    restricted: bool = False
    override_tags: bool = False
    detect_tags: bool = False
    tag_strings: Mapping[str, str] = field(default_factory=dict)
    notes: str = ""
    encoding: str | None = None
    language_id: int | None = None

    @property
    def urls(self) -> list[str]:
        return self.url_text.split()

    @property
    def has_external_author(self) -> bool:
        return bool(self.external_author_name.strip() or self.external_author_email.strip())

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> ImportRequest:
        work_params = params.get("work") or {}
        language_id = params.get("language_id")
        return cls(
            url_text=str(params.get("urls") or ""),
            import_multiple=params.get("import_multiple") or None,
            importing_for_others=coerce_flag(params.get("importing_for_others")),
            external_author_name=str(params.get("external_author_name") or ""),
            external_author_email=str(params.get("external_author_email") or ""),
            external_coauthor_name=str(params.get("external_coauthor_name") or ""),
            external_coauthor_email=str(params.get("external_coauthor_email") or ""),
            pseuds_to_apply=params.get("pseuds_to_apply") or None,
            post_without_preview=coerce_flag(params.get("post_without_preview")),
            restricted=coerce_flag(params.get("restricted")),
            override_tags=coerce_flag(params.get("override_tags")),
            detect_tags=params.get("detect_tags") == "true",
            tag_strings={k: v for k, v in work_params.items() if k in TAG_STRING_FIELDS and v},
            notes=str(params.get("notes") or ""),
            encoding=params.get("encoding") or None,
            language_id=int(language_id) if language_id not in (None, "") else None,
        )


class StoryParser(Protocol):
    """Turns downloaded pages into unsaved works.

    Implementations raise ``StoryParseError`` when a page cannot be read.
    """

    def parse_story(self, source: FetchedSource, options: ImportOptions) -> Work:
        raise NotImplementedError

    def parse_chapters(self, sources: Sequence[FetchedSource], options: ImportOptions) -> Work:
        """Merge several chapter pages, in order, into one work."""
        raise NotImplementedError


class WorkImporter:
    """Runs single-work and batch imports with per-URL failure isolation."""

    def __init__(
        self,
        store: WorkStore,
        fetcher: StoryFetcher,
        parser: StoryParser,
        config: ImportConfig,
        notifier: InviteNotifier | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.parser = parser
        self.config = config
        self.notifier = notifier

    def import_works(self, request: ImportRequest, ctx: RequestContext) -> Outcome:
        """Check an import request and run it as a single or batch import."""
        user = ctx.require_user()
        rejection = self.check_request(request, ctx)
        if rejection is not None:
            return Rendered("new_import", notices=[rejection])

        options = self.build_options(request, user)
        urls = request.urls
        log.info("Import requested: urls=%d mode=%s user=%s", len(urls), request.import_multiple, user.login)
        if request.import_multiple == "works" and len(urls) > 1:
            return self._import_multiple(urls, options, user)
        return self._import_single(urls, options, user)

    def check_request(self, request: ImportRequest, ctx: RequestContext) -> Notice | None:
        """Return the first reason to refuse ``request``, or None."""
        urls = request.urls
        if not urls:
            return error_notice("import_no_urls")
        if request.has_external_author and not request.importing_for_others:
            return error_notice("import_external_without_others")
        if request.importing_for_others and not ctx.viewer.is_archivist:
            return error_notice("import_not_archivist")
        if request.import_multiple == "works":
            max_works = self.config.max_works_for(archivist=ctx.viewer.is_archivist)
            if len(urls) > max_works:
                return error_notice("import_too_many_works", max=max_works)
        elif request.import_multiple == "chapters" and len(urls) > self.config.max_chapters:
            return error_notice("import_too_many_chapters", max=self.config.max_chapters)
        return None

    def build_options(self, request: ImportRequest, user: User) -> ImportOptions:
        pseuds: tuple[Pseud, ...] = ()
        if request.pseuds_to_apply:
            pseuds = tuple(self.store.find_pseuds_by_byline(request.pseuds_to_apply)[:1])
        if not pseuds:
            pseuds = (user.default_pseud,)

        def external(name: str, email: str) -> ExternalAuthor | None:
            if not request.importing_for_others or not (name.strip() or email.strip()):
                return None
            return ExternalAuthor(name=name.strip(), email=email.strip())

        return ImportOptions(
            pseuds=pseuds,
            post_without_preview=request.post_without_preview,
            importing_for_others=request.importing_for_others,
            restricted=request.restricted,
            override_tags=request.override_tags,
            detect_tags=request.detect_tags,
            tag_strings=dict(request.tag_strings),
            notes=request.notes,
            encoding=request.encoding,
            external_author=external(request.external_author_name, request.external_author_email),
            external_coauthor=external(request.external_coauthor_name, request.external_coauthor_email),
            language_id=request.language_id,
        )

    def import_from_urls(self, urls: Sequence[str], options: ImportOptions) -> BatchResult[Work]:
        """Import each URL as its own work.

        Returns:
            Saved works and, per failed URL, its input index, the URL, the
            failure kind (``timeout``, ``fetch``, ``parse``, ``save``) and the
            reason.
        """
        result: BatchResult[Work] = BatchResult()
        for index, url in enumerate(urls):
            try:
                work = self.parser.parse_story(self.fetcher.fetch(url, encoding=options.encoding), options)
            except FetchTimeoutError as error:
                log.warning("Import timed out: url=%s timeout=%.0fs", url, error.timeout)
                result.failures.append(BatchFailure(index, url, "timeout", str(error)))
                continue
            except StoryFetchError as error:
                log.warning("Import fetch failed: url=%s error=%s", url, error)
                result.failures.append(BatchFailure(index, url, "fetch", str(error)))
                continue
            except StoryParseError as error:
                log.warning("Import parse failed: url=%s error=%s", url, error)
                result.failures.append(BatchFailure(index, url, "parse", str(error)))
                continue

            work = self._apply_options(work, options)
            errors = self._save(work)
            if errors:
                log.warning("Import save failed: url=%s errors=%s", url, "; ".join(map(str, errors)))
                result.failures.append(BatchFailure(index, url, "save", "; ".join(e.reason for e in errors)))
                continue
            result.succeeded.append(work)
        log.info("Batch import done: ok=%d failed=%d", len(result.succeeded), len(result.failures))
        return result

    def _import_single(self, urls: Sequence[str], options: ImportOptions, user: User) -> Outcome:
        try:
            if len(urls) == 1:
                work = self.parser.parse_story(self.fetcher.fetch(urls[0], encoding=options.encoding), options)
            else:
                sources = [self.fetcher.fetch(url, encoding=options.encoding) for url in urls]
                work = self.parser.parse_chapters(sources, options)
        except FetchTimeoutError as error:
            log.warning("Import timed out: url=%s timeout=%.0fs", error.url, error.timeout)
            return Rendered("new_import", notices=[error_notice("import_timeout")])
        except (StoryFetchError, StoryParseError) as error:
            log.warning("Import failed: urls=%s error=%s", " ".join(urls), error)
            return Rendered("new_import", notices=[error_notice("import_failed", message=str(error))])

        work = self._apply_options(work, options)
        errors = self._save(work)
        if errors:
            return Rendered("new", work=work, errors=errors, notices=[error_notice("import_partial")])

        notices = self._send_external_invites([work], options, user)
        if work.posted:
            state = WorkState.UNPOSTED.transition(WorkEvent.POST)
            target = Route("work", {"work_id": work.id})
        else:
            state = WorkState.UNPOSTED.transition(WorkEvent.PREVIEW)
            target = Route("work_preview", {"work_id": work.id})
        return Saved(work=work, state=state, target=target, notices=notices)

    def _import_multiple(self, urls: Sequence[str], options: ImportOptions, user: User) -> Rendered:
        result = self.import_from_urls(urls, options)
        notices: list[Notice] = []
        if result.failures:
            failures = "; ".join(f"{failure.key}: {failure.reason}" for failure in result.failures)
            notices.append(error_notice("import_failed_urls", failures=failures))
        if not result.ok:
            return Rendered("new_import", notices=notices, batch=result)

        notices.append(notice("import_batch_done"))
        notices.extend(self._send_external_invites(result.succeeded, options, user))
        return Rendered("import", data={"works": list(result.succeeded)}, notices=notices, batch=result)

    def _apply_options(self, work: Work, options: ImportOptions) -> Work:
        tag_strings = {
            key: value
            for key, value in options.tag_strings.items()
            if options.override_tags or not work.tags_in(TAG_FIELD_CATEGORIES[key])
        }
        work = assign_attributes(work, tag_strings)
        if not work.pseuds:
            work.pseuds = list(options.pseuds)
        work.posted = options.post_without_preview
        for chapter in work.chapters:
            chapter.posted = work.posted
        work.restricted = work.restricted or options.restricted
        if options.language_id is not None:
            work.language_id = options.language_id
        if options.notes:
            work.notes = f"{work.notes}\n{options.notes}".strip()
        for author in (options.external_author, options.external_coauthor):
            if author is not None and author not in work.external_authors:
                work.external_authors.append(author)
        return work

    def _save(self, work: Work) -> list[ValidationError]:
        try:
            for chapter in work.chapters:
                self.store.save_chapter(work, chapter)
            self.store.save_work(work)
        except StoreValidationError as error:
            return list(error.errors)
        except ConflictError as error:
            return [ValidationError("base", str(error))]
        return []

    def _send_external_invites(self, works: Sequence[Work], options: ImportOptions, user: User) -> list[Notice]:
        if not options.importing_for_others or self.notifier is None:
            return []
        authors: list[ExternalAuthor] = []
        for work in works:
            for author in work.external_authors:
                if author not in authors:
                    authors.append(author)
        if not authors:
            return []
        for author in authors:
            self.notifier.find_or_invite(author, user)
        log.info("Invited %d external author(s) for %d imported work(s)", len(authors), len(works))
        return [notice("import_authors_notified")]

