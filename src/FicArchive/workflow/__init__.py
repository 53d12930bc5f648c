"""Posting and authorization workflow for FicArchive.

Single-work operations, bulk operations and imports, each returning a
tagged outcome for the calling layer to present.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from FicArchive.workflow.bulk import BulkEditor
from FicArchive.workflow.context import FormAction, RequestContext, Viewer
from FicArchive.workflow.engine import WorkflowEngine, WorkForm
from FicArchive.workflow.fetch import StoryFetcher
from FicArchive.workflow.importer import ImportRequest, StoryParser, WorkImporter
from FicArchive.workflow.outcome import BatchResult, Outcome, Redirected, Rendered, Saved
from FicArchive.workflow.states import WorkEvent, WorkState

if TYPE_CHECKING:
    from FicArchive.config import AppConfig
    from FicArchive.storage.protocols import ActivityLog, InviteNotifier, ResultCache, WorkStore


def create_workflow_engine(
    config: AppConfig,
    store: WorkStore,
    *,
    cache: ResultCache | None = None,
    activity_log: ActivityLog | None = None,
) -> WorkflowEngine:
    return WorkflowEngine(store, drafts=config.drafts, cache=cache, activity_log=activity_log)


def create_importer(
    config: AppConfig,
    store: WorkStore,
    parser: StoryParser,
    notifier: InviteNotifier | None = None,
) -> WorkImporter:
    """Create an importer whose fetcher honors the configured timeout.

    Args:
        config: Application configuration containing import settings.
        store: Persistence store imported works are saved to.
        parser: Parser turning downloaded pages into works.
        notifier: Invitation service for external authors.

    Returns:
        Configured WorkImporter instance.
    """
    fetcher = StoryFetcher.from_config(config.imports)
    return WorkImporter(store, fetcher, parser, config.imports, notifier)


__all__ = [
    "BatchResult",
    "BulkEditor",
    "FormAction",
    "ImportRequest",
    "Outcome",
    "Redirected",
    "Rendered",
    "RequestContext",
    "Saved",
    "StoryFetcher",
    "StoryParser",
    "Viewer",
    "WorkEvent",
    "WorkForm",
    "WorkImporter",
    "WorkState",
    "WorkflowEngine",
    "create_importer",
    "create_workflow_engine",
]
