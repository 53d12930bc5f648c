"""User-facing message templates.

Only the key and its parameters belong to the workflow contract; the wording
here is the default English rendering.
"""

from __future__ import annotations

from typing import Any, Mapping

TEMPLATES: Mapping[str, str] = {
    # authorship
    "no_pseud_selected": (
        "You haven't selected any pseuds for this work. Please use Remove Me As Author "
        "or consider orphaning your work instead if you do not wish to be associated with it anymore."
    ),
    "pseud_not_allowed": "You're not allowed to use that pseud.",
    "removed_as_author": "You have been removed as an author from the work.",
    # posting
    "posting_canceled": "New work posting canceled.",
    "draft_created": "Draft was successfully created. It will be automatically deleted on {deletion_date}.",
    "draft_expiry": "This draft will be automatically deleted on {deletion_date} unless you post it.",
    "changes_not_saved": (
        "Your changes have not been saved. Please post your work or save without posting "
        "if you want to keep them."
    ),
    "work_posted": "Work was successfully posted. It should appear in work listings within the next few minutes.",
    "work_updated": "Work was successfully updated.",
    "work_not_updated": "The work was not updated.",
    "draft_retained": (
        "The work was not posted. It will be saved here in your drafts for {months} month(s), "
        "then deleted from the Archive."
    ),
    "tags_updated": "Tags were successfully updated.",
    "required_tags_missing": "Please add all required tags. {missing}",
    "conflict": "This work was changed somewhere else while you were editing it. Please reload and try again.",
    "post_own_only": "You can only post your own works.",
    "already_posted": "That work is already posted. Do you want to edit it instead?",
    "posting_problems": "There were problems posting your work.",
    "draft_posted": "Your work was successfully posted.",
    "moderated_submitted": (
        "Work was submitted to a moderated collection. It will show up in the collection once approved."
    ),
    "moderated_pending_one": (
        "You have submitted your work to the moderated collection '{collections}'. It will not become "
        "a part of the collection until it has been approved by a moderator."
    ),
    "moderated_pending_many": (
        "You have submitted your work to moderated collections ({collections}). It will not become "
        "a part of those collections until it has been approved by a moderator."
    ),
    # drafts and deletion
    "drafts_whose": "Whose drafts did you want to look at?",
    "drafts_not_own": "You can only see your own drafts, sorry!",
    "work_deleted": "Your work {title} was deleted.",
    "delete_failed": "We couldn't delete that right now, sorry! Please try again later.",
    # bulk
    "bulk_edit_done": "Your edits were put through! Please check over the works to make sure everything is right.",
    "bulk_edit_failed": "There were problems editing some works: {errors}",
    "bulk_edit_item_failed": "The work {title} could not be edited: {error}",
    "works_deleted": "Your works {titles} were deleted.",
    "bulk_delete_failed": "Some works could not be deleted: {titles}",
    # import
    "import_no_urls": "Did you want to enter a URL?",
    "import_external_without_others": (
        "You have entered an external author name or e-mail address but did not select "
        '"Import for others." Please select the "Import for others" option or remove the '
        "external author information to continue."
    ),
    "import_not_archivist": "You may not import stories by other users unless you are an approved archivist.",
    "import_too_many_works": "You cannot import more than {max} works at a time.",
    "import_too_many_chapters": "You cannot import more than {max} chapters at a time.",
    "import_timeout": (
        "Import has timed out. This may be due to connectivity problems with the source site. "
        "Please try again in a few minutes."
    ),
    "import_failed": "We couldn't successfully import that work, sorry: {message}",
    "import_partial": "We were only partially able to import this work and couldn't save it. Please review below!",
    "import_failed_urls": "Failed imports: {failures}",
    "import_batch_done": (
        "Importing completed successfully for the following works! "
        "(But please check the results over carefully!)"
    ),
    "import_authors_notified": (
        "We have notified the author(s) you imported works for. If any were missed, "
        "you can also add co-authors manually."
    ),
    # search and admin
    "search_title": "Search Works",
    "search_matching": "Works Matching '{query}'",
    "owner_works": "{name} - Works",
    "latest_works": "Latest Works",
    "collected_works": "{name} - Collected Works",
    "reindex_queued": "Work queued to be reindexed",
    "no_permission": "Sorry, you don't have permission to perform this action.",
}


def render(key: str, params: Mapping[str, Any] | None = None) -> str:
    """Render a message template; unknown keys render as the key itself."""
    template = TEMPLATES.get(key)
    if template is None:
        return key
    return template.format(**(params or {}))
