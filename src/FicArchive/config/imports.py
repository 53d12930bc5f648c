"""Import limits and fetch behavior."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from FicArchive.config.common import (
    check_positive,
    expect_float,
    expect_int,
    get_section,
    require,
)


@dataclass(frozen=True, slots=True)
class ImportConfig:
    """Store validated import caps and fetch settings.

    Attributes:
        max_works: Most works a regular account may import at once.
        max_works_by_archivist: Most works an archivist may import at once.
        max_chapters: Most chapter URLs merged into one work.
        fetch_timeout: Seconds allowed per source fetch.
        max_attempts: Fetch attempts for transient HTTP failures.
    """

    max_works: int
    max_works_by_archivist: int
    max_chapters: int
    fetch_timeout: float
    max_attempts: int

    def max_works_for(self, *, archivist: bool) -> int:
        return self.max_works_by_archivist if archivist else self.max_works


def load_imports(raw: Mapping[str, Any]) -> ImportConfig:
    section = get_section(raw, "imports", required=True)
    return ImportConfig(
        max_works=expect_int(require(section, "max_works", "imports.max_works"), "imports.max_works"),
        max_works_by_archivist=expect_int(
            require(section, "max_works_by_archivist", "imports.max_works_by_archivist"),
            "imports.max_works_by_archivist",
        ),
        max_chapters=expect_int(
            require(section, "max_chapters", "imports.max_chapters"), "imports.max_chapters"
        ),
        fetch_timeout=expect_float(
            require(section, "fetch_timeout", "imports.fetch_timeout"), "imports.fetch_timeout"
        ),
        max_attempts=expect_int(section.get("max_attempts", 3), "imports.max_attempts"),
    )


def check_imports(config: ImportConfig) -> None:
    check_positive(config.max_works, "imports.max_works")
    check_positive(config.max_chapters, "imports.max_chapters")
    check_positive(config.fetch_timeout, "imports.fetch_timeout")
    check_positive(config.max_attempts, "imports.max_attempts")
    if config.max_works_by_archivist < config.max_works:
        raise ValueError("imports.max_works_by_archivist must be >= imports.max_works")
