"""Runtime configuration (logging)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from FicArchive.config.common import expect_bool, expect_str, get_section, require

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    level: str
    to_file: bool
    dir: str


def load_runtime(raw: Mapping[str, Any]) -> RuntimeConfig:
    """Load the ``log`` section.

    Raises:
        TypeError: If a value has the wrong type.
        ValueError: If a required key is missing.
    """
    section = get_section(raw, "log", required=True)
    return RuntimeConfig(
        level=expect_str(require(section, "level", "log.level"), "log.level").upper(),
        to_file=expect_bool(require(section, "to_file", "log.to_file"), "log.to_file"),
        dir=expect_str(require(section, "dir", "log.dir"), "log.dir"),
    )


def check_runtime(config: RuntimeConfig) -> None:
    if config.level not in _LOG_LEVELS:
        raise ValueError(f"log.level must be one of {sorted(_LOG_LEVELS)}")
    if not config.dir.strip():
        raise ValueError("log.dir must not be empty")
