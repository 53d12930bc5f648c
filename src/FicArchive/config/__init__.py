from __future__ import annotations

"""Public configuration API for FicArchive."""

from FicArchive.config.app import (
    DEFAULT_CONFIG_PATH,
    AppConfig,
    load_config,
    load_config_with_defaults,
    parse_config_dict,
)
from FicArchive.config.drafts import DraftConfig
from FicArchive.config.imports import ImportConfig
from FicArchive.config.runtime import RuntimeConfig
from FicArchive.config.search import SearchConfig

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "AppConfig",
    "DraftConfig",
    "ImportConfig",
    "RuntimeConfig",
    "SearchConfig",
    "load_config",
    "load_config_with_defaults",
    "parse_config_dict",
]
