from __future__ import annotations

"""Root config assembly and YAML loading."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from FicArchive.config.drafts import DraftConfig, check_drafts, load_drafts
from FicArchive.config.imports import ImportConfig, check_imports, load_imports
from FicArchive.config.runtime import RuntimeConfig, check_runtime, load_runtime
from FicArchive.config.search import SearchConfig, check_search, load_search

DEFAULT_CONFIG_PATH = Path("config/default.yml")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application root configuration."""

    runtime: RuntimeConfig
    search: SearchConfig
    imports: ImportConfig
    drafts: DraftConfig


def parse_config_dict(raw: Mapping[str, Any]) -> AppConfig:
    """Load and validate every section of a merged config mapping."""
    runtime = load_runtime(raw)
    search = load_search(raw)
    imports = load_imports(raw)
    drafts = load_drafts(raw)

    check_runtime(runtime)
    check_search(search)
    check_imports(imports)
    check_drafts(drafts)

    return AppConfig(runtime=runtime, search=search, imports=imports, drafts=drafts)


def load_config(path: Path) -> AppConfig:
    """Load a single YAML file without merging defaults."""
    return parse_config_dict(parse_yaml(path.read_text(encoding="utf-8")))


def load_config_with_defaults(
    config_path: Path | None,
    default_path: Path = DEFAULT_CONFIG_PATH,
    *,
    defaults_text: str | None = None,
) -> AppConfig:
    """Load defaults and deep-merge an optional override file over them.

    Args:
        config_path: Override file, or None to use the defaults alone.
        default_path: Defaults file, read unless ``defaults_text`` is given.
        defaults_text: Defaults as YAML text.
    """
    if defaults_text is None:
        defaults_text = default_path.read_text(encoding="utf-8")
    base = parse_yaml(defaults_text)
    if config_path is None or config_path == default_path:
        return parse_config_dict(base)
    override = parse_yaml(config_path.read_text(encoding="utf-8"))
    return parse_config_dict(merge_config_dicts(base, override))


def parse_yaml(text: str) -> dict[str, Any]:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config root must be a mapping/object")
    return dict(data)


def merge_config_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` into ``base``; nested mappings merge, the rest replaces."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config_dicts(current, value)
        else:
            merged[key] = value
    return merged
