"""Command runner: logging setup and error boundary for CLI commands."""

from __future__ import annotations

import json
from typing import Any, Mapping

import click

from FicArchive.config import AppConfig
from FicArchive.search.compile import compile_search_request
from FicArchive.search.normalize import normalize
from FicArchive.utils.log import configure_logging, log


class CommandRunner:
    """Runs one CLI command against a loaded configuration."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    def _configure_logging(self, action: str) -> None:
        configure_logging(
            level=self.config.runtime.level,
            command=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )

    def run_normalize(
        self,
        action: str,
        *,
        query: str,
        params: Mapping[str, Any],
        logged_in: bool,
    ) -> str:
        """Normalize a search and return the index request as JSON.

        Raises:
            click.Abort: When normalization fails unexpectedly.
        """
        self._configure_logging(action)
        try:
            normalized, warnings = normalize(query, params, show_restricted=logged_in)
            payload = {
                "request": compile_search_request(normalized),
                "warnings": [{"code": w.code, "message": w.message} for w in warnings],
            }
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("Normalize failed: %s", e)
            raise click.Abort from e
        for warning in warnings:
            log.warning("%s: %s", warning.code, warning.message)
        return json.dumps(payload, ensure_ascii=False, indent=2)

    def run_check_config(self, action: str) -> str:
        self._configure_logging(action)
        imports = self.config.imports
        log.info("Configuration OK")
        return (
            f"max_works={imports.max_works} "
            f"max_works_by_archivist={imports.max_works_by_archivist} "
            f"max_chapters={imports.max_chapters} "
            f"fetch_timeout={imports.fetch_timeout:g}s "
            f"draft_expiry_months={self.config.drafts.expiry_months}"
        )
