"""CLI package for FicArchive maintenance commands."""

from __future__ import annotations

__all__ = ["CommandRunner", "main"]

from FicArchive.cli.runner import CommandRunner
from FicArchive.cli.ui import cli


def main() -> None:
    """Run the FicArchive CLI.

    Entry point referenced by the console script in pyproject.toml.
    """
    cli()
