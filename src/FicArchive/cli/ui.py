"""Click CLI interface definitions."""

from __future__ import annotations

from pathlib import Path

import click
from dotenv import load_dotenv

from FicArchive.cli.runner import CommandRunner
from FicArchive.config import load_config_with_defaults


def parse_param_pairs(pairs: tuple[str, ...]) -> dict[str, object]:
    """Turn ``key=value`` options into a params mapping.

    A key given more than once collects its values into a list.

    Raises:
        click.BadParameter: If a pair has no ``=``.
    """
    params: dict[str, object] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint="-p/--param")
        key = key.strip()
        if key in params:
            existing = params[key]
            params[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            params[key] = value
    return params


@click.group(help="FicArchive: work search and posting workflow tools.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML file merged over config/default.yml.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """CLI entry group.

    Loads environment variables from .env before reading config.

    Args:
        ctx: Click context.
        config_path: Optional override config file.
    """
    load_dotenv()

    ctx.obj = load_config_with_defaults(config_path)


@cli.command("normalize")
@click.argument("query")
@click.option("-p", "--param", "params", multiple=True, help="Structured search param as key=value.")
@click.option("--logged-in", is_flag=True, help="Search as a logged-in viewer.")
@click.pass_context
def normalize_cmd(ctx: click.Context, query: str, params: tuple[str, ...], logged_in: bool) -> None:
    """Print the index request and warnings for a search QUERY."""
    runner = CommandRunner(ctx.obj)
    click.echo(
        runner.run_normalize(
            ctx.command.name,
            query=query,
            params=parse_param_pairs(params),
            logged_in=logged_in,
        )
    )


@cli.command("check-config")
@click.pass_context
def check_config_cmd(ctx: click.Context) -> None:
    """Validate the configuration and print the import limits."""
    runner = CommandRunner(ctx.obj)
    click.echo(runner.run_check_config(ctx.command.name))
