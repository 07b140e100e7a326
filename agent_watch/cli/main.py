"""CLI entry point for agent-watch."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from agent_watch.cli.baselines import baselines
from agent_watch.cli.grade import grade
from agent_watch.cli.patterns import patterns
from agent_watch.cli.watch import watch
from agent_watch.settings.loader import LOG_LEVELS, SETTINGS_PATH, load_settings


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(package_name="agent-watch")
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=SETTINGS_PATH,
    show_default=True,
    help="Settings YAML file.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override the log level from settings.",
)
@click.pass_context
def cli(ctx: click.Context, settings_path: Path, log_level: str | None) -> None:
    """Agent Watch — behavioral trust scoring for AI coding agents."""
    settings = load_settings(settings_path)
    configure_logging((log_level or settings.log_level).upper())
    ctx.obj = {"settings": settings, "settings_path": settings_path}


cli.add_command(watch)
cli.add_command(baselines)
cli.add_command(patterns)
cli.add_command(grade)
