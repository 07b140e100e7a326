"""Patterns command — manage custom sensitive-file patterns."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agent_watch.policies.sensitive import (
    AGENT_CONFIG_RULES,
    BUILTIN_RULES,
    SensitiveClassifier,
    compile_custom_rules,
    is_config_file,
    should_ignore,
)
from agent_watch.settings.loader import Settings, SettingsError, load_settings
from agent_watch.settings.writer import add_custom_pattern, remove_custom_pattern

console = Console()


@click.group()
def patterns() -> None:
    """Manage custom sensitive-file patterns.

    Sub-commands: list, add, remove, test
    """


@patterns.command("list")
@click.option("--all", "show_all", is_flag=True, default=False, help="Include built-in rules.")
@click.pass_context
def list_cmd(ctx: click.Context, show_all: bool) -> None:
    """List custom patterns (and built-in rules with --all)."""
    settings = _current_settings(ctx)
    custom = settings.custom_sensitive_patterns
    valid = {r.pattern.pattern for r in compile_custom_rules(custom)}

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Pattern", min_width=30)
    table.add_column("Label", min_width=20)
    table.add_column("Source", width=8)

    if show_all:
        for rule in (*AGENT_CONFIG_RULES, *BUILTIN_RULES):
            table.add_row(escape(rule.pattern.pattern), escape(rule.reason), "built-in")
    for pattern in custom:
        if pattern in valid:
            table.add_row(escape(pattern), escape(f"Custom: {pattern}"), "custom")
        else:
            table.add_row(escape(pattern), "[red]invalid, ignored[/red]", "custom")

    if table.row_count == 0:
        console.print("[yellow]No custom patterns. Add one with 'patterns add'.[/yellow]")
        return
    title = f"Sensitive Patterns ── {len(custom)} custom"
    console.print(Panel(table, title=f"[bold]{title}[/bold]", expand=False))


@patterns.command("add")
@click.argument("pattern")
@click.pass_context
def add_cmd(ctx: click.Context, pattern: str) -> None:
    """Add a case-insensitive regex PATTERN marking paths as sensitive."""
    try:
        added = add_custom_pattern(pattern, path=_settings_path(ctx))
    except SettingsError as err:
        console.print(f"[red]{escape(str(err))}. Fix or remove it first.[/red]")
        raise SystemExit(1) from err
    except ValueError as err:
        raise click.BadParameter(str(err), param_hint="PATTERN") from err
    if added:
        console.print(f"[green]✓ Pattern '{escape(pattern)}' added.[/green]")
    else:
        console.print(f"[yellow]Pattern '{escape(pattern)}' already present.[/yellow]")


@patterns.command("remove")
@click.argument("pattern")
@click.pass_context
def remove_cmd(ctx: click.Context, pattern: str) -> None:
    """Remove a custom PATTERN."""
    try:
        removed = remove_custom_pattern(pattern, path=_settings_path(ctx))
    except SettingsError as err:
        console.print(f"[red]{escape(str(err))}. Fix or remove it first.[/red]")
        raise SystemExit(1) from err
    if removed:
        console.print(f"[green]✓ Pattern '{escape(pattern)}' removed.[/green]")
    else:
        console.print(f"[red]Pattern '{escape(pattern)}' not found in custom patterns.[/red]")
        raise SystemExit(1)


@patterns.command("test")
@click.argument("path")
@click.pass_context
def test_cmd(ctx: click.Context, path: str) -> None:
    """Show how PATH would be classified."""
    settings = _current_settings(ctx)
    classifier = SensitiveClassifier(settings.custom_sensitive_patterns)

    if should_ignore(path):
        console.print(f"[dim]{escape(path)}: ignored (system noise)[/dim]")
        return
    reason = classifier.classify(path)
    if reason is None:
        console.print(f"[green]{escape(path)}: not sensitive[/green]")
    else:
        console.print(f"[red]{escape(path)}: sensitive — {escape(reason)}[/red]")
    if is_config_file(path):
        console.print("[dim]  (config file)[/dim]")


def _settings_path(ctx: click.Context) -> Path:
    return ctx.obj["settings_path"]


def _current_settings(ctx: click.Context) -> Settings:
    return load_settings(_settings_path(ctx))
