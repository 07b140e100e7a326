"""Baselines command — inspect and reset learned per-agent behavior."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agent_watch.domain.models import MIN_BASELINE_SESSIONS, AgentBaseline
from agent_watch.engine.baselines import BaselineStore
from agent_watch.settings.loader import Settings
from agent_watch.storage.json_store import JsonFileStore

console = Console()


def _open_store(ctx: click.Context) -> BaselineStore:
    settings: Settings = ctx.obj["settings"]
    store = BaselineStore(JsonFileStore(settings.data_dir))
    store.load()
    return store


@click.group(invoke_without_command=True)
@click.option("--agent", default=None, help="Show the detailed baseline of one agent.")
@click.pass_context
def baselines(ctx: click.Context, agent: str | None) -> None:
    """Show learned behavioral baselines.

    Sub-commands: reset
    """
    if ctx.invoked_subcommand is not None:
        return

    store = _open_store(ctx)
    try:
        if agent is not None:
            baseline = store.get(agent)
            if baseline is None:
                console.print(f"[red]No baseline for '{escape(agent)}'.[/red]")
                raise SystemExit(1)
            _show_detail(agent, baseline)
        else:
            _show_summary(store.snapshot())
    finally:
        store.close()


def _show_summary(snapshot: dict[str, AgentBaseline]) -> None:
    if not snapshot:
        console.print("[yellow]No baselines recorded yet.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Agent", min_width=16)
    table.add_column("Sessions", justify="right")
    table.add_column("Status", min_width=12)
    table.add_column("Files", justify="right")
    table.add_column("Sensitive", justify="right")
    table.add_column("Endpoints", justify="right")

    for name in sorted(snapshot):
        baseline = snapshot[name]
        avg = baseline.averages
        status = (
            "[green]mature[/green]"
            if baseline.is_mature
            else f"[dim]learning {baseline.session_count}/{MIN_BASELINE_SESSIONS}[/dim]"
        )
        table.add_row(
            escape(name),
            str(baseline.session_count),
            status,
            f"{avg.files_per_session:.1f}",
            f"{avg.sensitive_per_session:.1f}",
            str(len(avg.known_endpoints)),
        )
    title = f"[bold]Baselines ── {len(snapshot)} agent(s)[/bold]"
    console.print(Panel(table, title=title, expand=False))


def _show_detail(name: str, baseline: AgentBaseline) -> None:
    avg = baseline.averages
    histogram = avg.hour_histogram or []
    active_hours = [f"{h:02d}" for h, n in enumerate(histogram) if n > 0]
    lines = [
        f"Sessions folded:     {baseline.session_count} ({len(baseline.sessions)} retained)",
        f"Files per session:   {avg.files_per_session:.1f}",
        f"Sensitive/session:   {avg.sensitive_per_session:.1f}",
        f"Typical directories: {len(avg.typical_directories)}",
        f"Known endpoints:     {', '.join(avg.known_endpoints) or '—'}",
        f"Sensitive kinds:     {', '.join(avg.known_sensitive_reasons) or '—'}",
        f"Active hours:        {', '.join(active_hours) or '—'}",
    ]
    body = escape("\n".join(lines))
    console.print(Panel(body, title=f"[bold]{escape(name)}[/bold]", expand=False))


# ── Sub-commands ──────────────────────────────────────────────────────────────


@baselines.command("reset")
@click.argument("name")
@click.pass_context
def reset_cmd(ctx: click.Context, name: str) -> None:
    """Forget the learned baseline of agent NAME."""
    store = _open_store(ctx)
    try:
        if not store.reset(name):
            console.print(f"[red]No baseline for '{escape(name)}'.[/red]")
            raise SystemExit(1)
        if not store.save():
            raise click.ClickException("Could not write baselines; see log for details.")
    finally:
        store.close()
    console.print(f"[green]✓ Baseline for '{escape(name)}' reset.[/green]")
