"""Watch command — run the scan loop and show live scores."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agent_watch.adapters.psutil_source import (
    PsutilFileHandleSource,
    PsutilNetworkSource,
    PsutilProcessSource,
)
from agent_watch.engine.risk import get_risk_color
from agent_watch.engine.scan_loop import ScanLoop, ScanReport
from agent_watch.engine.scoring import ScoringEngine
from agent_watch.policies.sensitive import SensitiveClassifier
from agent_watch.security.redaction import safe_event_text
from agent_watch.settings.loader import Settings
from agent_watch.storage.json_store import JsonFileStore

console = Console()

# risk colour -> rich style
_RICH_STYLES = {"green": "green", "yellow": "yellow", "orange": "dark_orange", "red": "bold red"}


def risk_style(score: int) -> str:
    return _RICH_STYLES[get_risk_color(score)]


def build_loop(settings: Settings, project_dir: str | None = None) -> ScanLoop:
    """Wire a ScanLoop over the live OS from settings."""
    engine = ScoringEngine(
        JsonFileStore(settings.data_dir),
        project_dir=project_dir or settings.project_dir,
    )
    return ScanLoop(
        engine,
        processes=PsutilProcessSource(),
        files=PsutilFileHandleSource(),
        network=PsutilNetworkSource(),
        classifier=SensitiveClassifier(settings.custom_sensitive_patterns),
        trust_overrides=settings.agent_trust,
        scan_interval=settings.scan_interval_sec,
        network_interval=settings.network_interval_sec,
    )


@click.command()
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between scans (default: scan_interval_sec from settings).",
)
@click.option("--once", is_flag=True, default=False, help="Run a single scan cycle and exit.")
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory whose files never count toward risk.",
)
@click.pass_context
def watch(ctx: click.Context, interval: float | None, once: bool, project_dir: str | None) -> None:
    """Scan running AI agents and score their behavior until Ctrl-C."""
    settings: Settings = ctx.obj["settings"]
    loop = build_loop(settings, project_dir=project_dir)
    if interval is not None:
        loop.scan_interval = interval

    loop.engine.start()
    console.print(
        f"[bold]Watching AI agents[/bold] [dim](every {loop.scan_interval:g}s, "
        f"baselines in {settings.data_dir})[/dim]\n"
    )
    try:
        loop.run(max_cycles=1 if once else None, on_report=render_report)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping…[/dim]")
    finally:
        folded = loop.shutdown()
        loop.engine.close()
        if folded:
            console.print(f"[green]✓ Baselines updated for: {', '.join(folded)}[/green]")


def render_report(report: ScanReport) -> None:
    for warning in report.deviations:
        console.print(f"[bold yellow]⚠ {escape(warning.message)}[/bold yellow]")
    for event in report.file_events:
        color = "red" if event.sensitive else "dim"
        console.print(f"[{color}]{escape(event.agent)}: {escape(safe_event_text(event))}[/{color}]")
    if report.failed_phases:
        console.print(f"[red]Scan phases failed: {', '.join(report.failed_phases)}[/red]")

    if not report.assessments:
        console.print("[dim]No AI agents running.[/dim]")
        return

    by_pid = {a.pid: a for a in report.agents}
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("Agent", min_width=24)
    table.add_column("PID", justify="right", style="dim")
    table.add_column("Risk", justify="right", width=5)
    table.add_column("Grade", width=5)
    table.add_column("Level", width=9)
    table.add_column("Anomaly", justify="right", width=7)
    table.add_column("Project", style="dim")

    for assessment in sorted(report.assessments, key=lambda a: -a.risk_score):
        process = by_pid.get(assessment.pid)
        label = process.display_label if process else assessment.agent
        color = risk_style(assessment.risk_score)
        table.add_row(
            escape(label),
            str(assessment.pid),
            f"[{color}]{assessment.risk_score}[/{color}]",
            f"[{color}]{assessment.trust_grade}[/{color}]",
            f"[{color}]{assessment.risk_label}[/{color}]",
            str(assessment.anomaly.score),
            escape(process.cwd) if process and process.cwd else "—",
        )
    console.print(table)
    console.print()
