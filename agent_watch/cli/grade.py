"""Grade command — translate a risk score into grade, level and colour."""

from __future__ import annotations

import click
from rich.console import Console

from agent_watch.cli.watch import risk_style
from agent_watch.engine.risk import get_risk_color, get_risk_label, get_trust_grade

console = Console()


@click.command()
@click.argument("score", type=click.IntRange(0, 100))
def grade(score: int) -> None:
    """Show the trust grade for a 0-100 risk SCORE."""
    style = risk_style(score)
    console.print(
        f"Risk [{style}]{score}[/{style}] → grade [{style}]{get_trust_grade(score)}[/{style}], "
        f"{get_risk_label(score)} ({get_risk_color(score)})"
    )
