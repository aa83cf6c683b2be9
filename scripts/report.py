"""Generate performance report from the ledger database."""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from config import get_settings
from slipledger.db import get_db
from slipledger.stats import summarize

console = Console()


def generate_report(username: str):
    """Generate and display performance report."""
    settings = get_settings()
    db = get_db(settings.db_path)
    user = db.get_user_by_name(username)
    if user is None:
        console.print(f"[red]No such user: {username}[/red]")
        return

    bets = db.list_bets(user.id)
    summary = summarize(bets, unit_size=settings.unit_size)

    if summary.final_count == 0:
        console.print("[yellow]No settled bets to report on yet.[/yellow]")
        console.print("[dim]Grade open bets via /api/grade or scripts/suggest_grades.py[/dim]")
        return

    win_rate = summary.win_rate * 100
    roi = summary.roi * 100

    win_color = "green" if win_rate >= 50 else "red"
    roi_color = "green" if roi >= 0 else "red"
    net_color = "green" if summary.net_units >= 0 else "red"
    streak = f"{summary.streak_type}{abs(summary.current_streak)}" if summary.current_streak else "-"

    console.print(Panel.fit(
        f"[bold]Settled Bets:[/bold] {summary.final_count}\n"
        f"[bold]Record:[/bold] {summary.record}"
        f" (void {summary.voids}, cashout {summary.cashouts})\n"
        f"[bold]Win Rate:[/bold] [{win_color}]{win_rate:.1f}%[/{win_color}]\n"
        f"[bold]Net:[/bold] [{net_color}]{summary.net_units:+.2f}u (${summary.net_usd:+.2f})[/{net_color}]\n"
        f"[bold]ROI:[/bold] [{roi_color}]{roi:+.1f}%[/{roi_color}]\n"
        f"[bold]Streak:[/bold] {streak} | [bold]Max DD:[/bold] {summary.max_drawdown_units:.2f}u",
        title="Overall Performance",
        border_style="blue",
    ))

    # By capper
    if summary.by_capper:
        capper_table = Table(title="Performance by Capper")
        capper_table.add_column("Capper", style="cyan")
        capper_table.add_column("Record", style="white")
        capper_table.add_column("Risk", style="yellow")
        capper_table.add_column("Net", style="green")
        capper_table.add_column("ROI", style="magenta")

        for line in summary.by_capper:
            color = "green" if line.net_units >= 0 else "red"
            capper_table.add_row(
                line.capper,
                line.record,
                f"{line.risk_units:g}u",
                f"[{color}]{line.net_units:+.2f}u[/{color}]",
                f"[{color}]{line.roi:+.1%}[/{color}]",
            )

        console.print()
        console.print(capper_table)

    # Recent settled rows (list_bets is newest first)
    finals = [b for b in bets if b.status == "FINAL"]
    recent_table = Table(title="Recent Results (Last 10)")
    recent_table.add_column("Date", style="dim")
    recent_table.add_column("Capper", style="cyan")
    recent_table.add_column("Play", style="green")
    recent_table.add_column("Odds", style="yellow")
    recent_table.add_column("Score", style="white")
    recent_table.add_column("Result", style="magenta")
    recent_table.add_column("Net", style="cyan")

    for bet in finals[:10]:
        result_color = {"WIN": "green", "LOSS": "red", "PUSH": "yellow"}.get(bet.result, "white")
        net = bet.net_units
        net_color = "green" if net >= 0 else "red"
        recent_table.add_row(
            bet.date,
            bet.capper,
            bet.play,
            f"{bet.odds:+.0f}" if bet.odds is not None else "N/A",
            bet.final_score or "N/A",
            f"[{result_color}]{bet.result}[/{result_color}]",
            f"[{net_color}]{net:+.2f}u[/{net_color}]",
        )

    console.print()
    console.print(recent_table)

    if summary.open_count:
        console.print(f"\n[dim]Open bets awaiting results: {summary.open_count}[/dim]")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        console.print("Usage: python scripts/report.py <username>")
        sys.exit(1)
    generate_report(sys.argv[1])
