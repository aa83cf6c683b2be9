"""Suggest grades for open bets from public final scores."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from config import get_settings
from slipledger.ai import ProviderRouter, build_providers
from slipledger.api import EspnClient, MlbStatsClient, NhlClient
from slipledger.db import get_db
from slipledger.grading import GradeSuggester, merge_notes
from slipledger.utils import setup_logging

console = Console()


def _score_text(final: dict) -> str:
    return f"{final['away']} {final['away_score']:g} @ {final['home']} {final['home_score']:g}"


async def suggest_grades(username: str, apply: bool = False):
    """Check every open bet; optionally write the confident grades."""
    settings = get_settings()
    db = get_db(settings.db_path)
    user = db.get_user_by_name(username)
    if user is None:
        console.print(f"[red]No such user: {username}[/red]")
        return

    pending = db.list_bets(user.id, status="OPEN")
    if not pending:
        console.print("[yellow]No open bets to check.[/yellow]")
        return

    console.print(f"[blue]Found {len(pending)} open bets to check...[/blue]\n")

    espn = EspnClient(base_url=settings.espn_base_url)
    mlb = MlbStatsClient()
    nhl = NhlClient()
    router = ProviderRouter(build_providers(settings), timeout=settings.provider_timeout)
    suggester = GradeSuggester(espn=espn, mlb=mlb, nhl=nhl, router=router)

    results_table = Table(title="Grade Suggestions")
    results_table.add_column("Date", style="dim")
    results_table.add_column("Play", style="green")
    results_table.add_column("Score", style="white")
    results_table.add_column("Result", style="magenta")
    results_table.add_column("Note", style="cyan")

    applied = 0
    try:
        for bet in pending:
            suggestion = await suggester.suggest(bet)
            if not suggestion["ok"]:
                results_table.add_row(bet.date, bet.play, "-", "[yellow]MANUAL[/yellow]", suggestion["message"])
                continue

            grade = suggestion["grade"]
            score = _score_text(suggestion["final"])
            result_color = {"WIN": "green", "LOSS": "red", "PUSH": "yellow"}.get(grade["result"], "white")
            results_table.add_row(
                bet.date,
                bet.play,
                score,
                f"[{result_color}]{grade['result']}[/{result_color}]",
                grade.get("reason", ""),
            )

            if apply and not grade["needs_manual"]:
                updated = db.update_bet(user.id, bet.id, {
                    "status": "FINAL",
                    "result": grade["result"],
                    "final_score": score,
                    "notes": merge_notes(bet.notes, f"Auto-graded from {score}"),
                }, require_status="OPEN")
                if updated is not None:
                    applied += 1
    finally:
        await espn.close()
        await mlb.close()
        await nhl.close()
        await router.close()

    console.print(results_table)
    if apply:
        console.print(f"\n[bold]Updated {applied} bets[/bold]")
    else:
        console.print("\n[dim]Dry run. Pass --apply to write confident grades.[/dim]")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("username")
    parser.add_argument("--apply", action="store_true", help="Write grades that need no manual check")
    args = parser.parse_args()

    setup_logging(get_settings().log_level)
    asyncio.run(suggest_grades(args.username, apply=args.apply))
