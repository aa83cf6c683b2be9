"""Slip Ledger - Main Entry Point."""

import argparse
import sqlite3
import sys

from rich.console import Console
from rich.table import Table

from config import get_settings
from slipledger.db import get_db
from slipledger.stats import summarize
from slipledger.utils import setup_logging
from slipledger.utils.export import export_bets_to_csv


console = Console()


def cmd_serve(args: argparse.Namespace) -> int:
    from slipledger.web import run_server
    run_server(host=args.host, port=args.port)
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    """Create a ledger owner and print their first token."""
    db = get_db(get_settings().db_path)
    try:
        user = db.create_user(args.username)
    except sqlite3.IntegrityError:
        console.print(f"[red]User '{args.username}' already exists[/red]")
        return 1

    token = db.issue_token(user.id)
    console.print(f"[green]Created user {user.username} (ID: {user.id})[/green]")
    console.print(f"Bearer token: [bold]{token}[/bold]")
    return 0


def cmd_token(args: argparse.Namespace) -> int:
    """Issue another bearer token for an existing user."""
    db = get_db(get_settings().db_path)
    user = db.get_user_by_name(args.username)
    if user is None:
        console.print(f"[red]No such user: {args.username}[/red]")
        return 1
    console.print(f"Bearer token: [bold]{db.issue_token(user.id)}[/bold]")
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    """Print the ledger summary and open rows."""
    settings = get_settings()
    db = get_db(settings.db_path)
    user = db.get_user_by_name(args.username)
    if user is None:
        console.print(f"[red]No such user: {args.username}[/red]")
        return 1

    bets = db.list_bets(user.id)
    summary = summarize(bets, unit_size=settings.unit_size)
    console.print(f"[bold blue]Slip Ledger[/bold blue] - {user.username}")
    console.print(summary.format_summary())
    console.print(f"Open: {summary.open_count} | Final: {summary.final_count}\n")

    open_bets = [b for b in bets if b.status == "OPEN"]
    if open_bets:
        display_open_bets(open_bets)

    if args.export:
        csv_path = export_bets_to_csv(bets, label="all")
        console.print(f"\n[green]Ledger exported to: {csv_path}[/green]")
    return 0


def display_open_bets(bets: list):
    """Display open rows in a rich table."""
    table = Table(title=f"Open Bets ({len(bets)})")
    table.add_column("Date", style="cyan")
    table.add_column("Capper")
    table.add_column("League")
    table.add_column("Play", style="bold")
    table.add_column("Odds", justify="right")
    table.add_column("Units", justify="right")
    table.add_column("Book", style="dim")

    for bet in bets:
        table.add_row(
            bet.date,
            bet.capper,
            bet.league,
            bet.play,
            f"{bet.odds:+.0f}" if bet.odds is not None else "-",
            f"{bet.units:g}" if bet.units is not None else "-",
            bet.book or "",
        )

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Slip Ledger")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=cmd_serve)

    create = sub.add_parser("create-user", help="Create a ledger owner and issue a token")
    create.add_argument("username")
    create.set_defaults(func=cmd_create_user)

    token = sub.add_parser("token", help="Issue another bearer token")
    token.add_argument("username")
    token.set_defaults(func=cmd_token)

    summary = sub.add_parser("summary", help="Show ledger summary")
    summary.add_argument("username")
    summary.add_argument("--export", action="store_true", help="Also export the ledger to CSV")
    summary.set_defaults(func=cmd_summary)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
