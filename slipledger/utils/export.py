"""Export utilities for ledger rows."""

from datetime import datetime
from pathlib import Path

import pandas as pd

from slipledger.db.models import BetRecord

EXPORT_COLUMNS = [
    "id", "date", "capper", "league", "market", "play", "selection", "line",
    "odds", "units", "opponent", "status", "result", "final_score", "net_units",
    "book", "slip_ref", "notes",
]


def bets_to_frame(bets: list[BetRecord]) -> pd.DataFrame:
    """Build a DataFrame of ledger rows with computed net units."""
    data = []
    for bet in bets:
        row = {col: getattr(bet, col, None) for col in EXPORT_COLUMNS if col != "net_units"}
        row["net_units"] = round(bet.net_units, 4)
        data.append(row)
    return pd.DataFrame(data, columns=EXPORT_COLUMNS)


def bets_to_csv(bets: list[BetRecord]) -> str:
    """Render ledger rows as CSV text."""
    return bets_to_frame(bets).to_csv(index=False)


def export_bets_to_csv(
    bets: list[BetRecord],
    output_dir: str = "output",
    label: str = "all",
) -> Path:
    """Export ledger rows to a timestamped CSV file.

    Args:
        bets: Ledger rows to export
        output_dir: Directory to save the CSV file
        label: Filename label (e.g. "open", "final")

    Returns:
        Path to the created CSV file
    """
    output_path = Path(output_dir)
    output_path.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = output_path / f"ledger_{label}_{timestamp}.csv"
    bets_to_frame(bets).to_csv(filename, index=False)

    return filename
