"""American-odds payout math for ledger rows."""

import math
from typing import Any, Optional


def finite_or_none(value: Any) -> Optional[float]:
    """Coerce a number or numeric string to float; None for anything else, NaN or infinity."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(str(value).strip())
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a stored value (number, numeric string, None) to float."""
    n = finite_or_none(value)
    return default if n is None else n


def decimal_odds_from_american(american_odds: float) -> float:
    """Convert American odds to decimal odds.

    Args:
        american_odds: American format odds (+150, -110, etc.)

    Returns:
        Decimal odds (e.g., 2.5 for +150). Zero odds are treated as even money.
    """
    if american_odds > 0:
        return (american_odds / 100) + 1
    elif american_odds < 0:
        return (100 / abs(american_odds)) + 1
    return 2.0


def win_profit(odds: Any, units: Any) -> float:
    """Profit in units for a winning wager.

    +150 on 2u -> 3.0u, -110 on 2u -> 1.818u.
    """
    stake = to_number(units)
    return stake * (decimal_odds_from_american(to_number(odds)) - 1)


def net_units(odds: Any, units: Any, status: Any, result: Any) -> float:
    """Net unit return of a ledger row.

    Only FINAL rows contribute. WIN pays by the American-odds formula,
    LOSS costs the stake, PUSH/VOID/CASHOUT net zero.
    """
    if str(status or "").upper() != "FINAL":
        return 0.0

    outcome = str(result or "").upper()
    if outcome == "WIN":
        return win_profit(odds, units)
    if outcome == "LOSS":
        return -to_number(units)
    return 0.0
