"""Utility functions."""

from .payout import (
    decimal_odds_from_american,
    finite_or_none,
    net_units,
    to_number,
    win_profit,
)
from .text import normalize_text, overlap_score, teams_match, token_set
from .logging_setup import setup_logging

__all__ = [
    "decimal_odds_from_american",
    "finite_or_none",
    "net_units",
    "to_number",
    "win_profit",
    "normalize_text",
    "overlap_score",
    "teams_match",
    "token_set",
    "setup_logging",
]
