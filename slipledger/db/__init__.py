"""Database module for the bet ledger."""

from .database import Database, LedgerValidationError, get_db, validate_bet
from .models import BetRecord, LeagueRecord, UserRecord

__all__ = [
    "Database",
    "LedgerValidationError",
    "get_db",
    "validate_bet",
    "BetRecord",
    "LeagueRecord",
    "UserRecord",
]
