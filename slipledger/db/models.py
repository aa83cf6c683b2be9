"""Database models for the bet ledger."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from slipledger.utils.payout import net_units


@dataclass
class BetRecord:
    """One ledger row."""
    id: str = ""
    user_id: int = 0
    created_at: Optional[str] = None
    date: str = ""
    capper: str = ""

    # League classification
    league: str = ""
    sport_key: Optional[str] = None
    league_key: Optional[str] = None

    # Wager
    market: str = ""
    play: str = ""
    selection: Optional[str] = None
    line: Optional[float] = None
    odds: Optional[float] = None
    units: Optional[float] = None
    opponent: Optional[str] = None

    # Settlement
    status: str = "OPEN"  # OPEN or FINAL
    result: str = "OPEN"  # OPEN, WIN, LOSS, PUSH, VOID, CASHOUT
    final_score: Optional[str] = None

    notes: Optional[str] = None
    book: Optional[str] = None
    slip_ref: Optional[str] = None

    # AI extraction provenance (model, group_id, leg_index, total_legs, ...)
    ai_meta: dict[str, Any] = field(default_factory=dict)

    @property
    def net_units(self) -> float:
        """Net unit return, always derived from the current field values."""
        return net_units(self.odds, self.units, self.status, self.result)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["net_units"] = round(self.net_units, 4)
        return data


@dataclass
class LeagueRecord:
    """A league in a user's registry."""
    id: Optional[int] = None
    user_id: int = 0
    sport_key: str = ""
    league_key: str = ""
    league_abbrev: Optional[str] = None
    league_name: Optional[str] = None
    aliases: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UserRecord:
    """A ledger owner."""
    id: int = 0
    username: str = ""
    created_at: Optional[str] = None
