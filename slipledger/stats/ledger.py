"""Ledger performance metrics."""

from dataclasses import asdict, dataclass, field
from typing import Iterable, Sequence

from slipledger.db.models import BetRecord
from slipledger.utils.payout import to_number


@dataclass
class CapperLine:
    """Record and units for one capper."""
    capper: str
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    risk_units: float = 0.0
    net_units: float = 0.0

    @property
    def roi(self) -> float:
        return self.net_units / self.risk_units if self.risk_units > 0 else 0.0

    @property
    def record(self) -> str:
        return f"{self.wins}-{self.losses}-{self.pushes}"


@dataclass
class LedgerSummary:
    """Aggregate performance over FINAL rows."""
    open_count: int = 0
    final_count: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    voids: int = 0
    cashouts: int = 0

    risk_units: float = 0.0     # Sum of units staked on FINAL rows
    net_units: float = 0.0
    unit_size: float = 0.0      # Dollars per unit

    current_streak: int = 0     # Positive = wins, negative = losses
    streak_type: str = ""       # "W" or "L"
    peak_units: float = 0.0
    max_drawdown_units: float = 0.0

    by_capper: list[CapperLine] = field(default_factory=list)

    @property
    def roi(self) -> float:
        return self.net_units / self.risk_units if self.risk_units > 0 else 0.0

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return self.wins / decided if decided else 0.0

    @property
    def record(self) -> str:
        return f"{self.wins}-{self.losses}-{self.pushes}"

    @property
    def net_usd(self) -> float:
        return self.net_units * self.unit_size

    def format_summary(self) -> str:
        """Format metrics for display."""
        streak_str = f"{self.streak_type}{abs(self.current_streak)}" if self.current_streak != 0 else "0"
        return (
            f"Record: {self.record} ({self.win_rate:.1%}) | "
            f"Net: {self.net_units:+.2f}u | "
            f"ROI: {self.roi:+.1%} | "
            f"Streak: {streak_str} | "
            f"Max DD: {self.max_drawdown_units:.2f}u"
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["by_capper"] = [
            {**asdict(c), "record": c.record, "roi": round(c.roi, 6)} for c in self.by_capper
        ]
        data.update({
            "record": self.record,
            "win_rate": round(self.win_rate, 6),
            "roi": round(self.roi, 6),
            "net_usd": round(self.net_usd, 2),
        })
        return data


def _is_final(bet: BetRecord) -> bool:
    return str(bet.status).upper() == "FINAL"


def _is_open(bet: BetRecord) -> bool:
    return str(bet.status).upper() == "OPEN"


def ledger_facts(bets: Sequence[BetRecord]) -> dict:
    """Exact ledger numbers an assistant answer must echo."""
    finals = [b for b in bets if _is_final(b)]
    risk = sum(to_number(b.units) for b in finals)
    net = sum(b.net_units for b in finals)
    roi = net / risk if risk > 0 else 0.0

    return {
        "open_count": sum(1 for b in bets if _is_open(b)),
        "final_wins": sum(1 for b in finals if b.result == "WIN"),
        "final_losses": sum(1 for b in finals if b.result == "LOSS"),
        "final_pushes": sum(1 for b in finals if b.result == "PUSH"),
        "final_risk_units": round(risk, 4),
        "final_net_units": round(net, 4),
        "final_roi": round(roi, 6),
    }


def by_capper(bets: Iterable[BetRecord]) -> list[CapperLine]:
    """Per-capper record, sorted by net units (best first)."""
    lines: dict[str, CapperLine] = {}
    for bet in bets:
        if not _is_final(bet):
            continue
        name = (bet.capper or "").strip() or "(unknown)"
        line = lines.setdefault(name, CapperLine(capper=name))
        if bet.result == "WIN":
            line.wins += 1
        elif bet.result == "LOSS":
            line.losses += 1
        elif bet.result == "PUSH":
            line.pushes += 1
        line.risk_units += to_number(bet.units)
        line.net_units += bet.net_units
    return sorted(lines.values(), key=lambda c: c.net_units, reverse=True)


def summarize(bets: Sequence[BetRecord], unit_size: float = 0.0) -> LedgerSummary:
    """Compute the ledger summary, streak and drawdown."""
    summary = LedgerSummary(unit_size=unit_size)
    finals = [b for b in bets if _is_final(b)]

    summary.open_count = sum(1 for b in bets if _is_open(b))
    summary.final_count = len(finals)
    for bet in finals:
        if bet.result == "WIN":
            summary.wins += 1
        elif bet.result == "LOSS":
            summary.losses += 1
        elif bet.result == "PUSH":
            summary.pushes += 1
        elif bet.result == "VOID":
            summary.voids += 1
        elif bet.result == "CASHOUT":
            summary.cashouts += 1
        summary.risk_units += to_number(bet.units)
        summary.net_units += bet.net_units

    # Newest first for streak calculation
    newest_first = sorted(finals, key=lambda b: (b.date or "", b.created_at or ""), reverse=True)
    decided = [b for b in newest_first if b.result in ("WIN", "LOSS")]
    if decided:
        first = decided[0].result
        streak = 0
        for bet in decided:
            if bet.result != first:
                break
            streak += 1
        summary.current_streak = streak if first == "WIN" else -streak
        summary.streak_type = "W" if first == "WIN" else "L"

    # Running peak and worst peak-to-trough, oldest first
    running = 0.0
    peak = 0.0
    max_drawdown = 0.0
    for bet in reversed(newest_first):
        running += bet.net_units
        peak = max(peak, running)
        max_drawdown = max(max_drawdown, peak - running)
    summary.peak_units = peak
    summary.max_drawdown_units = max_drawdown

    summary.by_capper = by_capper(finals)
    return summary
