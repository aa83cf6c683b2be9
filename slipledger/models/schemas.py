"""Pydantic schemas for ledger payloads and AI extraction output."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from slipledger.utils.payout import finite_or_none


class BetStatus(str, Enum):
    """Settlement state of a ledger row."""
    OPEN = "OPEN"
    FINAL = "FINAL"


class BetResult(str, Enum):
    """Outcome of a ledger row."""
    OPEN = "OPEN"
    WIN = "WIN"
    LOSS = "LOSS"
    PUSH = "PUSH"
    VOID = "VOID"
    CASHOUT = "CASHOUT"


class Strategy(str, Enum):
    """Provider routing strategy."""
    FAST = "fast"
    BALANCED = "balanced"
    CONSENSUS = "consensus"


def normalize_status(value: Any) -> BetStatus:
    """Anything other than FINAL is treated as OPEN."""
    if isinstance(value, BetStatus):
        return value
    return BetStatus.FINAL if str(value or "").strip().upper() == "FINAL" else BetStatus.OPEN


def normalize_result(value: Any) -> BetResult:
    """Unknown results collapse to OPEN."""
    if isinstance(value, BetResult):
        return value
    try:
        return BetResult(str(value or "").strip().upper())
    except ValueError:
        return BetResult.OPEN


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============== LEDGER PAYLOADS ==============

class BetIn(BaseModel):
    """Payload for creating a ledger row."""
    date: str = Field(min_length=1)
    capper: str = Field(min_length=1)
    league: str = Field(min_length=1)
    market: str = Field(min_length=1)
    play: str = Field(min_length=1)
    selection: str | None = None
    line: float | None = None
    odds: float | None = None
    units: float | None = None
    opponent: str | None = None
    status: BetStatus = BetStatus.OPEN
    result: BetResult = BetResult.OPEN
    final_score: str | None = None
    notes: str | None = None
    book: str | None = None
    slip_ref: str | None = None
    ai_meta: dict[str, Any] | None = None

    @field_validator("date", "capper", "league", "market", "play", mode="before")
    @classmethod
    def _strip_required(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("line", "odds", "units", "selection", "opponent", "final_score",
                     "notes", "book", "slip_ref", mode="before")
    @classmethod
    def _blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _final_needs_result(self) -> "BetIn":
        if self.status == BetStatus.FINAL and self.result == BetResult.OPEN:
            raise ValueError("A FINAL bet must have a result other than OPEN")
        return self


class BetPatch(BaseModel):
    """Partial update for a ledger row; unset fields are left alone."""
    date: str | None = None
    capper: str | None = None
    league: str | None = None
    market: str | None = None
    play: str | None = None
    selection: str | None = None
    line: float | None = None
    odds: float | None = None
    units: float | None = None
    opponent: str | None = None
    status: BetStatus | None = None
    result: BetResult | None = None
    final_score: str | None = None
    notes: str | None = None
    book: str | None = None
    slip_ref: str | None = None
    ai_meta: dict[str, Any] | None = None

    @field_validator("line", "odds", "units", mode="before")
    @classmethod
    def _blank_numbers(cls, v: Any) -> Any:
        return _blank_to_none(v)


# ============== SETTLED SLIP EXTRACTION ==============

class TicketEvidence(BaseModel):
    """Visual cues the vision model saw on a settled ticket."""
    won_tag: bool = False
    lost_tag: bool = False
    confetti: bool = False
    paid_amount_shown: bool = False
    final_score_shown: bool = False

    @field_validator("*", mode="before")
    @classmethod
    def _truthy(cls, v: Any) -> bool:
        return bool(v)


class ExtractedTicket(BaseModel):
    """Ticket-level settlement read from a slip image."""
    ticket_status: BetStatus = BetStatus.OPEN
    ticket_result: BetResult = BetResult.OPEN
    book: str | None = None
    slip_ref: str | None = None
    paid_amount: float | None = None
    final_score_visible: bool = False
    evidence: TicketEvidence = Field(default_factory=TicketEvidence)
    notes: str | None = None

    @field_validator("ticket_status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> BetStatus:
        return normalize_status(v)

    @field_validator("ticket_result", mode="before")
    @classmethod
    def _result(cls, v: Any) -> BetResult:
        return normalize_result(v)

    @field_validator("book", "slip_ref", "notes", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return str(v) if v else None

    @field_validator("paid_amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> float | None:
        return finite_or_none(v)

    @field_validator("final_score_visible", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("evidence", mode="before")
    @classmethod
    def _evidence(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, TicketEvidence)) else {}


class ExtractedLeg(BaseModel):
    """One visible leg on a settled slip."""
    leg_index: int | None = None
    total_legs: int | None = None
    parlay: bool = False
    market: str | None = None
    play: str | None = None
    selection: str | None = None
    line: float | str | None = None
    odds: float | str | None = None
    opponent: str | None = None
    result: BetResult | None = None
    final_score: str | None = None
    player_name: str | None = None
    team_name: str | None = None
    confidence: float | None = None

    @field_validator("leg_index", "total_legs", mode="before")
    @classmethod
    def _int_or_none(cls, v: Any) -> int | None:
        n = finite_or_none(v)
        return None if n is None else int(n)

    @field_validator("confidence", mode="before")
    @classmethod
    def _float_or_none(cls, v: Any) -> float | None:
        return finite_or_none(v)

    @field_validator("parlay", mode="before")
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("line", "odds", mode="before")
    @classmethod
    def _scalar(cls, v: Any) -> Any:
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            return None
        return v

    @field_validator("market", "play", "selection", "opponent", "final_score",
                     "player_name", "team_name", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str | None:
        return str(v) if v else None

    @field_validator("result", mode="before")
    @classmethod
    def _result(cls, v: Any) -> BetResult | None:
        return normalize_result(v) if v else None


class ExtractedGrade(BaseModel):
    """Normalized settled-slip extraction."""
    ticket: ExtractedTicket = Field(default_factory=ExtractedTicket)
    bets: list[ExtractedLeg] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)

    @classmethod
    def from_model_output(cls, parsed: Any) -> "ExtractedGrade":
        """Coerce whatever JSON the vision model returned."""
        if not isinstance(parsed, dict):
            parsed = {}
        ticket = parsed.get("ticket")
        legs = parsed.get("bets")
        issues = parsed.get("issues")
        return cls(
            ticket=ticket if isinstance(ticket, dict) else {},
            bets=[b for b in legs if isinstance(b, dict)] if isinstance(legs, list) else [],
            issues=[str(x) for x in issues] if isinstance(issues, list) else [],
        )


class BetSnapshot(BaseModel):
    """Row state before a grade is applied."""
    status: str
    result: str
    final_score: str | None = None
    notes: str | None = None


class GradeChange(BaseModel):
    """Row state a grade proposes."""
    status: BetStatus
    result: BetResult
    final_score: str | None = None
    notes_append: str | None = None


class GradeProposal(BaseModel):
    """Proposed settlement of one ledger row."""
    bet_id: str
    match_reason: str
    confidence: float
    before: BetSnapshot
    after: GradeChange


# ============== SLIP SCAN ==============

class ScannedBet(BaseModel):
    """Candidate ledger row read from a pending slip, pending user review."""
    date: str = ""
    capper: str = ""
    league: str = ""
    market: str = ""
    play: str = ""
    selection: str = ""
    line: str = ""
    odds: str = ""
    units: str = ""
    opponent: str = ""
    notes: str = ""
    ai_meta: dict[str, Any] = Field(default_factory=dict)


class ScanResult(BaseModel):
    """Slip scan output."""
    issues: list[str] = Field(default_factory=list)
    bets: list[ScannedBet] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)


# ============== ASSISTANT ==============

class AssistantRequest(BaseModel):
    """Ledger question."""
    prompt: str = ""
    strategy: Strategy = Strategy.BALANCED

    @field_validator("strategy", mode="before")
    @classmethod
    def _strategy(cls, v: Any) -> Strategy:
        try:
            return Strategy(str(v or "balanced").strip().lower())
        except ValueError:
            return Strategy.BALANCED


class AssistantAnswer(BaseModel):
    """Validated assistant answer."""
    answer_markdown: str
    used_bet_ids: list[str] = Field(default_factory=list)


# ============== GRADE SUGGESTION ==============

class FinalScore(BaseModel):
    """Final (or latest) score of a game from a public scoreboard."""
    final: bool
    home: str
    away: str
    home_score: float
    away_score: float
    sources: list[str] = Field(default_factory=list)


class GradeSuggestRequest(BaseModel):
    """Ask for a score-based grade of one bet."""
    bet_id: str = Field(min_length=1)


# ============== LEAGUES ==============

class LeagueResolveItem(BaseModel):
    """Free-text league label and/or explicit keys to resolve."""
    league_text: str = ""
    sport_key: str = ""
    league_key: str = ""
    scoreboard_url: str = ""


class ResolvedLeague(BaseModel):
    """Canonical league identity."""
    sport_key: str
    league_key: str
    league_abbrev: str | None = None
    league_name: str | None = None
    source: str  # registry | builtin | espn | candidate
    scoreboard_url: str


class LeagueResolution(BaseModel):
    """Resolution of one item: a hit or a ranked candidate list."""
    input: LeagueResolveItem
    resolved: ResolvedLeague | None = None
    candidates: list[ResolvedLeague] = Field(default_factory=list)


class LeagueRegisterRequest(BaseModel):
    """Register a league (and aliases) in the user's registry."""
    sport_key: str = Field(min_length=1)
    league_key: str = Field(min_length=1)
    aliases: list[str] = Field(default_factory=list)
