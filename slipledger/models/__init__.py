"""Pydantic models for data structures."""

from .schemas import (
    AssistantAnswer,
    AssistantRequest,
    BetIn,
    BetPatch,
    BetResult,
    BetSnapshot,
    BetStatus,
    ExtractedGrade,
    ExtractedLeg,
    ExtractedTicket,
    FinalScore,
    GradeChange,
    GradeProposal,
    GradeSuggestRequest,
    LeagueRegisterRequest,
    LeagueResolution,
    LeagueResolveItem,
    ResolvedLeague,
    ScanResult,
    ScannedBet,
    Strategy,
    TicketEvidence,
    normalize_result,
    normalize_status,
)

__all__ = [
    "AssistantAnswer",
    "AssistantRequest",
    "BetIn",
    "BetPatch",
    "BetResult",
    "BetSnapshot",
    "BetStatus",
    "ExtractedGrade",
    "ExtractedLeg",
    "ExtractedTicket",
    "FinalScore",
    "GradeChange",
    "GradeProposal",
    "GradeSuggestRequest",
    "LeagueRegisterRequest",
    "LeagueResolution",
    "LeagueResolveItem",
    "ResolvedLeague",
    "ScanResult",
    "ScannedBet",
    "Strategy",
    "TicketEvidence",
    "normalize_result",
    "normalize_status",
]
