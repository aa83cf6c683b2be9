"""Settled-slip grading: extract, match, gate, and optionally commit."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from slipledger.agents.slip_reader import SlipReader
from slipledger.db import Database
from slipledger.models.schemas import ExtractedGrade, GradeProposal

from .commit import COMMIT_CONFIDENCE_FLOOR, apply_proposals, commit_blocked_reasons
from .matcher import LEG_MATCH_FLOOR, build_proposals

logger = logging.getLogger(__name__)


@dataclass
class GradeReport:
    """Outcome of grading one settled slip."""
    mode: str  # preview | commit
    provider_model: Optional[str]
    extracted: ExtractedGrade
    proposals: list[GradeProposal] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    open_bets_considered: int = 0
    matched_count: int = 0
    commit_blocked_reasons: list[str] = field(default_factory=list)
    updated_bet_ids: list[str] = field(default_factory=list)

    @property
    def can_commit(self) -> bool:
        return not self.commit_blocked_reasons

    def to_dict(self) -> dict:
        data = {
            "ok": True,
            "mode": self.mode,
            "provider_model": self.provider_model,
            "extracted": self.extracted.model_dump(mode="json"),
            "summary": {
                "open_bets_considered": self.open_bets_considered,
                "matched_count": self.matched_count,
                "proposals_count": len(self.proposals),
                "can_commit": self.can_commit,
                "commit_blocked_reasons": self.commit_blocked_reasons,
            },
            "issues": self.issues,
            "proposals": [p.model_dump(mode="json") for p in self.proposals],
        }
        if self.mode == "commit":
            data["updated_count"] = len(self.updated_bet_ids)
            data["updated_bet_ids"] = self.updated_bet_ids
        return data


def grade_extraction(
    db: Database,
    user_id: int,
    extracted: ExtractedGrade,
    commit: bool = False,
    book: Optional[str] = None,
    slip_ref: Optional[str] = None,
    provider_model: Optional[str] = None,
    leg_floor: float = LEG_MATCH_FLOOR,
    commit_floor: float = COMMIT_CONFIDENCE_FLOOR,
) -> GradeReport:
    """Match an extraction against the user's open rows.

    In commit mode the batch is written only when no blocking reason exists;
    otherwise a preview with the reasons is returned and nothing is written.
    """
    book = (book or "").strip() or None
    slip_ref = (slip_ref or "").strip() or None

    open_bets = db.list_bets(user_id, status="OPEN", slip_ref=slip_ref, book=book)
    outcome = build_proposals(open_bets, extracted, slip_ref_hint=slip_ref, book_hint=book, floor=leg_floor)
    reasons = commit_blocked_reasons(outcome.proposals, floor=commit_floor)

    report = GradeReport(
        mode="preview",
        provider_model=provider_model,
        extracted=extracted,
        proposals=outcome.proposals,
        issues=[*extracted.issues, *outcome.issues],
        open_bets_considered=len(open_bets),
        matched_count=outcome.matched_count,
        commit_blocked_reasons=reasons,
    )

    if not commit or reasons:
        if commit:
            logger.info("Commit blocked: %s", "; ".join(reasons))
        return report

    report.mode = "commit"
    report.updated_bet_ids = apply_proposals(db, user_id, outcome.proposals)
    return report


async def grade_slip(
    db: Database,
    user_id: int,
    reader: SlipReader,
    data_url: str,
    commit: bool = False,
    book: Optional[str] = None,
    slip_ref: Optional[str] = None,
    leg_floor: float = LEG_MATCH_FLOOR,
    commit_floor: float = COMMIT_CONFIDENCE_FLOOR,
) -> GradeReport:
    """Read a settled slip image and grade it against open rows."""
    model, extracted = await reader.read_settled(data_url, book=book, slip_ref=slip_ref)
    return grade_extraction(
        db, user_id, extracted,
        commit=commit, book=book, slip_ref=slip_ref, provider_model=model,
        leg_floor=leg_floor, commit_floor=commit_floor,
    )
