"""Confidence gating and application of grade proposals."""

import logging
from typing import Optional, Sequence

from slipledger.db import Database
from slipledger.models.schemas import BetStatus, GradeProposal

logger = logging.getLogger(__name__)

COMMIT_CONFIDENCE_FLOOR = 0.75


def commit_blocked_reasons(
    proposals: Sequence[GradeProposal],
    floor: float = COMMIT_CONFIDENCE_FLOOR,
) -> list[str]:
    """Reasons a batch may not be written; empty means it can be committed.

    One proposal under the floor blocks the whole batch.
    """
    reasons = []
    if not proposals:
        reasons.append("No grade proposals generated.")
    low = [p for p in proposals if p.confidence < floor]
    if low:
        reasons.append(f"Low-confidence matches present ({len(low)}). Review before applying.")
    return reasons


def merge_notes(existing: Optional[str], append: Optional[str]) -> Optional[str]:
    """Append an audit suffix to existing notes."""
    merged = f"{existing or ''}{' ' + append if append else ''}".strip()
    return merged or None


def apply_proposals(db: Database, user_id: int, proposals: Sequence[GradeProposal]) -> list[str]:
    """Write proposals, each only while its row is still OPEN.

    Returns the ids of the rows actually updated. Callers must check
    ``commit_blocked_reasons`` first.
    """
    updated = []
    for proposal in proposals:
        changes = {
            "status": proposal.after.status.value,
            "result": proposal.after.result.value,
            "final_score": proposal.after.final_score,
            "notes": merge_notes(proposal.before.notes, proposal.after.notes_append),
        }
        row = db.update_bet(user_id, proposal.bet_id, changes, require_status=BetStatus.OPEN.value)
        if row is None:
            logger.info("Skipped %s: no longer OPEN", proposal.bet_id)
            continue
        updated.append(proposal.bet_id)

    logger.info("Applied %d of %d grade proposals", len(updated), len(proposals))
    return updated
