"""Match legs read from a settled slip to open ledger rows."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from slipledger.db.models import BetRecord
from slipledger.models.schemas import (
    BetResult,
    BetSnapshot,
    BetStatus,
    ExtractedGrade,
    ExtractedLeg,
    GradeChange,
    GradeProposal,
)
from slipledger.utils.text import overlap_score

LEG_MATCH_FLOOR = 0.35
SLIP_REF_CONFIDENCE = 0.99
FUZZY_TICKET_CONFIDENCE = 0.7

# Weights of the leg score components
COMBINED_WEIGHT = 0.65
OPPONENT_WEIGHT = 0.2
MARKET_WEIGHT = 0.15


def _join(*parts: Optional[str]) -> str:
    return " ".join(p or "" for p in parts)


def leg_score(leg: ExtractedLeg, bet: BetRecord) -> float:
    """Weighted similarity of a slip leg to a ledger row."""
    combined = overlap_score(
        _join(leg.play, leg.selection, leg.market, leg.opponent),
        _join(bet.play, bet.market, bet.selection, bet.opponent),
    )
    opponent = overlap_score(leg.opponent, bet.opponent)
    market = overlap_score(leg.market, bet.market)
    return combined * COMBINED_WEIGHT + opponent * OPPONENT_WEIGHT + market * MARKET_WEIGHT


@dataclass
class MatchOutcome:
    """Proposals plus the diagnostics produced while matching."""
    proposals: list[GradeProposal] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    matched_count: int = 0


def _snapshot(bet: BetRecord) -> BetSnapshot:
    return BetSnapshot(
        status=bet.status or "OPEN",
        result=bet.result or "OPEN",
        final_score=bet.final_score,
        notes=bet.notes,
    )


def _amount_text(amount: float) -> str:
    """Full precision, with integral amounts shown without a decimal point."""
    return str(int(amount)) if amount.is_integer() else str(amount)


def _ticket_note(extracted: ExtractedGrade) -> str:
    ticket = extracted.ticket
    evidence = ticket.evidence
    parts = [
        "[AI Grade / settled slip]",
        f"ticket={ticket.ticket_result.value}",
        "confetti" if evidence.confetti else None,
        "WON tag" if evidence.won_tag else None,
        "LOST tag" if evidence.lost_tag else None,
        "paid shown" if evidence.paid_amount_shown else None,
        f"paid={_amount_text(ticket.paid_amount)}" if ticket.paid_amount is not None else None,
    ]
    return " | ".join(p for p in parts if p)


def _leg_note(leg: ExtractedLeg, result: BetResult) -> str:
    parts = [
        "[AI Grade / visible leg]",
        f"leg={result.value}",
        f"leg#{leg.leg_index}" if leg.leg_index is not None else None,
        f"of {leg.total_legs}" if leg.total_legs is not None else None,
    ]
    return " | ".join(p for p in parts if p)


def build_proposals(
    open_bets: Iterable[BetRecord],
    extracted: ExtractedGrade,
    slip_ref_hint: Optional[str] = None,
    book_hint: Optional[str] = None,
    floor: float = LEG_MATCH_FLOOR,
) -> MatchOutcome:
    """Propose settlements for open rows from a settled-slip extraction.

    A slip reference (hint first, then the one read off the ticket) is an
    exact key: no rows with it means no proposals. A ticket-level FINAL
    settlement applies to every remaining candidate. Otherwise each visible,
    settled leg goes to its best-scoring row if the score reaches ``floor``.
    """
    outcome = MatchOutcome()
    ticket = extracted.ticket

    slip_ref = (slip_ref_hint or ticket.slip_ref or "").strip()
    book = (book_hint or ticket.book or "").strip().lower()

    candidates = [b for b in open_bets if b.status == BetStatus.OPEN.value]

    if slip_ref:
        candidates = [b for b in candidates if (b.slip_ref or "").strip() == slip_ref]
        if not candidates:
            outcome.issues.append(f'No OPEN bets found with slip_ref="{slip_ref}".')
            return outcome
    else:
        outcome.issues.append("No slip_ref provided/detected. Matching will be fuzzy and review is required.")

    if book:
        with_book = [b for b in candidates if book in (b.book or "").lower()]
        if with_book:
            candidates = with_book

    # Ticket-level settlement covers parlays stored as one row per leg
    if ticket.ticket_status == BetStatus.FINAL and ticket.ticket_result != BetResult.OPEN and candidates:
        leg_score_text = next((leg.final_score for leg in extracted.bets if leg.final_score), None)
        score_text = leg_score_text or ("Final shown on settled slip" if ticket.final_score_visible else None)
        note = _ticket_note(extracted)

        for bet in candidates:
            outcome.proposals.append(GradeProposal(
                bet_id=bet.id,
                match_reason=f"Matched by slip_ref {slip_ref}" if slip_ref else "Slip-level fuzzy match",
                confidence=SLIP_REF_CONFIDENCE if slip_ref else FUZZY_TICKET_CONFIDENCE,
                before=_snapshot(bet),
                after=GradeChange(
                    status=BetStatus.FINAL,
                    result=ticket.ticket_result,
                    final_score=score_text or bet.final_score,
                    notes_append=note,
                ),
            ))
        outcome.matched_count = len(candidates)
        return outcome

    visible = [leg for leg in extracted.bets if leg.play or leg.selection or leg.opponent]
    if not visible:
        outcome.issues.append("No visible legs could be extracted from the settled slip.")
        return outcome

    for leg in visible:
        result = leg.result or BetResult.OPEN
        if result == BetResult.OPEN:
            continue

        best: Optional[BetRecord] = None
        best_score = 0.0
        for bet in candidates:
            score = leg_score(leg, bet)
            if best is None or score > best_score:
                best, best_score = bet, score

        if best is None or best_score < floor:
            label = leg.play or leg.selection or "unknown"
            outcome.issues.append(f'Could not confidently match visible leg "{label}".')
            continue

        outcome.proposals.append(GradeProposal(
            bet_id=best.id,
            match_reason=f"Fuzzy leg match ({best_score:.2f})",
            confidence=round(best_score, 2),
            before=_snapshot(best),
            after=GradeChange(
                status=BetStatus.FINAL,
                result=result,
                final_score=leg.final_score or best.final_score,
                notes_append=_leg_note(leg, result),
            ),
        ))

    outcome.matched_count = len(outcome.proposals)
    return outcome
