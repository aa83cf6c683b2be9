"""Tests for settled-slip grading: commit gate and end-to-end commit."""

import asyncio
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from slipledger.agents import SlipReader
from slipledger.agents.slip_reader import normalize_scan
from slipledger.ai import VisionError, VisionReader
from slipledger.db import BetRecord, Database
from slipledger.grading import apply_proposals, commit_blocked_reasons, grade_extraction, grade_slip, merge_notes
from slipledger.models.schemas import BetSnapshot, ExtractedGrade, GradeChange, GradeProposal

DATA_URL = "data:image/png;base64,iVBORw0KGgo="

SETTLED_TICKET = {
    "ticket": {
        "ticket_status": "FINAL",
        "ticket_result": "WIN",
        "book": "DraftKings",
        "slip_ref": "DK-1",
        "paid_amount": 38.18,
        "final_score_visible": False,
        "evidence": {"won_tag": True, "paid_amount_shown": True},
    },
    "bets": [
        {"leg_index": 1, "total_legs": 1, "play": "Lakers -3.5", "market": "Spread", "result": "WIN",
         "final_score": "LAL 112 - BOS 104"},
    ],
    "issues": [],
}


def make_db() -> Database:
    return Database(str(Path(tempfile.mkdtemp()) / "ledger.db"))


def make_bet(**overrides) -> BetRecord:
    fields = dict(
        date="2026-01-15",
        capper="Sharp Sam",
        league="NBA",
        market="Spread",
        play="Lakers -3.5",
        opponent="Celtics",
        odds=-110,
        units=2,
    )
    fields.update(overrides)
    return BetRecord(**fields)


def proposal(bet_id: str, confidence: float) -> GradeProposal:
    return GradeProposal(
        bet_id=bet_id,
        match_reason="test",
        confidence=confidence,
        before=BetSnapshot(status="OPEN", result="OPEN"),
        after=GradeChange(status="FINAL", result="WIN", notes_append="graded"),
    )


def vision_reader(responses: dict) -> VisionReader:
    """Vision reader whose models answer from ``responses``: model -> content."""
    def handler(request: httpx.Request) -> httpx.Response:
        model = json.loads(request.content)["model"]
        return httpx.Response(200, json={"choices": [{"message": {"content": responses[model]}}]})

    return VisionReader(
        api_key="test-key",
        models=list(responses),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_commit_gate():
    """Test that one proposal under the floor blocks the batch."""
    print("\n=== Testing Commit Gate ===")
    proposals = [proposal(f"b{i}", c) for i, c in enumerate([0.99, 0.9, 0.74, 0.8, 0.75])]

    reasons = commit_blocked_reasons(proposals)

    assert reasons == ["Low-confidence matches present (1). Review before applying."]
    assert commit_blocked_reasons([]) == ["No grade proposals generated."]
    assert commit_blocked_reasons(proposals[:2]) == []
    print("[OK] Commit gate PASSED")


def test_blocked_commit_writes_nothing():
    """Test that a gated commit returns a preview and leaves rows OPEN."""
    print("\n=== Testing Blocked Commit ===")
    db = make_db()
    user = db.create_user("sam")
    bet = db.insert_bet(user.id, make_bet())

    # Without a slip reference the ticket match is fuzzy (0.7)
    extracted = ExtractedGrade.from_model_output({"ticket": {"ticket_status": "FINAL", "ticket_result": "WIN"}})
    report = grade_extraction(db, user.id, extracted, commit=True)

    assert report.mode == "preview"
    assert not report.can_commit
    assert report.proposals[0].confidence == 0.7
    assert db.get_bet(user.id, bet.id).status == "OPEN"
    assert "updated_count" not in report.to_dict()
    print("[OK] Blocked commit PASSED")


def test_five_proposals_one_low_confidence_writes_nothing():
    """Test that one weak leg match out of five blocks the whole commit."""
    print("\n=== Testing Five-Row Gated Commit ===")
    db = make_db()
    user = db.create_user("sam")
    rows = [
        ("Lakers -3.5", "Celtics"),
        ("Knicks +7", "Heat"),
        ("Nuggets -2", "Suns"),
        ("Bucks +1.5", "Bulls"),
        ("Warriors -4", "Kings"),
    ]
    stored = [db.insert_bet(user.id, make_bet(play=play, opponent=opp, slip_ref="DK-5")) for play, opp in rows]

    legs = [{"play": play, "market": "Spread", "opponent": opp, "result": "WIN"} for play, opp in rows[:4]]
    # No opponent on the last leg: 0.65 * 2/3 + 0.15 = 0.58
    legs.append({"play": "Warriors -4", "market": "Spread", "result": "LOSS"})
    extracted = ExtractedGrade.from_model_output({
        "ticket": {"ticket_status": "OPEN", "ticket_result": "OPEN"},
        "bets": legs,
    })

    report = grade_extraction(db, user.id, extracted, commit=True, slip_ref="DK-5")

    assert report.mode == "preview"
    assert len(report.proposals) == 5
    assert sorted(p.confidence for p in report.proposals)[0] == 0.58
    assert report.commit_blocked_reasons == ["Low-confidence matches present (1). Review before applying."]
    assert all(db.get_bet(user.id, bet.id).status == "OPEN" for bet in stored)
    assert "updated_bet_ids" not in report.to_dict()
    print("[OK] Five-row gated commit PASSED")


def test_end_to_end_commit():
    """Test reading a settled slip and committing by slip reference."""
    print("\n=== Testing End-to-End Commit ===")
    db = make_db()
    user = db.create_user("sam")
    target = db.insert_bet(user.id, make_bet(slip_ref="DK-1", book="DraftKings"))
    other = db.insert_bet(user.id, make_bet(slip_ref="DK-2", book="DraftKings", play="Knicks +7"))

    reader = SlipReader(vision_reader({
        "vision/a": "Sorry, I can't read that slip.",
        "vision/b": "```json\n" + json.dumps(SETTLED_TICKET) + "\n```",
    }))

    report = asyncio.run(grade_slip(db, user.id, reader, DATA_URL, commit=True, slip_ref="DK-1"))
    data = report.to_dict()

    assert data["mode"] == "commit"
    assert data["provider_model"] == "vision/b"
    assert data["updated_count"] == 1
    assert data["updated_bet_ids"] == [target.id]
    assert data["summary"]["can_commit"] is True

    stored = db.get_bet(user.id, target.id)
    print(f"Graded: {stored.play} {stored.result} net={stored.net_units:+.3f}u")
    assert (stored.status, stored.result) == ("FINAL", "WIN")
    assert stored.final_score == "LAL 112 - BOS 104"
    assert stored.net_units == pytest.approx(1.818, abs=1e-3)
    assert stored.notes.startswith("[AI Grade / settled slip] | ticket=WIN | WON tag | paid shown")
    assert db.get_bet(user.id, other.id).status == "OPEN"
    print("[OK] End-to-end commit PASSED")


def test_all_vision_models_fail():
    """Test the aggregated vision failure."""
    reader = SlipReader(vision_reader({"vision/a": "no", "vision/b": "[1, 2]"}))
    with pytest.raises(VisionError) as excinfo:
        asyncio.run(reader.read_settled(DATA_URL))

    assert str(excinfo.value).startswith("All vision providers failed. vision/a failed: ")
    assert len(excinfo.value.failures) == 2


def test_apply_skips_rows_no_longer_open():
    """Test that a row settled in the meantime is not overwritten."""
    db = make_db()
    user = db.create_user("sam")
    still_open = db.insert_bet(user.id, make_bet(notes="from capper"))
    settled = db.insert_bet(user.id, make_bet(status="FINAL", result="LOSS"))

    p1 = proposal(still_open.id, 0.99)
    p1.before.notes = "from capper"
    updated = apply_proposals(db, user.id, [p1, proposal(settled.id, 0.99)])

    assert updated == [still_open.id]
    assert db.get_bet(user.id, still_open.id).notes == "from capper graded"
    assert db.get_bet(user.id, settled.id).result == "LOSS"


def test_out_of_range_numbers_from_model():
    """Test that infinite or NaN numbers in model JSON are dropped, not raised."""
    print("\n=== Testing Out-of-Range Numbers ===")
    graded = ExtractedGrade.from_model_output(json.loads(
        '{"ticket": {"ticket_status": "FINAL", "ticket_result": "WIN", "paid_amount": 1e999},'
        ' "bets": [{"leg_index": 1e999, "total_legs": NaN, "confidence": -1e999,'
        ' "play": "Lakers -3.5", "result": "WIN"}]}'
    ))
    leg = graded.bets[0]
    assert (leg.leg_index, leg.total_legs, leg.confidence) == (None, None, None)
    assert graded.ticket.paid_amount is None

    scan = normalize_scan(json.loads(
        '{"meta": {"bet_type": "parlay", "parlay_legs_count_visible": 1e999},'
        ' "bets": [{"play": "Lakers -3.5"}, {"play": "Knicks ML"}]}'
    ), "", "vision/a")
    assert [b.play for b in scan.bets] == ["Lakers -3.5", "Knicks ML"]
    assert "parlay_legs_count_visible" not in scan.meta
    assert not any(issue.startswith("Visible parlay legs") for issue in scan.issues)
    json.dumps(scan.model_dump(), allow_nan=False)
    print("[OK] Out-of-range numbers PASSED")


def test_merge_notes():
    assert merge_notes(None, "[AI Grade]") == "[AI Grade]"
    assert merge_notes("hedged", "[AI Grade]") == "hedged [AI Grade]"
    assert merge_notes("hedged", None) == "hedged"
    assert merge_notes(None, None) is None


if __name__ == "__main__":
    print("=" * 50)
    print("Slip Ledger Grading Test Suite")
    print("=" * 50)

    test_commit_gate()
    test_blocked_commit_writes_nothing()
    test_five_proposals_one_low_confidence_writes_nothing()
    test_end_to_end_commit()
    test_all_vision_models_fail()
    test_out_of_range_numbers_from_model()
    test_apply_skips_rows_no_longer_open()
    test_merge_notes()

    print("\n" + "=" * 50)
    print("All tests PASSED!")
    print("=" * 50)
