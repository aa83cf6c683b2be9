"""Tests for ledger storage, payout math and summaries."""

import tempfile
from pathlib import Path

import pytest

from slipledger.db import BetRecord, Database, LedgerValidationError
from slipledger.stats import ledger_facts, summarize
from slipledger.utils import net_units, win_profit
from slipledger.utils.export import bets_to_csv


def make_db() -> Database:
    return Database(str(Path(tempfile.mkdtemp()) / "ledger.db"))


def make_bet(**overrides) -> BetRecord:
    fields = dict(
        date="2026-01-15",
        capper="Sharp Sam",
        league="NBA",
        sport_key="basketball",
        league_key="nba",
        market="spread",
        play="Lakers -3.5",
        odds=-110,
        units=2,
    )
    fields.update(overrides)
    return BetRecord(**fields)


def test_payout_math():
    """Test American-odds net units."""
    print("\n=== Testing Payout Math ===")

    assert win_profit(150, 2) == pytest.approx(3.0)
    assert win_profit(-110, 2) == pytest.approx(1.8182, abs=1e-4)
    assert net_units(-110, 2, "FINAL", "WIN") == pytest.approx(1.8182, abs=1e-4)
    assert net_units(-110, 2, "FINAL", "LOSS") == -2
    for outcome in ("PUSH", "VOID", "CASHOUT"):
        assert net_units(-110, 2, "FINAL", outcome) == 0

    # Open rows never contribute, whatever the result says
    assert net_units(150, 2, "OPEN", "WIN") == 0
    # Missing odds/units behave as zero
    assert net_units(None, None, "FINAL", "WIN") == 0
    assert net_units("+150", "2", "FINAL", "WIN") == pytest.approx(3.0)
    print("[OK] Payout math PASSED")


def test_net_units_recomputed_on_read():
    """Test that net units follow the stored fields."""
    print("\n=== Testing Net Units On Read ===")
    db = make_db()
    user = db.create_user("sam")

    bet = db.insert_bet(user.id, make_bet(status="FINAL", result="WIN"))
    assert db.get_bet(user.id, bet.id).net_units == pytest.approx(1.8182, abs=1e-4)

    db.update_bet(user.id, bet.id, {"odds": 150})
    stored = db.get_bet(user.id, bet.id)
    assert stored.net_units == pytest.approx(3.0)
    assert stored.to_dict()["net_units"] == 3.0
    print("[OK] Net units on read PASSED")


def test_final_requires_result():
    """Test that a FINAL row can never carry an OPEN result."""
    print("\n=== Testing FINAL Invariant ===")
    db = make_db()
    user = db.create_user("sam")

    with pytest.raises(LedgerValidationError):
        db.insert_bet(user.id, make_bet(status="FINAL", result="OPEN"))
    assert db.list_bets(user.id) == []

    bet = db.insert_bet(user.id, make_bet())
    with pytest.raises(LedgerValidationError):
        db.update_bet(user.id, bet.id, {"status": "FINAL"})

    # Rejected write leaves the row untouched
    stored = db.get_bet(user.id, bet.id)
    assert stored.status == "OPEN"
    assert stored.result == "OPEN"
    print("[OK] FINAL invariant PASSED")


def test_required_fields_and_unknown_columns():
    """Test required field and column checks."""
    print("\n=== Testing Required Fields ===")
    db = make_db()
    user = db.create_user("sam")

    with pytest.raises(LedgerValidationError, match="capper"):
        db.insert_bet(user.id, make_bet(capper="  "))

    bet = db.insert_bet(user.id, make_bet())
    with pytest.raises(LedgerValidationError, match="Unknown bet field"):
        db.update_bet(user.id, bet.id, {"user_id": 99})
    with pytest.raises(LedgerValidationError):
        db.update_bet(user.id, bet.id, {"play": ""})
    print("[OK] Required fields PASSED")


def test_rows_scoped_to_owner():
    """Test that one user never sees or edits another's rows."""
    print("\n=== Testing Owner Scoping ===")
    db = make_db()
    alice = db.create_user("alice")
    bob = db.create_user("bob")

    bet = db.insert_bet(alice.id, make_bet())
    assert db.get_bet(bob.id, bet.id) is None
    assert db.update_bet(bob.id, bet.id, {"units": 5}) is None
    assert db.delete_bet(bob.id, bet.id) is False
    assert db.list_bets(bob.id) == []
    assert db.get_bet(alice.id, bet.id).units == 2
    print("[OK] Owner scoping PASSED")


def test_update_requires_status():
    """Test the still-OPEN guard used when applying grades."""
    print("\n=== Testing Status Guard ===")
    db = make_db()
    user = db.create_user("sam")
    bet = db.insert_bet(user.id, make_bet(status="FINAL", result="LOSS"))

    updated = db.update_bet(user.id, bet.id, {"result": "WIN"}, require_status="OPEN")
    assert updated is None
    assert db.get_bet(user.id, bet.id).result == "LOSS"
    print("[OK] Status guard PASSED")


def test_list_filters_and_tokens():
    """Test list filters and bearer tokens."""
    print("\n=== Testing Filters & Tokens ===")
    db = make_db()
    user = db.create_user("sam")
    db.insert_bet(user.id, make_bet(slip_ref="ABC", book="DraftKings"))
    db.insert_bet(user.id, make_bet(slip_ref="XYZ", book="FanDuel", status="FINAL", result="PUSH"))

    assert len(db.list_bets(user.id, status="open")) == 1
    assert len(db.list_bets(user.id, slip_ref="ABC")) == 1
    assert len(db.list_bets(user.id, book="draft")) == 1

    token = db.issue_token(user.id)
    assert db.user_for_token(token).username == "sam"
    assert db.user_for_token("nope") is None
    print("[OK] Filters & tokens PASSED")


def test_summary_and_facts():
    """Test summary metrics and assistant facts."""
    print("\n=== Testing Summary ===")
    bets = [
        make_bet(id="1", date="2026-01-10", status="FINAL", result="WIN", odds=150, units=2),
        make_bet(id="2", date="2026-01-11", status="FINAL", result="LOSS", units=1),
        make_bet(id="3", date="2026-01-12", status="FINAL", result="PUSH", units=1),
        make_bet(id="4", date="2026-01-13", capper="Cold Carl", status="FINAL", result="LOSS", units=1),
        make_bet(id="5", date="2026-01-14"),
    ]

    facts = ledger_facts(bets)
    assert facts == {
        "open_count": 1,
        "final_wins": 1,
        "final_losses": 2,
        "final_pushes": 1,
        "final_risk_units": 5.0,
        "final_net_units": 1.0,
        "final_roi": 0.2,
    }

    summary = summarize(bets, unit_size=10)
    print(summary.format_summary())
    assert summary.record == "1-2-1"
    assert summary.net_usd == pytest.approx(10.0)
    assert summary.current_streak == -1
    assert summary.streak_type == "L"
    assert summary.max_drawdown_units == pytest.approx(2.0)
    assert summary.by_capper[0].capper == "Sharp Sam"
    print("[OK] Summary PASSED")


def test_csv_export():
    """Test CSV export includes computed net units."""
    print("\n=== Testing CSV Export ===")
    csv_text = bets_to_csv([make_bet(id="1", status="FINAL", result="WIN", odds=150)])
    header, row = csv_text.strip().splitlines()
    assert "net_units" in header.split(",")
    assert ",3.0," in row
    print("[OK] CSV export PASSED")


if __name__ == "__main__":
    print("=" * 50)
    print("Slip Ledger Storage Test Suite")
    print("=" * 50)

    test_payout_math()
    test_net_units_recomputed_on_read()
    test_final_requires_result()
    test_required_fields_and_unknown_columns()
    test_rows_scoped_to_owner()
    test_update_requires_status()
    test_list_filters_and_tokens()
    test_summary_and_facts()
    test_csv_export()

    print("\n" + "=" * 50)
    print("All tests PASSED!")
    print("=" * 50)
