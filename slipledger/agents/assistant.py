"""Ledger assistant: answers questions strictly from ledger context."""

import json
import logging
from typing import Any, Optional, Sequence

from slipledger.ai.parsing import json_from_model, json_object_from_model
from slipledger.ai.router import ProviderRouter, RouterError
from slipledger.ai.validation import Invalid, Valid, ValidationResult, validate_answer
from slipledger.db.models import BetRecord
from slipledger.models.schemas import AssistantAnswer, Strategy
from slipledger.stats import ledger_facts
from slipledger.utils.export import bets_to_csv

logger = logging.getLogger(__name__)

CONTEXT_SAMPLE_SIZE = 50


class AssistantValidationError(ValueError):
    """No draft (nor the verifier's fix) passed validation."""

    def __init__(self, details: Invalid):
        super().__init__("AI output failed validation")
        self.details = details


def _parse(raw: Optional[str]) -> Any:
    if not raw:
        return None
    try:
        return json_from_model(raw)
    except ValueError:
        return None


class LedgerAssistant:
    """Answers ledger questions with facts checked against the database."""

    SYSTEM_PROMPT = """You are the Slip Ledger assistant.
You MUST use only the provided ledger context. Do not invent bets, IDs, scores, or totals.
Return STRICT JSON only (no markdown fences).
Schema:
{
  "answer_markdown": "string",
  "used_bet_ids": ["id", "..."],
  "numbers_used": {
     open_count, final_wins, final_losses, final_pushes, final_risk_units, final_net_units, final_roi
  }
}
numbers_used MUST match the facts provided exactly."""

    VERIFIER_PROMPT = """You are a strict verifier.
Check whether the proposed JSON answer is consistent with the provided context facts and bet IDs.
Return STRICT JSON only:
{ "verdict": "PASS"|"FAIL", "reason": "string", "fixed": <full answer json if FAIL else null> }
If FAIL, produce a corrected full answer JSON following the original schema and using only the context."""

    def __init__(self, router: ProviderRouter):
        self.router = router

    @staticmethod
    def export_intent(prompt: str, bets: Sequence[BetRecord]) -> Optional[AssistantAnswer]:
        """CSV exports answered without a model."""
        p = prompt.lower()
        if "export open" in p:
            rows = [b for b in bets if b.status == "OPEN"]
            return AssistantAnswer(answer_markdown=f"CSV (OPEN)\n\n```csv\n{bets_to_csv(rows)}\n```")
        if "export all" in p:
            return AssistantAnswer(answer_markdown=f"CSV (ALL)\n\n```csv\n{bets_to_csv(list(bets))}\n```")
        return None

    @staticmethod
    def build_context(bets: Sequence[BetRecord]) -> dict:
        """Facts plus a sample of open and final rows."""
        open_bets = [b for b in bets if b.status == "OPEN"][:CONTEXT_SAMPLE_SIZE]
        final_bets = [b for b in bets if b.status == "FINAL"][:CONTEXT_SAMPLE_SIZE]
        return {
            "facts": ledger_facts(bets),
            "open_bets_sample": [
                {
                    "id": b.id, "date": b.date, "capper": b.capper, "league": b.league,
                    "market": b.market, "play": b.play, "odds": b.odds, "units": b.units,
                    "opponent": b.opponent, "notes": b.notes,
                }
                for b in open_bets
            ],
            "final_bets_sample": [
                {
                    "id": b.id, "date": b.date, "capper": b.capper, "league": b.league,
                    "market": b.market, "play": b.play, "odds": b.odds, "units": b.units,
                    "result": b.result, "final_score": b.final_score,
                }
                for b in final_bets
            ],
        }

    async def answer(
        self,
        prompt: str,
        bets: Sequence[BetRecord],
        strategy: Strategy = Strategy.BALANCED,
    ) -> AssistantAnswer:
        """Answer a ledger question.

        Raises:
            RouterError: when no provider produced a draft.
            AssistantValidationError: when no draft could be validated.
        """
        exported = self.export_intent(prompt, bets)
        if exported is not None:
            return exported

        context = self.build_context(bets)
        facts = context["facts"]
        known_ids = {b.id for b in bets}
        messages = [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": json.dumps({"prompt": prompt, "context": context}, indent=2, default=str)},
        ]

        if strategy == Strategy.CONSENSUS:
            drafts = await self.router.consensus(messages, accept=json_object_from_model)
            primary_raw, alt_raw = drafts.a, drafts.b
        else:
            primary_raw = await self.router.primary(strategy, messages, accept=json_object_from_model)
            alt_raw = None

        primary_json = _parse(primary_raw)
        primary: ValidationResult = validate_answer(primary_json, known_ids, facts)

        # Second consensus draft is only used when the first fails validation
        if not primary.ok and alt_raw:
            alt_json = _parse(alt_raw)
            alt = validate_answer(alt_json, known_ids, facts)
            if alt.ok:
                logger.info("Using second consensus draft")
                primary_json, primary = alt_json, alt

        if strategy != Strategy.FAST:
            verdict = await self._verify(context, primary_json, primary)
            if verdict is not None:
                if verdict.get("verdict") == "PASS" and isinstance(primary, Valid):
                    return primary.data
                if verdict.get("verdict") == "FAIL" and verdict.get("fixed"):
                    fixed = validate_answer(verdict["fixed"], known_ids, facts)
                    if isinstance(fixed, Valid):
                        logger.info("Verifier repaired the answer: %s", verdict.get("reason"))
                        return fixed.data

        if isinstance(primary, Valid):
            return primary.data
        raise AssistantValidationError(primary)

    async def _verify(self, context: dict, proposed: Any, validation: ValidationResult) -> Optional[dict]:
        """Run the verifier pass; a provider failure yields None."""
        validation_result = (
            {"ok": True} if isinstance(validation, Valid) else {"ok": False, "reason": validation.reason}
        )
        messages = [
            {"role": "system", "content": self.VERIFIER_PROMPT},
            {"role": "user", "content": json.dumps({
                "context": context,
                "proposed": proposed,
                "validation_result": validation_result,
            }, indent=2, default=str)},
        ]
        try:
            raw = await self.router.verifier(messages, accept=json_object_from_model)
        except RouterError as e:
            logger.warning("Verifier unavailable: %s", e)
            return None

        verdict = _parse(raw)
        return verdict if isinstance(verdict, dict) else None
