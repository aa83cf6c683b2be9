"""Validation of assistant answers against known bet ids and ledger facts."""

from dataclasses import dataclass
from typing import Any, Collection, Mapping, Union

from slipledger.models.schemas import AssistantAnswer


@dataclass(frozen=True)
class Valid:
    data: AssistantAnswer
    ok: bool = True


@dataclass(frozen=True)
class Invalid:
    reason: str
    ok: bool = False


ValidationResult = Union[Valid, Invalid]


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_answer(
    obj: Any,
    known_ids: Collection[str],
    facts: Mapping[str, Any],
) -> ValidationResult:
    """Check a parsed model answer.

    The answer must carry non-empty ``answer_markdown``, reference only
    known bet ids, and echo every ledger fact in ``numbers_used`` with the
    same numeric value.
    """
    if not isinstance(obj, dict):
        return Invalid("No JSON object returned.")

    answer = obj.get("answer_markdown")
    if not isinstance(answer, str) or not answer.strip():
        return Invalid("Missing answer_markdown.")

    used = obj.get("used_bet_ids")
    used = used if isinstance(used, list) else []
    for bet_id in used:
        if isinstance(bet_id, str) and bet_id and bet_id not in known_ids:
            return Invalid(f"Unknown bet id referenced: {bet_id}")

    numbers = obj.get("numbers_used")
    if not isinstance(numbers, dict):
        return Invalid("Missing numbers_used.")

    for key, expected in facts.items():
        if key not in numbers or numbers[key] is None:
            return Invalid(f"numbers_used missing {key}")
        actual = _as_number(numbers[key])
        if actual is None or actual != _as_number(expected):
            return Invalid(f"numbers_used.{key} does not match ledger facts")

    return Valid(AssistantAnswer(
        answer_markdown=answer,
        used_bet_ids=[i for i in used if isinstance(i, str) and i],
    ))
