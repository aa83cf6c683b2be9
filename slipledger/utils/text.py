"""Text normalization for fuzzy matching."""

import re
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(value: Any) -> str:
    """Lowercase and collapse everything but letters and digits to single spaces."""
    return _NON_ALNUM.sub(" ", str(value or "").lower()).strip()


def token_set(value: Any) -> set[str]:
    """Tokens of at least two characters."""
    return {t for t in normalize_text(value).split(" ") if len(t) >= 2}


def overlap_score(a: Any, b: Any) -> float:
    """Shared tokens over the size of the larger token set (0 when either is empty)."""
    tokens_a = token_set(a)
    tokens_b = token_set(b)
    if not tokens_a or not tokens_b:
        return 0.0
    hits = len(tokens_a & tokens_b)
    return hits / max(len(tokens_a), len(tokens_b))


def teams_match(name_1: str, name_2: str, team_a: str, team_b: str) -> bool:
    """Both hints appear (as substrings) in the two team names, either way round."""
    a, b = normalize_text(team_a), normalize_text(team_b)
    if not a or not b:
        return False
    n1, n2 = normalize_text(name_1), normalize_text(name_2)
    return (a in n1 and b in n2) or (b in n1 and a in n2)
