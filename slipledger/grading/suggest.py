"""Score-based grade suggestions for single open bets."""

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx

from slipledger.ai.parsing import json_object_from_model
from slipledger.ai.router import ProviderRouter, RouterError
from slipledger.api import EspnClient, MlbStatsClient, NhlClient
from slipledger.db.models import BetRecord
from slipledger.models.schemas import FinalScore, Strategy
from slipledger.utils.payout import finite_or_none
from slipledger.utils.text import normalize_text

logger = logging.getLogger(__name__)

# League label -> ESPN (sport, league) path
ESPN_LEAGUES = {
    "NBA": ("basketball", "nba"),
    "NFL": ("football", "nfl"),
    "MLB": ("baseball", "mlb"),
    "NHL": ("hockey", "nhl"),
    "NCAAM": ("basketball", "mens-college-basketball"),
    "NCAAF": ("football", "college-football"),
}

PARSE_SYSTEM = (
    'Parse a sportsbook bet into JSON: {"selection": string|null, "line": number|null, '
    '"market": string|null}. Return STRICT JSON only.'
)

_LINE_TOKENS = re.compile(r"[+-]?\d+(?:\.\d+)?|\b(?:ml|moneyline|to win|over|under|pk)\b", re.IGNORECASE)


@dataclass
class GradeSuggestion:
    """Deterministic grade of a bet against a final score."""
    result: str
    needs_manual: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.reason is None:
            data.pop("reason")
        return data


def grade_from_final(
    market: str,
    selection: Optional[str],
    line: Optional[float],
    final: FinalScore,
) -> GradeSuggestion:
    """Grade moneyline, total and spread bets from a final score."""
    market = (market or "").lower()
    hs, aws = final.home_score, final.away_score
    total = hs + aws
    winner = final.home if hs > aws else final.away if aws > hs else "TIE"

    if "moneyline" in market or market == "ml":
        if not selection:
            return GradeSuggestion("OPEN", True, "Missing selection for ML")
        if winner == "TIE":
            return GradeSuggestion("PUSH", False)
        return GradeSuggestion("WIN" if selection.lower() in winner.lower() else "LOSS", False)

    if "total" in market or "over" in market or "under" in market:
        if line is None or selection is None:
            return GradeSuggestion("OPEN", True, "Missing total line/selection")
        is_over = "over" in selection.lower()
        is_under = "under" in selection.lower()
        if not is_over and not is_under:
            return GradeSuggestion("OPEN", True, "Selection not over/under")
        if total == line:
            return GradeSuggestion("PUSH", False)
        if is_over:
            return GradeSuggestion("WIN" if total > line else "LOSS", False)
        return GradeSuggestion("WIN" if total < line else "LOSS", False)

    if "spread" in market:
        if line is None or not selection:
            return GradeSuggestion("OPEN", True, "Missing spread line/selection")
        picked = selection.lower()
        is_home = picked in final.home.lower()
        is_away = picked in final.away.lower()
        if not is_home and not is_away:
            return GradeSuggestion("OPEN", True, "Selection does not match home/away team names")
        margin = hs - aws if is_home else aws - hs
        adjusted = margin + line
        if adjusted == 0:
            return GradeSuggestion("PUSH", False)
        return GradeSuggestion("WIN" if adjusted > 0 else "LOSS", False)

    return GradeSuggestion("OPEN", True, "Market not supported yet")


def team_hint(*texts: Optional[str]) -> str:
    """First text that still names something once lines and bet words are removed."""
    for text in texts:
        hint = normalize_text(_LINE_TOKENS.sub(" ", text or ""))
        if hint:
            return hint
    return ""


class GradeSuggester:
    """Finds a bet's final score and grades it."""

    def __init__(
        self,
        espn: EspnClient,
        mlb: MlbStatsClient,
        nhl: NhlClient,
        router: Optional[ProviderRouter] = None,
    ):
        self.espn = espn
        self.mlb = mlb
        self.nhl = nhl
        self.router = router

    async def parse_missing(self, bet: BetRecord) -> tuple[Optional[str], Optional[float]]:
        """Fill selection/line from the play text with a fast model; failures keep None."""
        selection = bet.selection or None
        line = finite_or_none(bet.line)
        if (selection and line is not None) or self.router is None:
            return selection, line

        messages = [
            {"role": "system", "content": PARSE_SYSTEM},
            {"role": "user", "content": json.dumps({
                "league": bet.league, "market": bet.market, "play": bet.play, "opponent": bet.opponent,
            }, indent=2)},
        ]
        try:
            raw = await self.router.primary(Strategy.FAST, messages, accept=json_object_from_model)
            parsed = json_object_from_model(raw)
        except (RouterError, ValueError) as e:
            logger.warning("Could not parse selection/line for %s: %s", bet.id, e)
            return selection, line

        if not selection and isinstance(parsed.get("selection"), str):
            selection = parsed["selection"]
        if line is None:
            line = finite_or_none(parsed.get("line"))
        return selection, line

    async def find_final(self, bet: BetRecord, selection: Optional[str]) -> Optional[FinalScore]:
        """League-specific source first, then the ESPN scoreboard."""
        league = (bet.league or "").upper()
        team_a = team_hint(selection, bet.play)
        team_b = team_hint(bet.opponent)
        if not bet.date or not team_a or not team_b:
            return None

        final = None
        try:
            if league == "MLB":
                final = await self.mlb.find_final(bet.date, team_a, team_b)
            elif league == "NHL":
                final = await self.nhl.find_final(bet.date, team_a, team_b)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("%s schedule lookup failed: %s", league, e)

        if final is None and league in ESPN_LEAGUES:
            sport_key, league_key = ESPN_LEAGUES[league]
            try:
                final = await self.espn.find_final(
                    sport_key, league_key, bet.date.replace("-", ""), team_a, team_b,
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning("ESPN scoreboard lookup failed: %s", e)

        return final

    async def suggest(self, bet: BetRecord) -> dict:
        """Suggested grade for one bet, or a needs-manual answer."""
        selection, line = await self.parse_missing(bet)
        parsed = {"selection": selection, "line": line}

        final = await self.find_final(bet, selection)
        if final is None:
            return {
                "ok": False,
                "needs_manual": True,
                "message": "Could not resolve a final score from sources. Check team names/opponent/date.",
                "parsed": parsed,
            }

        if not final.final:
            grade = GradeSuggestion("OPEN", True, "Game is not final yet")
        else:
            grade = grade_from_final(bet.market, selection, line, final)

        return {
            "ok": True,
            "final": final.model_dump(),
            "parsed": parsed,
            "grade": grade.to_dict(),
        }
