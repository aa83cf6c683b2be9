"""ESPN public site API client (scoreboards and the sport/league tree)."""

import logging
import math
from typing import Any, Optional

import httpx

from slipledger.models.schemas import FinalScore
from slipledger.utils.text import teams_match

logger = logging.getLogger(__name__)


def parse_score(value: Any) -> Optional[float]:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


class EspnClient:
    """Client for ESPN's unofficial site API."""

    def __init__(
        self,
        base_url: str = "https://site.api.espn.com/apis/site/v2/sports",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=30.0,
            headers={"accept": "application/json"},
        )

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    def scoreboard_url(self, sport_key: str, league_key: str) -> str:
        return f"{self.base_url}/{sport_key}/{league_key}/scoreboard"

    async def _get_json(self, url: str, params: Optional[dict] = None) -> Any:
        response = await self._client.get(url, params=params)
        response.raise_for_status()
        return response.json()

    async def get_scoreboard(self, sport_key: str, league_key: str, dates: Optional[str] = None) -> dict:
        """Fetch a league scoreboard, optionally for one day (YYYYMMDD)."""
        params = {"dates": dates} if dates else None
        data = await self._get_json(self.scoreboard_url(sport_key, league_key), params=params)
        return data if isinstance(data, dict) else {}

    async def get_league_meta(self, sport_key: str, league_key: str) -> dict:
        """Canonical abbreviation and name of a league, from its scoreboard."""
        data = await self.get_scoreboard(sport_key, league_key)
        leagues = data.get("leagues")
        league = leagues[0] if isinstance(leagues, list) and leagues and isinstance(leagues[0], dict) else {}
        return {
            "scoreboard_url": self.scoreboard_url(sport_key, league_key),
            "league_abbrev": league.get("abbreviation"),
            "league_name": league.get("name"),
        }

    async def get_league_index(self) -> list[dict]:
        """Walk the sport tree and list every (sport, league) pair."""
        data = await self._get_json(self.base_url)
        if not isinstance(data, dict):
            return []

        roots = data.get("sports") or data.get("leagues") or data.get("items") or []
        stack = list(roots) if isinstance(roots, list) else []
        index = []

        while stack:
            node = stack.pop()
            if not isinstance(node, dict):
                continue

            sport_slug = node.get("slug")
            leagues = node.get("leagues")
            if sport_slug and isinstance(leagues, list):
                for league in leagues:
                    if isinstance(league, dict) and league.get("slug"):
                        index.append({
                            "sport_key": sport_slug,
                            "league_key": league["slug"],
                            "name": league.get("name"),
                            "abbrev": league.get("abbreviation"),
                        })

            for key in ("children", "sports", "items"):
                if isinstance(node.get(key), list):
                    stack.extend(node[key])

        logger.info("ESPN league index: %d leagues", len(index))
        return index

    async def find_final(
        self,
        sport_key: str,
        league_key: str,
        yyyymmdd: str,
        team_a: str,
        team_b: str,
    ) -> Optional[FinalScore]:
        """Score of the game between two teams on a date, if listed."""
        url = self.scoreboard_url(sport_key, league_key)
        data = await self.get_scoreboard(sport_key, league_key, dates=yyyymmdd)

        for event in data.get("events") or []:
            competitions = event.get("competitions") or []
            if not competitions:
                continue
            competition = competitions[0]
            teams = competition.get("competitors") or []
            if len(teams) != 2:
                continue

            names = [(t.get("team") or {}).get("displayName") or "" for t in teams]
            if not teams_match(names[0], names[1], team_a, team_b):
                continue

            scores = [parse_score(t.get("score")) for t in teams]
            if None in scores:
                continue

            status_type = (competition.get("status") or {}).get("type") or {}
            state = str(status_type.get("name") or status_type.get("state") or "")

            home = next((t for t in teams if t.get("homeAway") == "home"), teams[0])
            away = next((t for t in teams if t.get("homeAway") == "away"), teams[1])
            return FinalScore(
                final="final" in state.lower(),
                home=(home.get("team") or {}).get("displayName") or "",
                away=(away.get("team") or {}).get("displayName") or "",
                home_score=parse_score(home.get("score")) or 0.0,
                away_score=parse_score(away.get("score")) or 0.0,
                sources=[f"{url}?dates={yyyymmdd}"],
            )

        return None
