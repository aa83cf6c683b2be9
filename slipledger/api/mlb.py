"""MLB Stats API client for final scores."""

from typing import Optional

import httpx

from slipledger.models.schemas import FinalScore
from slipledger.utils.text import teams_match

from .espn import parse_score


class MlbStatsClient:
    """Client for statsapi.mlb.com."""

    def __init__(self, base_url: str = "https://statsapi.mlb.com/api/v1", http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=30.0)

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def find_final(self, date: str, team_a: str, team_b: str) -> Optional[FinalScore]:
        """Score of the game between two teams on a date (YYYY-MM-DD)."""
        url = f"{self.base_url}/schedule/games/"
        params = {"sportId": 1, "startDate": date, "endDate": date}
        response = await self._client.get(url, params=params)
        response.raise_for_status()
        data = response.json()

        for day in data.get("dates") or []:
            for game in day.get("games") or []:
                teams = game.get("teams") or {}
                home = teams.get("home") or {}
                away = teams.get("away") or {}
                home_name = (home.get("team") or {}).get("name") or ""
                away_name = (away.get("team") or {}).get("name") or ""
                if not teams_match(home_name, away_name, team_a, team_b):
                    continue

                state = str((game.get("status") or {}).get("detailedState") or "").lower()
                return FinalScore(
                    final="final" in state or "game over" in state,
                    home=home_name,
                    away=away_name,
                    home_score=parse_score(home.get("score")) or 0.0,
                    away_score=parse_score(away.get("score")) or 0.0,
                    sources=[str(response.url)],
                )

        return None
