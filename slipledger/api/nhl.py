"""NHL web API client for final scores."""

from typing import Optional

import httpx

from slipledger.models.schemas import FinalScore
from slipledger.utils.text import teams_match

from .espn import parse_score


def _name(team: dict) -> str:
    name = team.get("name") or team.get("placeName") or {}
    return name.get("default", "") if isinstance(name, dict) else str(name)


class NhlClient:
    """Client for api-web.nhle.com."""

    def __init__(self, base_url: str = "https://api-web.nhle.com/v1", http_client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=30.0)

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def find_final(self, date: str, team_a: str, team_b: str) -> Optional[FinalScore]:
        """Find the game in the week schedule, then read its boxscore."""
        schedule_url = f"{self.base_url}/schedule/{date}"
        response = await self._client.get(schedule_url)
        response.raise_for_status()
        schedule = response.json()

        for week in schedule.get("gameWeek") or []:
            for game in week.get("games") or []:
                home = _name(game.get("homeTeam") or {})
                away = _name(game.get("awayTeam") or {})
                if not teams_match(home, away, team_a, team_b):
                    continue

                game_id = game.get("id")
                if not game_id:
                    continue

                box_url = f"{self.base_url}/gamecenter/{game_id}/boxscore"
                box_response = await self._client.get(box_url)
                box_response.raise_for_status()
                box = box_response.json()

                home_team = box.get("homeTeam") or {}
                away_team = box.get("awayTeam") or {}
                return FinalScore(
                    final=str(box.get("gameState") or "").lower() == "final",
                    home=_name(home_team),
                    away=_name(away_team),
                    home_score=parse_score(home_team.get("score")) or 0.0,
                    away_score=parse_score(away_team.get("score")) or 0.0,
                    sources=[schedule_url, box_url],
                )

        return None
