"""Tests for league resolution and the league registry."""

import asyncio
import tempfile
from pathlib import Path

import httpx

from slipledger.api import EspnClient
from slipledger.db import Database, LeagueRecord
from slipledger.leagues import (
    LeagueIndexCache,
    LeagueResolver,
    builtin_league,
    parse_scoreboard_url,
    resolve_offline,
    score_match,
)
from slipledger.models.schemas import LeagueRegisterRequest, LeagueResolveItem

ESPN_INDEX = {
    "sports": [
        {
            "slug": "baseball",
            "leagues": [
                {"slug": "kbo", "name": "Korean Baseball Organization", "abbreviation": "KBO"},
                {"slug": "npb", "name": "Nippon Professional Baseball", "abbreviation": "NPB"},
            ],
        },
    ],
}


def espn_client(calls: list | None = None) -> EspnClient:
    """ESPN client that serves a small index and the KBO scoreboard."""
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request.url.path)
        if request.url.path == "/sports":
            return httpx.Response(200, json=ESPN_INDEX)
        if request.url.path == "/sports/baseball/kbo/scoreboard":
            return httpx.Response(200, json={
                "leagues": [{"abbreviation": "KBO", "name": "Korea Baseball Organization"}],
                "events": [],
            })
        return httpx.Response(404, json={"code": 404})

    return EspnClient(
        base_url="https://espn.test/sports",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class FlakyIndex:
    """Stand-in ESPN client for the index cache."""

    def __init__(self):
        self.calls = 0
        self.fail = False

    async def get_league_index(self):
        self.calls += 1
        if self.fail:
            raise httpx.ConnectError("espn down")
        return [{"sport_key": "baseball", "league_key": "kbo", "name": "KBO", "abbrev": "KBO"}]


def test_builtin_aliases():
    """Test built-in league labels and URL parsing."""
    print("\n=== Testing Built-in Aliases ===")
    assert builtin_league("NBA") == ("basketball", "nba")
    assert builtin_league("  Premier League ") == ("soccer", "eng.1")
    assert builtin_league("CBB") == ("basketball", "mens-college-basketball")
    assert builtin_league("Korean Baseball") is None

    url = "https://site.api.espn.com/apis/site/v2/sports/soccer/eng.1/scoreboard"
    assert parse_scoreboard_url(url) == ("soccer", "eng.1")
    assert parse_scoreboard_url("https://www.espn.com/nba/") is None
    print("[OK] Built-in aliases PASSED")


def test_score_match_ranking():
    assert score_match("kbo", "Korean Baseball Organization", "KBO", "kbo") == 100 + 90 + 55 + 50
    assert score_match("korean", "Korean Baseball Organization", "KBO", "kbo") == 60
    assert score_match("", "anything") == 0


def test_resolve_offline():
    """Test registry-first offline resolution."""
    print("\n=== Testing Offline Resolution ===")
    registry = [LeagueRecord(sport_key="baseball", league_key="kbo", league_abbrev="KBO", aliases=["Korea"])]

    hit = resolve_offline("korea", registry)
    assert (hit.sport_key, hit.league_key, hit.source) == ("baseball", "kbo", "registry")

    builtin = resolve_offline("EPL", registry)
    assert (builtin.league_key, builtin.source, builtin.league_abbrev) == ("eng.1", "builtin", "EPL")
    assert builtin.scoreboard_url.endswith("/soccer/eng.1/scoreboard")

    assert resolve_offline("Korean ball", registry) is None
    print("[OK] Offline resolution PASSED")


def test_index_cache_keeps_old_data_on_failure():
    """Test TTL refresh and fallback to the previous index."""
    print("\n=== Testing Index Cache ===")
    now = [0.0]
    cache = LeagueIndexCache(ttl_hours=1, clock=lambda: now[0])
    espn = FlakyIndex()

    first = asyncio.run(cache.get(espn))
    asyncio.run(cache.get(espn))
    assert espn.calls == 1

    now[0] = 2 * 3600
    espn.fail = True
    assert asyncio.run(cache.get(espn)) == first
    # Still stale after a failed refresh, so the next read retries
    asyncio.run(cache.get(espn))
    assert espn.calls == 3

    espn.fail = False
    asyncio.run(cache.get(espn))
    asyncio.run(cache.get(espn))
    assert espn.calls == 4

    empty = LeagueIndexCache()
    assert asyncio.run(empty.get(espn)) == first
    espn.fail = True
    assert asyncio.run(LeagueIndexCache().get(espn)) == []
    print("[OK] Index cache PASSED")


def test_resolver_paths():
    """Test explicit keys, URL, built-in and candidate resolution."""
    print("\n=== Testing League Resolver ===")
    calls: list = []
    resolver = LeagueResolver(espn_client(calls), cache=LeagueIndexCache())

    async def run():
        return await resolver.resolve([
            LeagueResolveItem(sport_key="baseball", league_key="kbo"),
            LeagueResolveItem(scoreboard_url="https://site.api.espn.com/apis/site/v2/sports/baseball/kbo/scoreboard"),
            LeagueResolveItem(sport_key="basketball", league_key="nope", league_text="NBA"),
            LeagueResolveItem(league_text="Korean"),
            LeagueResolveItem(league_text="Curling Grand Slam"),
        ], registry=[])

    by_keys, by_url, builtin, candidates, unknown = asyncio.run(run())

    assert by_keys.resolved.source == "espn"
    assert by_keys.resolved.league_abbrev == "KBO"
    assert by_keys.resolved.league_name == "Korea Baseball Organization"
    assert by_url.resolved.league_key == "kbo"

    assert builtin.resolved.source == "builtin"
    assert builtin.resolved.league_key == "nba"

    assert candidates.resolved is None
    assert [(c.league_key, c.source) for c in candidates.candidates] == [("kbo", "candidate")]

    assert unknown.resolved is None
    assert unknown.candidates == []
    # Index fetched once for both candidate lookups
    assert calls.count("/sports") == 1
    print("[OK] League resolver PASSED")


def test_register_merges_aliases():
    """Test registering a league and resolving by a new alias."""
    print("\n=== Testing League Registration ===")
    db = Database(str(Path(tempfile.mkdtemp()) / "ledger.db"))
    user = db.create_user("sam")
    resolver = LeagueResolver(espn_client(), cache=LeagueIndexCache())

    record = asyncio.run(resolver.register(db, user.id, LeagueRegisterRequest(
        sport_key="baseball", league_key="kbo", aliases=["Korea", " "],
    )))
    assert record.league_abbrev == "KBO"
    assert record.aliases == ["Korea"]

    asyncio.run(resolver.register(db, user.id, LeagueRegisterRequest(
        sport_key="baseball", league_key="kbo", aliases=["Korea", "Korean ball"],
    )))
    leagues = db.list_leagues(user.id)
    assert len(leagues) == 1
    assert leagues[0].aliases == ["Korea", "Korean ball"]

    hit = resolve_offline("korean ball", leagues)
    assert hit.source == "registry"

    # Other users do not see the registry entry
    other = db.create_user("bob")
    assert db.list_leagues(other.id) == []
    print("[OK] League registration PASSED")


if __name__ == "__main__":
    print("=" * 50)
    print("Slip Ledger League Test Suite")
    print("=" * 50)

    test_builtin_aliases()
    test_score_match_ranking()
    test_resolve_offline()
    test_index_cache_keeps_old_data_on_failure()
    test_resolver_paths()
    test_register_merges_aliases()

    print("\n" + "=" * 50)
    print("All tests PASSED!")
    print("=" * 50)
