"""Resolve free-text league labels to canonical ESPN sport/league keys."""

import logging
import time
from typing import Callable, Optional, Sequence

import httpx

from slipledger.api.espn import EspnClient
from slipledger.db import Database, LeagueRecord
from slipledger.models.schemas import (
    LeagueRegisterRequest,
    LeagueResolution,
    LeagueResolveItem,
    ResolvedLeague,
)

from .registry import builtin_league, builtin_meta, normalize_league, parse_scoreboard_url, scoreboard_url

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 10


class LeagueIndexCache:
    """Process-wide copy of the ESPN league index, refreshed when stale.

    A failed refresh keeps the previous index and retries on the next read.
    """

    def __init__(self, ttl_hours: float = 6.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock
        self._data: Optional[list[dict]] = None
        self._fetched_at: Optional[float] = None

    def is_fresh(self) -> bool:
        return self._fetched_at is not None and (self._clock() - self._fetched_at) <= self.ttl_seconds

    async def get(self, espn: EspnClient) -> list[dict]:
        if self._data is not None and self.is_fresh():
            return self._data

        try:
            data = await espn.get_league_index()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("ESPN league index fetch failed: %s", e)
            return self._data or []

        self._data = data
        self._fetched_at = self._clock()
        return data

    def clear(self):
        self._data = None
        self._fetched_at = None


_index_cache: Optional[LeagueIndexCache] = None


def get_index_cache(ttl_hours: float = 6.0) -> LeagueIndexCache:
    """Get league index cache (singleton)."""
    global _index_cache
    if _index_cache is None:
        _index_cache = LeagueIndexCache(ttl_hours=ttl_hours)
    return _index_cache


def score_match(
    query: str,
    name: Optional[str] = None,
    abbrev: Optional[str] = None,
    league_key: Optional[str] = None,
) -> int:
    """Rank an index entry against a league label (0 means no match)."""
    q = normalize_league(query)
    n_name = normalize_league(name)
    n_abbrev = normalize_league(abbrev)
    n_key = normalize_league(league_key)
    if not q:
        return 0

    score = 0
    if n_abbrev and n_abbrev == q:
        score += 100
    if n_key and n_key == q:
        score += 90
    if n_name and q in n_name:
        score += 60
    if n_key and q in n_key:
        score += 55
    if n_abbrev and q in n_abbrev:
        score += 50
    return score


def registry_match(registry: Sequence[LeagueRecord], text: str) -> Optional[LeagueRecord]:
    """Registry entry whose abbreviation, name, keys or aliases equal the label."""
    q = normalize_league(text)
    if not q:
        return None
    for entry in registry:
        pool = [entry.league_abbrev, entry.league_name, entry.league_key, entry.sport_key, *entry.aliases]
        if q in {normalize_league(p) for p in pool if p}:
            return entry
    return None


def resolve_offline(text: str, registry: Sequence[LeagueRecord]) -> Optional[ResolvedLeague]:
    """Resolve a label without network access: user registry, then built-in table."""
    hit = registry_match(registry, text)
    if hit:
        return ResolvedLeague(
            sport_key=hit.sport_key,
            league_key=hit.league_key,
            league_abbrev=hit.league_abbrev,
            league_name=hit.league_name,
            source="registry",
            scoreboard_url=scoreboard_url(hit.sport_key, hit.league_key),
        )

    keys = builtin_league(text)
    if keys:
        abbrev, name = builtin_meta(*keys)
        return ResolvedLeague(
            sport_key=keys[0],
            league_key=keys[1],
            league_abbrev=abbrev,
            league_name=name,
            source="builtin",
            scoreboard_url=scoreboard_url(*keys),
        )
    return None


class LeagueResolver:
    """Resolves league items against keys, the user registry, built-ins and ESPN."""

    def __init__(self, espn: EspnClient, cache: Optional[LeagueIndexCache] = None):
        self.espn = espn
        self.cache = cache or get_index_cache()

    async def _meta(self, sport_key: str, league_key: str) -> Optional[dict]:
        try:
            return await self.espn.get_league_meta(sport_key, league_key)
        except (httpx.HTTPError, ValueError) as e:
            logger.info("No ESPN scoreboard for %s/%s: %s", sport_key, league_key, e)
            return None

    async def resolve_item(self, item: LeagueResolveItem, registry: Sequence[LeagueRecord]) -> LeagueResolution:
        sport_key = item.sport_key.strip()
        league_key = item.league_key.strip()
        text = item.league_text.strip()

        if (not sport_key or not league_key) and item.scoreboard_url:
            parsed = parse_scoreboard_url(item.scoreboard_url)
            if parsed:
                sport_key, league_key = parsed

        # Explicit keys are trusted only if ESPN serves a scoreboard for them
        if sport_key and league_key:
            meta = await self._meta(sport_key, league_key)
            if meta:
                return LeagueResolution(input=item, resolved=ResolvedLeague(
                    sport_key=sport_key,
                    league_key=league_key,
                    league_abbrev=meta["league_abbrev"],
                    league_name=meta["league_name"],
                    source="espn",
                    scoreboard_url=meta["scoreboard_url"],
                ))

        if not text:
            return LeagueResolution(input=item)

        hit = registry_match(registry, text)
        if hit:
            meta = await self._meta(hit.sport_key, hit.league_key) or {}
            return LeagueResolution(input=item, resolved=ResolvedLeague(
                sport_key=hit.sport_key,
                league_key=hit.league_key,
                league_abbrev=meta.get("league_abbrev") or hit.league_abbrev,
                league_name=meta.get("league_name") or hit.league_name,
                source="registry",
                scoreboard_url=meta.get("scoreboard_url") or scoreboard_url(hit.sport_key, hit.league_key),
            ))

        builtin = resolve_offline(text, [])
        if builtin:
            return LeagueResolution(input=item, resolved=builtin)

        index = await self.cache.get(self.espn)
        scored = [(score_match(text, e.get("name"), e.get("abbrev"), e.get("league_key")), e) for e in index]
        scored = [s for s in scored if s[0] > 0]
        scored.sort(key=lambda s: s[0], reverse=True)

        candidates = [
            ResolvedLeague(
                sport_key=entry["sport_key"],
                league_key=entry["league_key"],
                league_abbrev=entry.get("abbrev"),
                league_name=entry.get("name"),
                source="candidate",
                scoreboard_url=scoreboard_url(entry["sport_key"], entry["league_key"]),
            )
            for _, entry in scored[:MAX_CANDIDATES]
        ]
        return LeagueResolution(input=item, candidates=candidates)

    async def resolve(
        self,
        items: Sequence[LeagueResolveItem],
        registry: Sequence[LeagueRecord],
    ) -> list[LeagueResolution]:
        return [await self.resolve_item(item, registry) for item in items]

    async def register(self, db: Database, user_id: int, request: LeagueRegisterRequest) -> LeagueRecord:
        """Add a league to the user's registry, merging aliases.

        Canonical name and abbreviation come from ESPN when available.
        """
        sport_key = request.sport_key.strip()
        league_key = request.league_key.strip()
        aliases = [a.strip() for a in request.aliases if a and a.strip()]

        meta = await self._meta(sport_key, league_key) or {}
        fallback_abbrev, fallback_name = builtin_meta(sport_key, league_key)

        record = db.upsert_league(user_id, LeagueRecord(
            user_id=user_id,
            sport_key=sport_key,
            league_key=league_key,
            league_abbrev=meta.get("league_abbrev") or fallback_abbrev,
            league_name=meta.get("league_name") or fallback_name,
            aliases=aliases,
        ))
        logger.info("Registered league %s/%s for user %s", sport_key, league_key, user_id)
        return record
