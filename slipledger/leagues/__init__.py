"""League resolution: built-in aliases, user registry and the ESPN index."""

from .registry import builtin_league, normalize_league, parse_scoreboard_url, scoreboard_url
from .resolver import (
    LeagueIndexCache,
    LeagueResolver,
    get_index_cache,
    registry_match,
    resolve_offline,
    score_match,
)

__all__ = [
    "builtin_league",
    "normalize_league",
    "parse_scoreboard_url",
    "scoreboard_url",
    "LeagueIndexCache",
    "LeagueResolver",
    "get_index_cache",
    "registry_match",
    "resolve_offline",
    "score_match",
]
