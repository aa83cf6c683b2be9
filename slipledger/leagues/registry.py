"""Built-in league aliases and ESPN scoreboard URL helpers."""

import re
from typing import Any, Optional
from urllib.parse import urlparse

ESPN_SITE_URL = "https://site.api.espn.com/apis/site/v2/sports"

# Canonical leagues: (sport_key, league_key) -> (abbreviation, name)
LEAGUES = {
    ("basketball", "nba"): ("NBA", "National Basketball Association"),
    ("basketball", "wnba"): ("WNBA", "Women's National Basketball Association"),
    ("basketball", "mens-college-basketball"): ("NCAAM", "NCAA Men's Basketball"),
    ("basketball", "womens-college-basketball"): ("NCAAW", "NCAA Women's Basketball"),
    ("football", "nfl"): ("NFL", "National Football League"),
    ("football", "college-football"): ("NCAAF", "NCAA - Football"),
    ("baseball", "mlb"): ("MLB", "Major League Baseball"),
    ("baseball", "college-baseball"): ("NCAA Baseball", "NCAA Baseball"),
    ("hockey", "nhl"): ("NHL", "National Hockey League"),
    ("soccer", "usa.1"): ("MLS", "MLS"),
    ("soccer", "eng.1"): ("EPL", "English Premier League"),
    ("soccer", "esp.1"): ("LALIGA", "Spanish LALIGA"),
    ("soccer", "ita.1"): ("Serie A", "Italian Serie A"),
    ("soccer", "ger.1"): ("Bundesliga", "German Bundesliga"),
    ("soccer", "fra.1"): ("Ligue 1", "French Ligue 1"),
    ("soccer", "uefa.champions"): ("UCL", "UEFA Champions League"),
    ("tennis", "atp"): ("ATP", "ATP"),
    ("tennis", "wta"): ("WTA", "WTA"),
    ("golf", "pga"): ("PGA", "PGA TOUR"),
    ("mma", "ufc"): ("UFC", "UFC"),
}

# Keys: normalized labels people write on slips
# Value: (sport_key, league_key)
LEAGUE_ALIASES = {
    # NBA
    "nba": ("basketball", "nba"),
    "national basketball association": ("basketball", "nba"),
    # WNBA
    "wnba": ("basketball", "wnba"),
    # College basketball
    "ncaam": ("basketball", "mens-college-basketball"),
    "ncaab": ("basketball", "mens-college-basketball"),
    "cbb": ("basketball", "mens-college-basketball"),
    "college basketball": ("basketball", "mens-college-basketball"),
    "mens college basketball": ("basketball", "mens-college-basketball"),
    "ncaaw": ("basketball", "womens-college-basketball"),
    "womens college basketball": ("basketball", "womens-college-basketball"),
    # NFL
    "nfl": ("football", "nfl"),
    "national football league": ("football", "nfl"),
    # College football
    "ncaaf": ("football", "college-football"),
    "cfb": ("football", "college-football"),
    "college football": ("football", "college-football"),
    # MLB
    "mlb": ("baseball", "mlb"),
    "major league baseball": ("baseball", "mlb"),
    # College baseball
    "college baseball": ("baseball", "college-baseball"),
    "ncaa baseball": ("baseball", "college-baseball"),
    # NHL
    "nhl": ("hockey", "nhl"),
    "national hockey league": ("hockey", "nhl"),
    # Soccer
    "mls": ("soccer", "usa.1"),
    "epl": ("soccer", "eng.1"),
    "premier league": ("soccer", "eng.1"),
    "english premier league": ("soccer", "eng.1"),
    "la liga": ("soccer", "esp.1"),
    "laliga": ("soccer", "esp.1"),
    "serie a": ("soccer", "ita.1"),
    "bundesliga": ("soccer", "ger.1"),
    "ligue 1": ("soccer", "fra.1"),
    "ucl": ("soccer", "uefa.champions"),
    "champions league": ("soccer", "uefa.champions"),
    # Tennis
    "atp": ("tennis", "atp"),
    "wta": ("tennis", "wta"),
    # Golf
    "pga": ("golf", "pga"),
    "pga tour": ("golf", "pga"),
    # MMA
    "ufc": ("mma", "ufc"),
    "mma": ("mma", "ufc"),
}

_LEAGUE_NORM = re.compile(r"[^a-z0-9.]+")
_SCOREBOARD_PATH = re.compile(r"/sports/([^/]+)/([^/]+)/scoreboard/?$", re.IGNORECASE)


def normalize_league(value: Any) -> str:
    """Lowercase, keeping letters, digits and dots (league keys like ``eng.1``)."""
    return _LEAGUE_NORM.sub(" ", str(value or "").lower()).strip()


def scoreboard_url(sport_key: str, league_key: str, base_url: str = ESPN_SITE_URL) -> str:
    return f"{base_url.rstrip('/')}/{sport_key}/{league_key}/scoreboard"


def parse_scoreboard_url(url: str) -> Optional[tuple[str, str]]:
    """Extract (sport_key, league_key) from a pasted ESPN scoreboard URL."""
    try:
        path = urlparse(url or "").path
    except ValueError:
        return None
    match = _SCOREBOARD_PATH.search(path)
    if not match:
        return None
    return match.group(1), match.group(2)


def builtin_league(text: str) -> Optional[tuple[str, str]]:
    """Look up a league label in the built-in alias table."""
    return LEAGUE_ALIASES.get(normalize_league(text))


def builtin_meta(sport_key: str, league_key: str) -> tuple[Optional[str], Optional[str]]:
    """Abbreviation and name of a built-in league, if known."""
    return LEAGUES.get((sport_key, league_key), (None, None))
