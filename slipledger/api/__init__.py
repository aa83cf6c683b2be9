"""API clients for public scoreboards."""

from .espn import EspnClient
from .mlb import MlbStatsClient
from .nhl import NhlClient

__all__ = ["EspnClient", "MlbStatsClient", "NhlClient"]
