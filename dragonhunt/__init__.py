"""
dragonhunt — outcome counter for the Dragon Hunt pursuit game.

Modules:

  models      – Position, Phase, GameState, SearchConfig (pydantic).
  board       – immutable Board, grid reader, knight moves, escape thresholds.
  errors      – DragonHuntError hierarchy.
  metrics     – Prometheus counters for completed searches.
  ai          – transposition table and the memoized GameSearch.
"""

from .ai.game_search import GameSearch, count_winning_games
from .board import Board, render_state
from .errors import (
    BoardParseError,
    ConfigurationError,
    DragonHuntError,
    InvalidStateError,
    ValidationError,
)
from .models import GameState, Phase, Position, SearchConfig

__all__ = [
    "Board",
    "BoardParseError",
    "ConfigurationError",
    "DragonHuntError",
    "GameSearch",
    "GameState",
    "InvalidStateError",
    "Phase",
    "Position",
    "SearchConfig",
    "ValidationError",
    "count_winning_games",
    "render_state",
]
