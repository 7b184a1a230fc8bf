"""Search components: the transposition table and the outcome counter."""

from .game_search import GameSearch, count_winning_games
from .transposition_table import TranspositionTable

__all__ = ["GameSearch", "TranspositionTable", "count_winning_games"]
