"""
Pydantic Models for Dragon Hunt
Value types shared by the board reader and the outcome search.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from .errors import ConfigurationError

# Raw coordinate used on hot paths: (row, col).
Coord = Tuple[int, int]

# Cap on transposition table entries. Unset or 0 keeps every entry.
#   export DRAGONHUNT_TT_MAX_ENTRIES=200000
_TT_MAX_ENTRIES_ENV = os.getenv("DRAGONHUNT_TT_MAX_ENTRIES", "0")

# Size the transposition table cap from a memory budget in megabytes.
# Ignored when DRAGONHUNT_TT_MAX_ENTRIES is set.
#   export DRAGONHUNT_TT_MEMORY_MB=512
_TT_MEMORY_MB_ENV = os.getenv("DRAGONHUNT_TT_MEMORY_MB", "0")

# Push per-search counters to Prometheus.
#   export DRAGONHUNT_RECORD_METRICS=false
RECORD_METRICS = os.getenv("DRAGONHUNT_RECORD_METRICS", "true").lower() in (
    "1", "true", "yes", "on"
)


class Phase(str, Enum):
    """Whose turn it is"""
    PREY_TURN = "prey_turn"
    PREDATOR_TURN = "predator_turn"


class Position(BaseModel):
    """Board position, row 0 at the top"""
    row: int = Field(ge=0)
    col: int = Field(ge=0)

    class Config:
        frozen = True

    def as_tuple(self) -> Coord:
        return (self.row, self.col)

    def to_key(self) -> str:
        """Convert position to string key"""
        return f"{self.row},{self.col}"

    @property
    def label(self) -> str:
        """Chess-style name, column letter then 1-based row (e.g. ``B4``)."""
        return f"{chr(ord('A') + self.col)}{self.row + 1}"

    @classmethod
    def from_tuple(cls, coord: Coord) -> "Position":
        return cls(row=coord[0], col=coord[1])


class GameState(BaseModel):
    """Snapshot of a search position.

    ``prey_rows`` holds one entry per board column: the row of that column's
    sheep, or ``None`` once it has been captured (or if the column never had
    one). The tuple returned by :meth:`cache_key` is the exact key the search
    stores in its transposition table.
    """
    phase: Phase = Phase.PREY_TURN
    predator: Position
    prey_rows: Tuple[Optional[int], ...]

    class Config:
        frozen = True

    @property
    def is_terminal(self) -> bool:
        return all(row is None for row in self.prey_rows)

    @property
    def live_prey(self) -> int:
        return sum(1 for row in self.prey_rows if row is not None)

    def cache_key(self) -> tuple:
        return (self.phase, self.predator.as_tuple(), self.prey_rows)


def _env_positive_int(name: str, raw: str) -> Optional[int]:
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{name} must be an integer",
            context={"value": raw},
        ) from e
    if value < 0:
        raise ConfigurationError(
            f"{name} must not be negative",
            context={"value": value},
        )
    return value or None


def _env_max_cache_entries() -> Optional[int]:
    return _env_positive_int("DRAGONHUNT_TT_MAX_ENTRIES", _TT_MAX_ENTRIES_ENV)


def _env_cache_memory_limit_mb() -> Optional[int]:
    return _env_positive_int("DRAGONHUNT_TT_MEMORY_MB", _TT_MEMORY_MB_ENV)


class SearchConfig(BaseModel):
    """Outcome search configuration.

    ``max_cache_entries`` caps the transposition table directly; any value
    of 1 or more is accepted. ``cache_memory_limit_mb`` sizes the cap from a
    memory budget instead and is only used when no entry cap is given.
    """
    max_cache_entries: Optional[int] = Field(
        default_factory=_env_max_cache_entries, ge=1
    )
    cache_memory_limit_mb: Optional[int] = Field(
        default_factory=_env_cache_memory_limit_mb, ge=1
    )
    record_metrics: bool = RECORD_METRICS
