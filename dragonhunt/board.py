"""Board model for Dragon Hunt.

The board is an immutable value: dimensions, hideouts (blocked cells), the
dragon's starting square and the sheep markers. It answers the geometric
questions the search needs (knight moves, per-column escape thresholds) and
is never mutated once built.

Grid format read by :meth:`Board.from_text`::

    SSS
    ..#
    #.#
    #D.

``.`` open, ``#`` hideout, ``S`` sheep, ``D`` dragon (on an open cell).
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, Field

from .errors import BoardParseError
from .models import Coord, Position

if TYPE_CHECKING:
    from .models import GameState

__all__ = ["Board", "KNIGHT_OFFSETS", "render_state"]

logger = logging.getLogger(__name__)

# (d_row, d_col). Enumeration order fixes branch order in the search.
KNIGHT_OFFSETS: Tuple[Coord, ...] = (
    (-2, -1),
    (-2, 1),
    (-1, -2),
    (-1, 2),
    (1, -2),
    (1, 2),
    (2, -1),
    (2, 1),
)

_OPEN = "."
_BLOCKED = "#"
_SHEEP = "S"
_DRAGON = "D"

_ANSI_GREEN = "\x1b[1;32m"
_ANSI_RESET = "\x1b[0m"


class Board(BaseModel):
    """Immutable playing field.

    Coordinates passed to the query methods are raw ``(row, col)`` tuples;
    callers must keep them on the board.
    """
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    predator: Position
    prey: FrozenSet[Coord] = frozenset()
    blocked: FrozenSet[Coord] = frozenset()

    class Config:
        frozen = True

    @classmethod
    def from_text(cls, text: str) -> "Board":
        """Read a board from its character grid.

        Raises:
            BoardParseError: empty input, ragged rows, an unknown character,
                or anything other than exactly one dragon.
        """
        lines = text.strip("\r\n").splitlines()
        if not lines or not lines[0]:
            raise BoardParseError("Board text is empty")

        width = len(lines[0])
        height = len(lines)
        predator: Optional[Position] = None
        prey = set()
        blocked = set()

        for r, row in enumerate(lines):
            if len(row) != width:
                raise BoardParseError(
                    f"Row has {len(row)} cells, expected {width}", line=r
                )
            for c, ch in enumerate(row):
                if ch == _OPEN:
                    continue
                if ch == _DRAGON and predator is None:
                    predator = Position(row=r, col=c)
                elif ch == _SHEEP:
                    prey.add((r, c))
                elif ch == _BLOCKED:
                    blocked.add((r, c))
                elif ch == _DRAGON:
                    raise BoardParseError(
                        "Board has more than one dragon", line=r, column=c, char=ch
                    )
                else:
                    raise BoardParseError(
                        "Unknown board character", line=r, column=c, char=ch
                    )

        if predator is None:
            raise BoardParseError("Board has no dragon")

        logger.debug(
            f"Parsed {width}x{height} board: dragon at {predator.label}, "
            f"{len(prey)} sheep, {len(blocked)} hideouts"
        )
        return cls(
            width=width,
            height=height,
            predator=predator,
            prey=frozenset(prey),
            blocked=frozenset(blocked),
        )

    def to_text(self) -> str:
        rows = []
        for r in range(self.height):
            cells = []
            for c in range(self.width):
                pos = (r, c)
                if pos == self.predator.as_tuple():
                    cells.append(_DRAGON)
                elif pos in self.prey:
                    cells.append(_SHEEP)
                elif pos in self.blocked:
                    cells.append(_BLOCKED)
                else:
                    cells.append(_OPEN)
            rows.append("".join(cells))
        return "\n".join(rows)

    def in_bounds(self, pos: Coord) -> bool:
        return 0 <= pos[0] < self.height and 0 <= pos[1] < self.width

    def is_blocked(self, pos: Coord) -> bool:
        return pos in self.blocked

    def has_prey_at(self, pos: Coord) -> bool:
        return pos in self.prey

    def knight_moves(self, pos: Coord) -> List[Coord]:
        """On-board knight destinations from ``pos``, in KNIGHT_OFFSETS order."""
        row, col = pos
        moves = []
        for d_row, d_col in KNIGHT_OFFSETS:
            r1, c1 = row + d_row, col + d_col
            if 0 <= r1 < self.height and 0 <= c1 < self.width:
                moves.append((r1, c1))
        return moves

    def initial_row(self, col: int) -> Optional[int]:
        """Row of the topmost sheep in ``col``, or None if the column has none."""
        for r in range(self.height):
            if self.has_prey_at((r, col)):
                return r
        return None

    def safe_threshold(self, col: int) -> int:
        """First row of the hideout run that reaches the bottom of ``col``.

        A sheep stepping onto a row at or past the threshold can stay hidden
        until it leaves the board, so it has escaped. With an open bottom
        cell (or a column that is blocked all the way up) only stepping off
        the board escapes, and the threshold is ``height``.
        """
        for r in range(self.height, 0, -1):
            if (r - 1, col) not in self.blocked:
                return r
        return self.height

    def initial_rows(self) -> Tuple[Optional[int], ...]:
        return tuple(self.initial_row(c) for c in range(self.width))

    def safe_thresholds(self) -> Tuple[int, ...]:
        return tuple(self.safe_threshold(c) for c in range(self.width))


def render_state(board: Board, state: "GameState", color: bool = False) -> str:
    """Draw a search position on ``board``.

    ``D`` dragon, ``s`` sheep, ``#`` hideout, ``.`` open. A sheep hiding on
    a blocked cell is drawn as ``#`` (green when ``color`` is set).
    """
    dragon = state.predator.as_tuple()
    lines = []
    for r in range(board.height):
        cells = []
        for c in range(board.width):
            pos = (r, c)
            blocked = board.is_blocked(pos)
            if pos == dragon:
                cells.append(_DRAGON)
            elif state.prey_rows[c] == r:
                if blocked:
                    cells.append(
                        f"{_ANSI_GREEN}{_BLOCKED}{_ANSI_RESET}" if color else _BLOCKED
                    )
                else:
                    cells.append("s")
            elif blocked:
                cells.append(_BLOCKED)
            else:
                cells.append(_OPEN)
        lines.append("".join(cells))
    return "\n".join(lines)
