"""Outcome counter for the Dragon Hunt pursuit game.

The dragon moves like a knight; every sheep walks one row down its own
column per turn. Sheep move first. The search counts the alternating play
sequences in which the dragon ends up capturing every sheep.

Turn rules:
- Sheep turn: exactly one sheep steps down. A step onto the dragon's cell
  is illegal unless that cell is a hideout. A step that leaves the board or
  reaches the hideout run at the bottom of its column is an escape; the
  dragon can no longer clear the board along that line, so it adds nothing.
- If no sheep has a legal step, the dragon moves again (double move).
- Dragon turn: one knight move. Landing on a sheep that is not in a hideout
  captures it.

The search is a pair of mutually recursive turn functions over a single
mutable scratch state (dragon square, per-column sheep rows). Each branch
is applied, searched and undone in ``try/finally`` so the scratch state is
unchanged whenever a turn function returns. Results are memoized in a
transposition table keyed by ``(phase, dragon, sheep rows)``.

Raw tuples are used in the recursion instead of Position objects to keep
pydantic out of the hot path.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple

from ..board import Board
from ..errors import InvalidStateError
from ..metrics import observe_search
from ..models import Coord, GameState, Phase, Position, SearchConfig
from .transposition_table import TranspositionTable

__all__ = ["GameSearch", "count_winning_games"]

logger = logging.getLogger(__name__)

# Frames kept free for the caller above the deepest possible line of play.
_RECURSION_HEADROOM = 1000


class GameSearch:
    """Memoized outcome counter for one board.

    Not thread-safe: an instance owns its scratch state and its
    transposition table. Run independent searches on separate instances.

    Recursion depth grows with the rows the sheep still have to walk: each
    sheep step costs at most two sheep turns and two dragon turns (a double
    move included). ``count_outcomes`` and ``evaluate`` raise the interpreter
    recursion limit to that bound plus headroom for the duration of the
    search and restore it afterwards. Calling ``prey_turn`` or
    ``predator_turn`` directly runs under the current limit.
    """

    def __init__(self, board: Board, config: Optional[SearchConfig] = None) -> None:
        self.board = board
        self.config = config or SearchConfig()
        if (
            self.config.max_cache_entries is None
            and self.config.cache_memory_limit_mb is not None
        ):
            self.transposition_table = TranspositionTable.from_memory_limit(
                self.config.cache_memory_limit_mb * 1024 * 1024
            )
        else:
            self.transposition_table = TranspositionTable(
                max_entries=self.config.max_cache_entries
            )

        self._height = board.height
        self._blocked = board.blocked
        self._safe: Tuple[int, ...] = board.safe_thresholds()
        # Knight destinations per square, precomputed once.
        self._knight_table: Dict[Coord, Tuple[Coord, ...]] = {
            (r, c): tuple(board.knight_moves((r, c)))
            for r in range(board.height)
            for c in range(board.width)
        }

        self._phase = Phase.PREY_TURN
        self._dragon: Coord = board.predator.as_tuple()
        self._sheep: List[Optional[int]] = list(board.initial_rows())

        self.nodes_visited: Dict[Phase, int] = {
            Phase.PREY_TURN: 0,
            Phase.PREDATOR_TURN: 0,
        }

        logger.debug(
            f"GameSearch({board.width}x{board.height}, "
            f"sheep={sum(1 for r in self._sheep if r is not None)}, "
            f"max_cache_entries={self.transposition_table.max_entries})"
        )

    # ------------------------------------------------------------------
    # Scratch state
    # ------------------------------------------------------------------

    @property
    def state(self) -> GameState:
        """Snapshot of the current scratch state."""
        return GameState(
            phase=self._phase,
            predator=Position.from_tuple(self._dragon),
            prey_rows=tuple(self._sheep),
        )

    def load_state(self, state: GameState) -> None:
        """Replace the scratch state with ``state``.

        Raises:
            InvalidStateError: the state does not fit this board.
        """
        board = self.board
        if len(state.prey_rows) != board.width:
            raise InvalidStateError(
                "Sheep row count does not match board width",
                context={"columns": len(state.prey_rows), "width": board.width},
            )
        for col, row in enumerate(state.prey_rows):
            if row is not None and not 0 <= row < board.height:
                raise InvalidStateError(
                    "Sheep row is off the board",
                    context={"column": col, "row": row, "height": board.height},
                )
        if not board.in_bounds(state.predator.as_tuple()):
            raise InvalidStateError(
                "Dragon is off the board",
                context={"predator": state.predator.to_key()},
            )
        self._phase = state.phase
        self._dragon = state.predator.as_tuple()
        self._sheep = list(state.prey_rows)

    def reset(self) -> None:
        """Return to the board's starting position."""
        self._phase = Phase.PREY_TURN
        self._dragon = self.board.predator.as_tuple()
        self._sheep = list(self.board.initial_rows())

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def count_outcomes(self) -> int:
        """Count every winning game from the board's starting position."""
        self.reset()
        self.transposition_table.clear()
        for phase in self.nodes_visited:
            self.nodes_visited[phase] = 0

        start = time.perf_counter()
        with self._recursion_budget():
            count = self.prey_turn()
        elapsed = time.perf_counter() - start

        table_stats = self.transposition_table.stats()
        logger.info(
            f"GameSearch: {count} outcomes in {elapsed:.3f}s "
            f"(prey nodes={self.nodes_visited[Phase.PREY_TURN]}, "
            f"dragon nodes={self.nodes_visited[Phase.PREDATOR_TURN]}, "
            f"cache entries={table_stats['entries']}, "
            f"hit rate={table_stats['hit_rate']:.1%})"
        )
        if table_stats["evictions"]:
            logger.warning(
                f"GameSearch: transposition table evicted "
                f"{table_stats['evictions']} entries; raise max_cache_entries "
                f"to avoid recounting positions"
            )
        if self.config.record_metrics:
            observe_search(
                duration_seconds=elapsed,
                nodes_by_phase={
                    phase.value: nodes for phase, nodes in self.nodes_visited.items()
                },
                cache_hits=table_stats["hits"],
                cache_misses=table_stats["misses"],
                cache_size=table_stats["entries"],
            )
        return count

    def evaluate(self, state: GameState) -> int:
        """Count winning games from an arbitrary position.

        The scratch state is left at ``state`` afterwards. The transposition
        table is kept, so repeated evaluations reuse earlier work.
        """
        self.load_state(state)
        with self._recursion_budget():
            if state.phase == Phase.PREDATOR_TURN:
                return self.predator_turn()
            return self.prey_turn()

    def max_depth(self) -> int:
        """Upper bound on nested turn calls from the current scratch state."""
        steps = sum(self._height - row for row in self._sheep if row is not None)
        return 4 * steps + 2

    @contextmanager
    def _recursion_budget(self):
        previous = sys.getrecursionlimit()
        needed = self.max_depth() + _RECURSION_HEADROOM
        if needed > previous:
            logger.debug(f"GameSearch: recursion limit {previous} -> {needed}")
            sys.setrecursionlimit(needed)
        try:
            yield
        finally:
            if needed > previous:
                sys.setrecursionlimit(previous)

    def prey_turn(self) -> int:
        sheep = self._sheep
        key = (Phase.PREY_TURN, self._dragon, tuple(sheep))
        cached = self.transposition_table.get(key)
        if cached is not None:
            return cached
        if all(row is None for row in sheep):
            return 1

        self.nodes_visited[Phase.PREY_TURN] += 1
        dragon = self._dragon
        count = 0
        any_move = False
        for col, row in enumerate(sheep):
            if row is None:
                continue
            row1 = row + 1
            dest = (row1, col)
            if dest == dragon and dest not in self._blocked:
                continue
            # Only stepping onto the dragon is illegal, so an escaping step
            # still rules out the double move.
            any_move = True
            if row1 == self._height or row1 >= self._safe[col]:
                continue
            sheep[col] = row1
            try:
                count += self.predator_turn()
            finally:
                sheep[col] = row

        if not any_move:
            count = self.predator_turn()

        self.transposition_table.put(key, count)
        return count

    def predator_turn(self) -> int:
        sheep = self._sheep
        origin = self._dragon
        key = (Phase.PREDATOR_TURN, origin, tuple(sheep))
        cached = self.transposition_table.get(key)
        if cached is not None:
            return cached
        if all(row is None for row in sheep):
            return 1

        self.nodes_visited[Phase.PREDATOR_TURN] += 1
        count = 0
        try:
            for dest in self._knight_table[origin]:
                self._dragon = dest
                row, col = dest
                if sheep[col] == row and dest not in self._blocked:
                    sheep[col] = None
                    try:
                        count += self.prey_turn()
                    finally:
                        sheep[col] = row
                else:
                    count += self.prey_turn()
        finally:
            self._dragon = origin

        self.transposition_table.put(key, count)
        return count

    def stats(self) -> dict:
        """Node counts per phase plus transposition table statistics."""
        return {
            "nodes": {
                phase.value: nodes for phase, nodes in self.nodes_visited.items()
            },
            "cache": self.transposition_table.stats(),
        }


def count_winning_games(board: Board, config: Optional[SearchConfig] = None) -> int:
    """Count the games on ``board`` in which the dragon captures every sheep."""
    return GameSearch(board, config).count_outcomes()
