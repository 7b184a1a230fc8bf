"""
Tests for the memoized outcome search.

These tests verify:
1. Known outcome counts for the reference boards
2. Turn rules (capture, hideouts, escapes, double move) on tiny boards
3. The scratch state is restored after every turn function returns
4. Cached answers are consistent and a bounded cache gives the same counts
"""

import sys

import pytest
from prometheus_client import REGISTRY

from dragonhunt.ai.game_search import GameSearch, count_winning_games
from dragonhunt.board import Board
from dragonhunt.errors import InvalidStateError
from dragonhunt.models import GameState, Phase, Position, SearchConfig
from tests.boards import (
    ENCLOSED_3X4,
    FIVE_SHEEP_5X5,
    MIXED_5X6,
    NARROW_3X5,
    OPEN_5X5,
    make_board,
)


class TestReferenceBoards:
    """Outcome counts for the reference puzzle examples."""

    @pytest.mark.parametrize(
        "grid,expected",
        [
            (ENCLOSED_3X4, 15),
            (NARROW_3X5, 8),
            (OPEN_5X5, 44),
            (MIXED_5X6, 4406),
            pytest.param(FIVE_SHEEP_5X5, 13_033_988_838, marks=pytest.mark.slow),
        ],
    )
    def test_count_outcomes(self, grid, expected, quiet_config) -> None:
        board = make_board(grid)
        assert GameSearch(board, quiet_config).count_outcomes() == expected

    def test_module_helper(self, enclosed_board: Board) -> None:
        """count_winning_games builds a fresh search with default config."""
        assert count_winning_games(enclosed_board) == 15


class TestTurnRules:
    """Hand-counted positions on tiny boards."""

    def test_single_capture(self, quiet_config) -> None:
        """Only the line where the dragon meets the sheep at once wins."""
        board = Board.from_text("S.D\n...\n...")
        assert GameSearch(board, quiet_config).count_outcomes() == 1

    def test_hideout_prevents_capture(self, quiet_config) -> None:
        """Landing on a sheep in a hideout does not capture it."""
        board = Board.from_text("S.D\n#..\n...")
        assert GameSearch(board, quiet_config).count_outcomes() == 0

    def test_escape_does_not_branch(self, quiet_config) -> None:
        """A sheep stepping into the bottom hideout run ends the line."""
        board = Board.from_text("S.D\n#..\n#..")
        search = GameSearch(board, quiet_config)
        assert search.count_outcomes() == 0
        assert search.nodes_visited[Phase.PREDATOR_TURN] == 0

    def test_dragon_without_moves_cannot_win(self, quiet_config) -> None:
        board = Board.from_text("S\n.\nD")
        assert GameSearch(board, quiet_config).count_outcomes() == 0

    def test_double_move_when_sheep_is_stuck(self, quiet_config) -> None:
        """A sheep directly above the dragon cannot move; the dragon moves again."""
        board = Board.from_text("S..\nD..\n...")
        search = GameSearch(board, quiet_config)
        assert search.count_outcomes() == 3

        stuck = GameState(
            phase=Phase.PREDATOR_TURN,
            predator=Position(row=1, col=0),
            prey_rows=(0, None, None),
        )
        assert GameSearch(board, quiet_config).evaluate(stuck) == 3

    def test_sheep_may_step_onto_dragon_in_hideout(self, quiet_config) -> None:
        """The same position with the dragon on a hideout is a normal sheep move."""
        board = Board.from_text("S..\n#..\n..D")
        search = GameSearch(board, quiet_config)
        start = GameState(
            phase=Phase.PREY_TURN,
            predator=Position(row=1, col=0),
            prey_rows=(0, None, None),
        )
        assert search.evaluate(start) == 0
        assert search.nodes_visited[Phase.PREDATOR_TURN] > 0

    def test_terminal_state_counts_once(self, enclosed_board: Board, quiet_config) -> None:
        """With every sheep gone both turn functions report one finished game."""
        search = GameSearch(enclosed_board, quiet_config)
        for phase in Phase:
            done = GameState(
                phase=phase,
                predator=Position(row=1, col=0),
                prey_rows=(None, None, None),
            )
            assert done.is_terminal
            assert search.evaluate(done) == 1


class TestScratchStateRestoration:
    """Turn functions must leave the scratch state as they found it."""

    MIDGAME = GameState(
        phase=Phase.PREY_TURN,
        predator=Position(row=5, col=2),
        prey_rows=(None, 1, 0, None, 0),
    )

    def test_prey_turn_restores_state(self, mixed_board: Board, quiet_config) -> None:
        search = GameSearch(mixed_board, quiet_config)
        search.load_state(self.MIDGAME)
        before = search.state
        search.prey_turn()
        assert search.state == before

    def test_predator_turn_restores_state(self, mixed_board: Board, quiet_config) -> None:
        search = GameSearch(mixed_board, quiet_config)
        search.load_state(self.MIDGAME)
        before = search.state
        search.predator_turn()
        assert search.state == before

    def test_count_outcomes_leaves_start_position(self, mixed_board: Board, quiet_config) -> None:
        search = GameSearch(mixed_board, quiet_config)
        search.count_outcomes()
        assert search.state == GameState(
            predator=mixed_board.predator,
            prey_rows=mixed_board.initial_rows(),
        )

    def test_restores_state_when_recursion_raises(self, mixed_board: Board, quiet_config) -> None:
        """Undo runs on exceptional exits too."""
        search = GameSearch(mixed_board, quiet_config)
        search.load_state(self.MIDGAME)
        before = search.state
        original = search.predator_turn
        calls = {"n": 0}

        def flaky_predator_turn():
            calls["n"] += 1
            if calls["n"] > 3:
                raise RuntimeError("boom")
            return original()

        search.predator_turn = flaky_predator_turn
        with pytest.raises(RuntimeError):
            search.prey_turn()
        assert search.state == before


class TestCacheConsistency:
    """Cached answers must match recomputed ones."""

    def test_repeated_evaluation_is_stable(self, mixed_board: Board, quiet_config) -> None:
        search = GameSearch(mixed_board, quiet_config)
        state = TestScratchStateRestoration.MIDGAME
        first = search.evaluate(state)
        hits_before = search.transposition_table.hits
        second = search.evaluate(state)
        assert first == second
        assert search.transposition_table.hits == hits_before + 1

    def test_fresh_search_agrees_with_cached_one(self, mixed_board: Board, quiet_config) -> None:
        state = TestScratchStateRestoration.MIDGAME
        warm = GameSearch(mixed_board, quiet_config)
        warm.count_outcomes()
        cold = GameSearch(mixed_board, quiet_config)
        assert warm.evaluate(state) == cold.evaluate(state)

    def test_count_outcomes_twice(self, enclosed_board: Board, quiet_config) -> None:
        search = GameSearch(enclosed_board, quiet_config)
        assert search.count_outcomes() == search.count_outcomes() == 15

    def test_bounded_cache_gives_same_count(self, mixed_board: Board) -> None:
        config = SearchConfig(max_cache_entries=50, record_metrics=False)
        search = GameSearch(mixed_board, config)
        assert search.count_outcomes() == 4406
        assert search.transposition_table.evictions > 0
        assert len(search.transposition_table) <= 50

    def test_memory_limit_sizes_the_table(self, enclosed_board: Board) -> None:
        config = SearchConfig(
            max_cache_entries=None, cache_memory_limit_mb=1, record_metrics=False
        )
        search = GameSearch(enclosed_board, config)
        assert search.transposition_table.max_entries == 1024 * 1024 // 200
        assert search.count_outcomes() == 15

    def test_entry_cap_wins_over_memory_limit(self, enclosed_board: Board) -> None:
        config = SearchConfig(
            max_cache_entries=50, cache_memory_limit_mb=1, record_metrics=False
        )
        search = GameSearch(enclosed_board, config)
        assert search.transposition_table.max_entries == 50


class TestMonotonicSheepCount:
    """Captures only ever remove sheep along a line of play."""

    def test_live_sheep_never_increase(self, enclosed_board: Board, quiet_config) -> None:
        search = GameSearch(enclosed_board, quiet_config)
        path = []
        violations = []

        def watch(turn):
            def wrapped():
                live = search.state.live_prey
                if path and live > path[-1]:
                    violations.append((list(path), live))
                path.append(live)
                try:
                    return turn()
                finally:
                    path.pop()
            return wrapped

        search.prey_turn = watch(search.prey_turn)
        search.predator_turn = watch(search.predator_turn)

        assert search.count_outcomes() == 15
        assert violations == []


class TestLoadState:
    """Tests for validating externally supplied positions."""

    def test_wrong_column_count(self, enclosed_board: Board) -> None:
        search = GameSearch(enclosed_board)
        with pytest.raises(InvalidStateError, match="width"):
            search.load_state(
                GameState(predator=Position(row=0, col=0), prey_rows=(0, 0))
            )

    def test_sheep_off_board(self, enclosed_board: Board) -> None:
        search = GameSearch(enclosed_board)
        with pytest.raises(InvalidStateError) as exc_info:
            search.load_state(
                GameState(predator=Position(row=0, col=0), prey_rows=(4, None, None))
            )
        assert exc_info.value.context["column"] == 0

    def test_dragon_off_board(self, enclosed_board: Board) -> None:
        search = GameSearch(enclosed_board)
        with pytest.raises(InvalidStateError, match="Dragon"):
            search.load_state(
                GameState(predator=Position(row=9, col=0), prey_rows=(0, 0, 0))
            )

    def test_cache_key_matches_search_key(self, enclosed_board: Board, quiet_config) -> None:
        search = GameSearch(enclosed_board, quiet_config)
        search.count_outcomes()
        start = GameState(
            predator=enclosed_board.predator,
            prey_rows=enclosed_board.initial_rows(),
        )
        assert start.cache_key() in search.transposition_table


class TestMetricsAndStats:
    """Tests for per-search telemetry."""

    def test_metrics_recorded(self, enclosed_board: Board) -> None:
        before = REGISTRY.get_sample_value("dragonhunt_searches_total") or 0.0
        GameSearch(enclosed_board, SearchConfig(record_metrics=True)).count_outcomes()
        after = REGISTRY.get_sample_value("dragonhunt_searches_total")
        assert after == before + 1

    def test_metrics_disabled(self, enclosed_board: Board, quiet_config) -> None:
        before = REGISTRY.get_sample_value("dragonhunt_searches_total") or 0.0
        GameSearch(enclosed_board, quiet_config).count_outcomes()
        after = REGISTRY.get_sample_value("dragonhunt_searches_total") or 0.0
        assert after == before

    def test_stats(self, enclosed_board: Board, quiet_config) -> None:
        search = GameSearch(enclosed_board, quiet_config)
        search.count_outcomes()
        stats = search.stats()
        assert stats["nodes"]["prey_turn"] > 0
        assert stats["nodes"]["predator_turn"] > 0
        assert stats["cache"]["entries"] == len(search.transposition_table)
        assert stats["cache"]["max_entries"] is None


class TestRecursionBudget:
    """Long columns nest deeper than the interpreter's recursion limit."""

    TALL = "S." + "\n.." * 118 + "\n.D"

    def test_max_depth_bound(self, quiet_config) -> None:
        search = GameSearch(Board.from_text(self.TALL), quiet_config)
        assert search.max_depth() == 4 * 120 + 2

    def test_deep_board_under_low_limit(self, quiet_config) -> None:
        board = Board.from_text(self.TALL)
        previous = sys.getrecursionlimit()
        sys.setrecursionlimit(300)
        try:
            search = GameSearch(board, quiet_config)
            assert search.count_outcomes() >= 0
            assert search.evaluate(
                GameState(predator=board.predator, prey_rows=(0, None))
            ) >= 0
            assert sys.getrecursionlimit() == 300
        finally:
            sys.setrecursionlimit(previous)
