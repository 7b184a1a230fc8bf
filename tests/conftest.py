"""
Shared pytest fixtures for dragonhunt tests.

Boards are immutable, so fixtures hand out freshly parsed instances only to
keep each test self-contained.
"""

from pathlib import Path
import sys

import pytest

# Ensure the repository root is on sys.path so `import dragonhunt` and
# `import tests.boards` work without an editable install.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dragonhunt.board import Board
from dragonhunt.models import SearchConfig
from tests.boards import ENCLOSED_3X4, MIXED_5X6, make_board


@pytest.fixture
def enclosed_board() -> Board:
    return make_board(ENCLOSED_3X4)


@pytest.fixture
def mixed_board() -> Board:
    return make_board(MIXED_5X6)


@pytest.fixture
def quiet_config() -> SearchConfig:
    """Unbounded search that does not publish Prometheus metrics."""
    return SearchConfig(max_cache_entries=None, record_metrics=False)
