"""Shared level fixtures.

Levels are written to ``tmp_path`` so map checksums come from real files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from backend.models.board import Board
from backend.models.puzzle_map import PuzzleMap

# 3×3: the 2×2 tile sits on a 1×1 blocker; shortest win is 3 moves.
SIDESTEP = """60 10
1,1,
1*,1*,
2*,*,
"""

# 4×4: the 2×2 tile drops straight into the goal in 2 moves.
WARMUP = """60 10
2,1,1,3
2,1,1,3
4,*,*,5
4,*,*,5
"""

# Classic "Heng Dao Li Ma" opening.
CLASSIC = """600 200
2,1,1,3
2,1,1,3
4,5,5,6
4,7*,8*,6
9,*,*,10
"""

# Full grid: no tile can move at all.
BOXED = """60 10
1,1,2
1,1*,3*
4,5*,6*
"""

# The blocker shuffles sideways forever; the 2×2 tile can never drop.
TRAPPED = """60 10
1,1
1*,1*
2*,*
"""


@pytest.fixture
def write_level(tmp_path: Path) -> Callable[[str, str], Path]:
    levels = tmp_path / "levels"
    levels.mkdir()

    def _write(name: str, text: str) -> Path:
        path = levels / f"{name}.txt"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sidestep_map(write_level) -> PuzzleMap:
    return PuzzleMap.from_file(write_level("sidestep", SIDESTEP))


@pytest.fixture
def classic_map(write_level) -> PuzzleMap:
    return PuzzleMap.from_file(write_level("classic", CLASSIC))


@pytest.fixture
def sidestep(sidestep_map: PuzzleMap) -> Board:
    return Board.from_map(sidestep_map)


@pytest.fixture
def classic(classic_map: PuzzleMap) -> Board:
    return Board.from_map(classic_map)


def positions(board: Board) -> dict[int, tuple[int, int]]:
    return {t.id: t.position for t in board.tiles}
