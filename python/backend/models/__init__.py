from backend.models.board import Board, MoveEntry
from backend.models.puzzle_map import PuzzleMap
from backend.models.savestore import (
    IntegrityDeclinedError,
    SaveEntry,
    SaveError,
    SaveFormatError,
    SaveNotFoundError,
    SaveStore,
    Stats,
    is_valid_user_name,
)
from backend.models.tile import Direction, Shape, Tile

__all__ = [
    "Board",
    "Direction",
    "IntegrityDeclinedError",
    "MoveEntry",
    "PuzzleMap",
    "SaveEntry",
    "SaveError",
    "SaveFormatError",
    "SaveNotFoundError",
    "SaveStore",
    "Shape",
    "Stats",
    "Tile",
    "is_valid_user_name",
]
