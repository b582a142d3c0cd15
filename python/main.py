#!/usr/bin/env python3
"""Klotski sliding-block puzzle.

Usage::

    python main.py                           # level menu (Rich terminal)
    python main.py -l ../levels/classic.txt  # play one level
    python main.py -l ../levels/classic.txt -m move_limit
    python main.py -l ../levels/warmup.txt --solve
    python main.py --stats -u alice          # completion stats
    python main.py --reset-saves -u alice    # delete every save of alice
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

ROOT = Path(__file__).resolve().parent  # python/
PROJECT_ROOT = ROOT.parent  # klotski/
DEFAULT_CONFIG = PROJECT_ROOT / "data" / "settings.json"

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.engine.gameplay import Mode  # noqa: E402
from backend.models.savestore import is_valid_user_name  # noqa: E402
from backend.settings import load_settings, resolve_path, save_settings  # noqa: E402

logger = logging.getLogger("klotski")


# -- helpers ------------------------------------------------------------------


def _configure_logging(log_file: Path, level: str) -> None:
    # The terminal belongs to the game screen, so logs go to a file only.
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.FileHandler(log_file, encoding="utf-8")],
    )


def _print_solution(level: Path) -> None:
    from backend.engine.gamesolver import Solver
    from backend.models.board import Board
    from backend.models.puzzle_map import PuzzleMap

    puzzle_map = PuzzleMap.from_file(level)
    if not puzzle_map.is_valid:
        print(f"\n  Level {puzzle_map.name} is invalid:")
        for error in puzzle_map.errors:
            print(f"    - {error}")
        raise typer.Exit(code=1)

    moves = Solver.solve(Board.from_map(puzzle_map))
    if moves is None:
        print(f"\n  {puzzle_map.name}: no solution.\n")
        raise typer.Exit(code=2)

    print(f"\n  {puzzle_map.name}: solved in {len(moves)} moves\n")
    for i, move in enumerate(moves, 1):
        print(f"  {i:>4}. tile {move.tile_id:>3} {move.direction.value}")
    print()


def _check_user(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_user_name(value):
        raise typer.BadParameter(
            "use letters, digits, underscore, dot or dash only."
        )
    return value


def _print_stats(levels_dir: Path, saves_dir: Path, user: str) -> None:
    from backend.models.puzzle_map import PuzzleMap
    from backend.models.savestore import SaveStore

    store = SaveStore(saves_dir)

    print(f"\n  === STATS: {user} ===")
    shown = False
    for path in sorted(levels_dir.glob("*.txt")):
        puzzle_map = PuzzleMap.from_file(path)
        stats = store.get_stats(user, puzzle_map) if puzzle_map.is_valid else None
        if stats is None or stats.completed_count == 0:
            continue
        shown = True
        print(
            f"  {puzzle_map.name:<16} cleared {stats.completed_count:>3}x  "
            f"best {stats.best_moves:>4} moves  {stats.best_time_ms / 1000:>7.1f}s"
        )
    if not shown:
        print("  No cleared levels yet.")
    recent = store.get_recent_map_name(user)
    if recent:
        print(f"\n  Last saved game: {recent}")
    print()


def _reset_saves(saves_dir: Path, user: str) -> None:
    from backend.models.savestore import SaveStore

    typer.confirm(f"Delete every save of {user}?", abort=True)
    SaveStore(saves_dir).reset_all_saves(user)
    print(f"\n  Saves of {user} deleted.\n")


# -- CLI entry point ----------------------------------------------------------

app = typer.Typer(add_completion=False)


@app.command()
def main(
    level: Optional[Path] = typer.Option(
        None, "-l", "--level",
        exists=True, dir_okay=False,
        help="Level file to play. Omit for the level menu.",
    ),
    mode: Mode = typer.Option(
        Mode.NORMAL, "-m", "--mode",
        help="Game mode.",
    ),
    user: Optional[str] = typer.Option(
        None, "-u", "--user",
        callback=_check_user,
        help="Player name (save files are per player). Omit to play as a guest.",
    ),
    solve: bool = typer.Option(
        False, "--solve",
        help="Print a shortest solution for --level and exit.",
    ),
    stats: bool = typer.Option(
        False, "--stats",
        help="Show completion stats and exit.",
    ),
    reset_saves: bool = typer.Option(
        False, "--reset-saves",
        help="Delete every save of the player and exit.",
    ),
    config: Path = typer.Option(
        DEFAULT_CONFIG, "-c", "--config",
        help="Settings file (JSON).",
    ),
    debug: bool = typer.Option(
        False, "--debug",
        help="Log at DEBUG level.",
    ),
) -> None:
    """Klotski sliding-block puzzle."""
    settings = load_settings(config)
    if not config.exists():
        save_settings(settings, config)
    _configure_logging(
        resolve_path(settings, "log_file", PROJECT_ROOT),
        "DEBUG" if debug else settings["log_level"],
    )
    levels_dir = resolve_path(settings, "levels_dir", PROJECT_ROOT)
    saves_dir = resolve_path(settings, "saves_dir", PROJECT_ROOT)
    player = user or settings["user"]
    if player is not None and not (isinstance(player, str) and is_valid_user_name(player)):
        raise typer.BadParameter(
            f"invalid user name {player!r} in {config}.", param_hint="user"
        )
    logger.info("Starting: player=%s levels=%s", player or "guest", levels_dir)

    if solve:
        if level is None:
            raise typer.BadParameter("--solve needs --level.")
        _print_solution(level)
        return

    if stats or reset_saves:
        if player is None:
            raise typer.BadParameter("guests have no saves; pass --user.")
        if reset_saves:
            _reset_saves(saves_dir, player)
        else:
            _print_stats(levels_dir, saves_dir, player)
        return

    from frontend.cli.rich.app import run

    run(levels_dir=levels_dir, saves_dir=saves_dir, user=player, level=level, mode=mode)


if __name__ == "__main__":
    app()
