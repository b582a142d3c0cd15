"""Rich terminal frontend — tables, colours, and panels.

Level picker, game screen with a live clock, save/load with integrity
prompts, hint and auto-solve, and a per-user stats view.
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

import rich.box
from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from backend.engine.gameplay import GamePlay, Mode
from backend.models.board import Board
from backend.models.puzzle_map import PuzzleMap
from backend.models.savestore import (
    IntegrityDeclinedError,
    SaveFormatError,
    SaveNotFoundError,
    SaveStore,
)
from backend.models.tile import Direction, Shape
from frontend.cli.input_handler import FOCUS_KEYS, MOVE_KEYS, get_key, get_key_timeout

logger = logging.getLogger(__name__)

console = Console()

_SHAPE_STYLE: dict[Shape, str] = {
    Shape.SMALL: "bold white on #45475a",
    Shape.HORIZONTAL: "bold black on #89b4fa",
    Shape.VERTICAL: "bold black on #a6e3a1",
    Shape.LARGE: "bold black on #f38ba8",
}

_MODE_LABEL: dict[Mode, str] = {
    Mode.NORMAL: "Normal",
    Mode.TIME_LIMIT: "Time limit",
    Mode.MOVE_LIMIT: "Move limit",
}

_GUEST_NOTICE = "[yellow]Guest games are not saved. Start with --user NAME.[/yellow]"


# -- helpers ------------------------------------------------------------------


def _format_time(seconds: float) -> str:
    m, s = divmod(int(seconds), 60)
    return f"{m:02d}:{s:02d}"


def _confirm(question: str) -> bool:
    """Yes/no prompt used by the save store's integrity checks."""
    console.print()
    console.print(Align.center(Text.from_markup(f"[bold yellow]{question}[/bold yellow]")))
    console.print(Align.center(Text("Y = yes, any other key = no", style="dim")))
    return get_key() == "yes"


def _load_levels(levels_dir: Path) -> list[PuzzleMap]:
    return [PuzzleMap.from_file(p) for p in sorted(levels_dir.glob("*.txt"))]


# -- board rendering ----------------------------------------------------------


def _render_board(board: Board) -> Table:
    """Return a Rich Table representing the puzzle grid."""
    width = max(len(str(t.id)) for t in board.tiles) + 2
    table = Table(
        show_header=False,
        show_edge=True,
        pad_edge=False,
        box=rich.box.HEAVY,
        border_style="bright_blue",
        padding=(0, 0),
        show_lines=True,
    )
    for _ in range(board.cols):
        table.add_column(width=width, justify="center")

    focused = board.focused
    for r in range(board.rows):
        cells: list[Text] = []
        for c in range(board.cols):
            tile = board.get_block_at((r, c))
            if tile is None:
                if (r, c) in board.goal_cells:
                    cells.append(Text("★", style="green"))
                else:
                    cells.append(Text("·", style="dim"))
                continue
            style = _SHAPE_STYLE[tile.shape]
            if focused is not None and tile.id == focused.id:
                style += " reverse"
            cells.append(Text(str(tile.id).center(width), style=style))
        table.add_row(*cells)

    return table


def _stats_text(game: GamePlay) -> tuple[str, str]:
    """Return (plain, markup) versions of the moves/time line."""
    moves = str(game.state.moves)
    clock = _format_time(game.state.elapsed_time)
    if game.mode is Mode.MOVE_LIMIT:
        moves += f"/{game.puzzle_map.move_limit}"
    if game.mode is Mode.TIME_LIMIT:
        clock += f"/{_format_time(game.puzzle_map.time_limit)}"
    plain = f"Moves: {moves}    Time: {clock}"
    markup = (
        f"[dim]Moves: [/dim][bold yellow]{moves}[/bold yellow]"
        f"[dim]    Time: [/dim][bold yellow]{clock}[/bold yellow]"
    )
    return plain, markup


# -- solver helpers -----------------------------------------------------------


def _apply_hint(game: GamePlay) -> str:
    if game.is_won:
        return "[green]Already solved![/green]"
    move = game.apply_hint()
    if move is None:
        return "[yellow]No hint available: this position cannot be solved.[/yellow]"
    return f"[cyan]Hint:[/cyan] moved tile [bold]{move.tile_id}[/bold] {move.direction.value}"


def _auto_solve(game: GamePlay) -> str:
    console.print(Align.center(Text("Solving…", style="bold cyan")))
    moves = game.solve()

    if moves is None:
        return "[red]This position cannot be solved.[/red]"
    if not moves:
        return "[green]Already solved![/green]"

    for i, move in enumerate(moves):
        tile = game.board.find_tile(move.tile_id)
        game.board.set_focused(tile)
        game.move_tile(tile, move.direction)
        console.clear()

        progress = Text()
        progress.append(f"  Solving… move {i + 1}/{len(moves)} ", style="bold cyan")
        progress.append(f"(tile {move.tile_id} {move.direction.value})", style="dim")

        panel = Panel(
            Align.center(_render_board(game.board)),
            title=f"[bold cyan]Auto-Solve  {game.puzzle_map.name}[/bold cyan]",
            border_style="cyan",
            padding=(1, 2),
        )
        console.print()
        console.print(Align.center(panel))
        console.print(Align.center(progress))
        sys.stdout.flush()
        time.sleep(0.08 * tile.inertia)

    return f"[bold green]Solved in {len(moves)} moves![/bold green]"


# -- save helpers -------------------------------------------------------------


def _save(game: GamePlay) -> str:
    if not game.can_save:
        return _GUEST_NOTICE
    try:
        game.save()
    except OSError as exc:
        logger.error("Saving failed: %s", exc)
        return f"[red]Saving failed: {exc}[/red]"
    return "[green]Game saved.[/green]"


def _load(game: GamePlay) -> str:
    if not game.can_save:
        return _GUEST_NOTICE
    try:
        elapsed_ms = game.load()
    except SaveNotFoundError:
        return "[yellow]No saved game for this level.[/yellow]"
    except IntegrityDeclinedError as exc:
        return f"[yellow]{exc}[/yellow]"
    except SaveFormatError as exc:
        logger.warning("Unreadable save: %s", exc)
        return "[red]The save file is unreadable.[/red]"
    return (
        f"[green]Loaded {game.state.moves} moves, "
        f"{_format_time(elapsed_ms / 1000)} played.[/green]"
    )


# -- menu screen --------------------------------------------------------------


def _draw_menu(levels: list[PuzzleMap], selected: int, mode: Mode, user: str | None) -> None:
    """Draw the level picker."""
    console.clear()

    rows = Text()
    if not levels:
        rows.append("  No levels found.", style="dim")
    for i, level in enumerate(levels):
        marker = "▶ " if i == selected else "  "
        label = f"{marker}{level.name:<16}"
        if not level.is_valid:
            rows.append(f"{label} (invalid)\n", style="dim red")
        elif i == selected:
            rows.append(f"{label} {level.rows}×{level.cols}\n", style="bold green on #313244")
        else:
            rows.append(f"{label} {level.rows}×{level.cols}\n")

    mode_line = Text()
    mode_line.append("  Mode: ", style="dim")
    mode_line.append(_MODE_LABEL[mode], style="bold yellow")
    mode_line.append(f"    Player: {user or 'guest'}", style="dim")

    opts = Text()
    opts.append("  ↑↓", style="bold cyan")
    opts.append("  level   ", style="dim")
    opts.append("M", style="bold cyan")
    opts.append("  mode   ", style="dim")
    opts.append("Enter", style="bold cyan")
    opts.append("  play   ", style="dim")
    opts.append("T", style="bold cyan")
    opts.append("  stats   ", style="dim")
    opts.append("Q", style="dim bold")
    opts.append("  quit", style="dim")

    body = Group(
        Text(""),
        Align.center(rows),
        Align.center(mode_line),
        Text(""),
        Align.center(opts),
        Text(""),
    )

    panel = Panel(
        body,
        title="[bold]K L O T S K I[/bold]",
        border_style="bright_blue",
        padding=(1, 4),
    )

    console.print()
    console.print(Align.center(panel))


# -- game screens -------------------------------------------------------------


def _draw_game(game: GamePlay, status: str = "") -> None:
    console.clear()

    _, stats_markup = _stats_text(game)

    controls = Text()
    controls.append("  ↑↓←→", style="bold cyan")
    controls.append("/", style="dim")
    controls.append("WASD", style="bold cyan")
    controls.append(" move  ", style="dim")
    controls.append("IJKL", style="bold cyan")
    controls.append("/", style="dim")
    controls.append("Tab", style="bold cyan")
    controls.append(" focus  ", style="dim")
    controls.append("U", style="bold cyan")
    controls.append(" undo  ", style="dim")
    controls.append("R", style="bold cyan")
    controls.append(" restart  ", style="dim")
    controls.append("N", style="bold cyan")
    controls.append(" hint  ", style="dim")
    controls.append("V", style="bold cyan")
    controls.append(" solve  ", style="dim")
    controls.append("P", style="bold cyan")
    controls.append("/", style="dim")
    controls.append("O", style="bold cyan")
    controls.append(" save/load  ", style="dim")
    controls.append("Q", style="bold cyan")
    controls.append(" back", style="dim")

    panel = Panel(
        Align.center(_render_board(game.board)),
        title=(
            f"[bold cyan]{game.puzzle_map.name}  "
            f"({_MODE_LABEL[game.mode]})[/bold cyan]"
        ),
        border_style="bright_blue",
        padding=(1, 2),
    )

    console.print()
    console.print(Align.center(panel))
    # Save cursor position right before the stats line so _update_time()
    # can later restore to this exact spot and overwrite only this line.
    sys.stdout.write("\033[s")
    sys.stdout.flush()
    console.print(Align.center(Text.from_markup(stats_markup)))
    if status:
        console.print(Align.center(Text.from_markup(f"  {status}")))
    console.print(Align.center(controls))


def _update_time(game: GamePlay) -> None:
    """Overwrite just the stats line using the saved cursor position.

    Uses raw ANSI codes (bypassing Rich) so only the single stats
    line is repainted — no flicker from a full redraw.
    """
    plain, markup = _stats_text(game)
    with console.capture() as capture:
        console.print(Text.from_markup(markup), end="")
    pad = max(0, (console.width - len(plain)) // 2)

    sys.stdout.write(f"\033[u\033[K{' ' * pad}{capture.get()}")
    sys.stdout.flush()


def _draw_result(game: GamePlay, new_time: bool, new_moves: bool) -> None:
    console.clear()

    headline = Text()
    if game.is_won:
        headline.append("\n  ★ ", style="bold yellow")
        headline.append("SOLVED!", style="bold green")
        headline.append("  ★\n", style="bold yellow")
        border = "bold green"
    else:
        limit = "time" if game.mode is Mode.TIME_LIMIT else "move"
        headline.append(f"\n  Out of {limit}s — try again!\n", style="bold red")
        border = "bold red"

    stats = Text()
    stats.append("  Moves: ", style="dim")
    stats.append(str(game.state.moves), style="bold yellow")
    if new_moves:
        stats.append(" (best!)", style="green")
    stats.append("    Time: ", style="dim")
    stats.append(_format_time(game.state.elapsed_time), style="bold yellow")
    if new_time:
        stats.append(" (best!)", style="green")

    panel = Panel(
        Group(
            Align.center(_render_board(game.board)),
            Align.center(headline),
            Align.center(stats),
        ),
        title=f"[bold]{game.puzzle_map.name}[/bold]",
        border_style=border,
        padding=(1, 2),
    )

    console.print()
    console.print(Align.center(panel))
    console.print(
        Align.center(Text("\n  Press R to play again, Q to go back.\n", style="dim"))
    )


def _draw_stats(levels: list[PuzzleMap], store: SaveStore, user: str | None) -> None:
    """Full-screen stats view (used from the menu)."""
    console.clear()

    table = Table(
        title=f"Player: {user or 'guest'}",
        title_style="bold cyan",
        box=rich.box.ROUNDED,
        border_style="dim",
    )
    table.add_column("Level")
    table.add_column("Cleared", justify="right", style="yellow")
    table.add_column("Best time", justify="right", style="yellow")
    table.add_column("Best moves", justify="right", style="yellow")

    for level in levels:
        if not level.is_valid:
            continue
        stats = store.get_stats(user, level) if user else None
        if stats is None or stats.completed_count == 0:
            table.add_row(level.name, "-", "-", "-")
            continue
        table.add_row(
            level.name,
            str(stats.completed_count),
            _format_time(stats.best_time_ms / 1000),
            str(stats.best_moves),
        )

    recent = store.get_recent_map_name(user) if user else None
    footer = Text(f"\n  Last saved game: {recent or 'none'}", style="dim")

    panel = Panel(
        Group(Align.center(table), Align.center(footer)),
        title="[bold]S T A T S[/bold]",
        border_style="bright_blue",
        padding=(1, 2),
    )

    console.print()
    console.print(Align.center(panel))
    console.print(Align.center(Text("\n  Press any key to go back.\n", style="dim")))
    get_key()


# -- game loop ----------------------------------------------------------------


def _play_game(level: PuzzleMap, mode: Mode, store: SaveStore, user: str | None) -> None:
    directions = {d.value: d for d in Direction}
    focus_directions = dict(zip(FOCUS_KEYS, Direction))

    while True:
        game = GamePlay(level, mode, store=store, user=user)
        game.cycle_focus()
        status = ""

        while not (game.is_won or game.is_failed):
            _draw_game(game, status)
            status = ""

            # Wait for input with a short timeout so the clock keeps ticking.
            while True:
                key = get_key_timeout(0.5)
                if key is not None or game.is_failed:
                    break
                _update_time(game)

            if key is None:
                break
            if key in MOVE_KEYS:
                if not game.move(directions[key]):
                    status = "[dim]That tile cannot move there.[/dim]"
            elif key in focus_directions:
                game.move_focus(focus_directions[key])
            elif key == "tab":
                game.cycle_focus()
            elif key == "undo":
                if not game.undo():
                    status = "[dim]Nothing to undo.[/dim]"
            elif key == "restart":
                game.restart()
                game.cycle_focus()
            elif key == "hint":
                status = _apply_hint(game)
            elif key == "solve":
                status = _auto_solve(game)
            elif key == "save":
                status = _save(game)
            elif key == "load":
                status = _load(game)
            elif key == "quit":
                try:
                    game.leave()
                except OSError as exc:
                    logger.error("Saving on exit failed: %s", exc)
                return

        # -- result ------------------------------------------------------------
        new_time, new_moves = game.finish()
        _draw_result(game, new_time, new_moves)

        while True:
            key = get_key()
            if key == "restart":
                break
            if key == "quit":
                return


# -- menu loop ----------------------------------------------------------------


def _menu_loop(levels_dir: Path, store: SaveStore, user: str | None, mode: Mode) -> None:
    levels = _load_levels(levels_dir)
    modes = list(Mode)
    selected = 0
    recent = store.get_recent_map_name(user) if user else None
    for i, level in enumerate(levels):
        if level.name == recent:
            selected = i

    while True:
        _draw_menu(levels, selected, mode, user)
        key = get_key()

        if key == "quit":
            console.clear()
            console.print(Align.center(Text("\nGoodbye!\n", style="bold cyan")))
            return
        elif key == "up" and levels:
            selected = (selected - 1) % len(levels)
        elif key == "down" and levels:
            selected = (selected + 1) % len(levels)
        elif key in ("mode", "left", "right"):
            step = -1 if key == "left" else 1
            mode = modes[(modes.index(mode) + step) % len(modes)]
        elif key == "stats":
            _draw_stats(levels, store, user)
        elif key == "enter" and levels and levels[selected].is_valid:
            _play_game(levels[selected], mode, store, user)


# -- public entry point -------------------------------------------------------


def run(
    levels_dir: Path,
    saves_dir: Path,
    user: str | None,
    level: Path | None = None,
    mode: Mode = Mode.NORMAL,
) -> None:
    """Launch the Rich CLI; jump straight into *level* when given."""
    store = SaveStore(saves_dir, confirm=_confirm)
    if level is None:
        _menu_loop(levels_dir, store, user, mode)
        return

    puzzle_map = PuzzleMap.from_file(level)
    if not puzzle_map.is_valid:
        console.print(f"[red]Level {puzzle_map.name} is invalid:[/red]")
        for error in puzzle_map.errors:
            console.print(f"  [red]•[/red] {error}")
        return
    _play_game(puzzle_map, mode, store, user)
