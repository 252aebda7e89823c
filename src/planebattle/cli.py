"""Pass-the-device command-line shell for Plane Battle."""

from __future__ import annotations

import argparse
import logging
from typing import Callable

from planebattle.engine.attack import COLUMN_LABELS, label_to_coord
from planebattle.engine.board import Board, CellStatus
from planebattle.engine.game import GamePhase, InteractivePlane, PlaneBattleGame
from planebattle.engine.instrumented_game import InstrumentedPlaneBattleGame
from planebattle.engine.geometry import Coordinate, PlanePart
from planebattle.engine.interaction import ToolMode
from planebattle.settings import GameSettings
from planebattle.telemetry import configure_console_logging, init_telemetry

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]

STRUCK_SYMBOLS = {
    CellStatus.MISS: "o",
    CellStatus.HIT: "x",
    CellStatus.DEAD: "X",
}

SETUP_HELP = (
    "Commands: <cell> tap (e.g. C3; tap a head to rotate it), drag <from> <to>, "
    "turn, random, clear, ready, quit"
)
BATTLE_HELP = (
    "Commands: <cell> tap, drag <from> <to>, tool attack|deduce, turn, rotate, delete, "
    "deselect, end, log, quit"
)


def _format_grid(size: int, symbol_at: Callable[[Coordinate], str]) -> str:
    header = "    " + " ".join(f"{COLUMN_LABELS[x]:>2}" for x in range(size))
    rows = [header]
    for y in range(size):
        symbols = [f"{symbol_at(Coordinate(x, y)):>2}" for x in range(size)]
        rows.append(f"{y + 1:>2} |" + " ".join(symbols))
    return "\n".join(rows)


def _overlay(planes: list[InteractivePlane], ghost: bool) -> dict[Coordinate, str]:
    head, body = ("G", "g") if ghost else ("H", "#")
    marks: dict[Coordinate, str] = {}
    for item in planes:
        for cell in item.plane.cells:
            coord = cell.coord
            if coord in marks:
                continue
            if not item.is_valid:
                marks[coord] = "!" if cell.part is PlanePart.HEAD else "?"
            elif item.is_selected:
                marks[coord] = "*" if cell.part is PlanePart.HEAD else "+"
            else:
                marks[coord] = head if cell.part is PlanePart.HEAD else body
    return marks


def format_own_board(board: Board) -> str:
    def symbol(coord: Coordinate) -> str:
        cell = board.cell_at(coord)
        if cell.status in STRUCK_SYMBOLS:
            return STRUCK_SYMBOLS[cell.status]
        if cell.status is CellStatus.PLANE:
            return "H" if cell.part is PlanePart.HEAD else "#"
        return "."

    return _format_grid(board.size, symbol)


def format_target_board(board: Board, ghosts: list[InteractivePlane]) -> str:
    marks = _overlay(ghosts, ghost=True)

    def symbol(coord: Coordinate) -> str:
        cell = board.cell_at(coord)
        if cell.status in STRUCK_SYMBOLS:
            return STRUCK_SYMBOLS[cell.status]
        return marks.get(coord, ".")

    return _format_grid(board.size, symbol)


def format_setup_board(size: int, drafts: list[InteractivePlane]) -> str:
    marks = _overlay(drafts, ghost=False)
    return _format_grid(size, lambda coord: marks.get(coord, "."))


def _tap(game: PlaneBattleGame, coord: Coordinate) -> None:
    game.pointer_down(coord)
    game.pointer_up(coord)


def _drag(game: PlaneBattleGame, start: Coordinate, end: Coordinate) -> None:
    game.pointer_down(start)
    game.pointer_move(end)
    game.pointer_up(end)


def _pointer_command(game: PlaneBattleGame, parts: list[str], output: OutputFn) -> bool:
    """Handle a tap or drag command; return False if ``parts`` is neither."""
    size = game.settings.grid_size
    try:
        if parts[0] == "drag" and len(parts) == 3:
            _drag(game, label_to_coord(parts[1], size), label_to_coord(parts[2], size))
            return True
        if len(parts) == 1:
            _tap(game, label_to_coord(parts[0], size))
            return True
    except ValueError as exc:
        output(f"Invalid cell: {exc}")
        return True
    return False


def _setup_turn(game: PlaneBattleGame, input_fn: InputFn, output: OutputFn) -> None:
    player = game.active
    output(f"\n{player.name}: place {game.settings.planes_per_player} planes.")
    output(f"Heading for new planes: {game.setup_direction.name}")
    output(format_setup_board(game.settings.grid_size, game.interactive_planes()))
    output(SETUP_HELP)
    raw = input_fn("> ").strip().lower()
    parts = raw.split()
    if not parts:
        return
    command = parts[0]
    if command == "quit":
        raise SystemExit("Goodbye!")
    if command == "turn":
        game.toggle_direction()
    elif command == "random":
        if not game.random_setup():
            output("Could not find a random layout. Try again.")
    elif command == "clear":
        game.clear_setup()
    elif command == "ready":
        if not game.confirm_setup():
            output(
                f"Need exactly {game.settings.planes_per_player} planes, all on the board "
                "and not overlapping."
            )
    elif not _pointer_command(game, parts, output):
        output("Unknown command.")


def _battle_turn(game: PlaneBattleGame, input_fn: InputFn, output: OutputFn) -> None:
    player = game.active
    opponent = game.opponent
    output(f"\n{player.name}'s turn. Enemy planes left: {opponent.alive_count}")
    output("Your board:")
    output(format_own_board(player.board))
    ghosts = game.interactive_planes() if game.tool_mode is ToolMode.DEDUCE else []
    output(f"Enemy waters ({game.tool_mode.value} mode):")
    output(format_target_board(opponent.board, ghosts))
    if player.has_shot_this_turn:
        output("You have fired this turn; type 'end' to pass the device.")
    output(BATTLE_HELP)

    raw = input_fn("> ").strip().lower()
    parts = raw.split()
    if not parts:
        return
    command = parts[0]
    shots_before = len(game.log)
    if command == "quit":
        raise SystemExit("Goodbye!")
    if command == "end":
        if not game.end_turn():
            output("Fire a shot before ending your turn.")
    elif command == "tool" and len(parts) == 2 and parts[1] in {"attack", "deduce"}:
        game.set_tool(ToolMode(parts[1]))
    elif command == "turn":
        game.toggle_direction()
    elif command == "rotate":
        game.rotate_selected_ghost()
    elif command == "delete":
        game.delete_selected_ghost()
    elif command == "deselect":
        game.deselect_ghost()
    elif command == "log":
        for record in game.log:
            output(f"#{record.turn_number} {record.player} {record.coord}: {record.result.value}")
    elif not _pointer_command(game, parts, output):
        output("Unknown command.")
    if len(game.log) > shots_before:
        latest = game.log[0]
        output(f"{latest.player} fired at {latest.coord}: {latest.result.value}")


def play_game(
    settings: GameSettings | None = None,
    seed: int | None = None,
    input_fn: InputFn = input,
    output: OutputFn = print,
) -> PlaneBattleGame:
    """Run one match on a single terminal, prompting between handoffs."""
    output("Welcome to Plane Battle!")
    game = InstrumentedPlaneBattleGame(settings=settings, rng_seed=seed)
    while True:
        if game.phase is GamePhase.SETUP:
            _setup_turn(game, input_fn, output)
        elif game.phase is GamePhase.TRANSITION:
            upcoming = game.players[game.active_player.opponent()].name
            input_fn(f"\nPass the device to {upcoming} and press Enter...")
            game.acknowledge_transition()
        elif game.phase is GamePhase.BATTLE:
            _battle_turn(game, input_fn, output)
        else:
            winner = game.players[game.winner].name if game.winner else "Nobody"
            output(f"\n{winner} wins after {len(game.log)} shots!")
            for player in game.players.values():
                output(f"{player.name}'s fleet:")
                output(format_own_board(player.board))
            again = input_fn("Play again? [y/N]: ").strip().lower()
            if again not in {"y", "yes"}:
                return game
            game.restart()


def main() -> None:
    parser = argparse.ArgumentParser(description="Play Plane Battle on one terminal.")
    parser.add_argument(
        "--seed", type=int, default=None, help="Optional RNG seed for random layouts."
    )
    parser.add_argument("--grid-size", type=int, default=None, help="Board edge length.")
    parser.add_argument("--planes", type=int, default=None, help="Planes per player.")
    parser.add_argument("--verbose", action="store_true", help="Log engine events to stderr.")
    args = parser.parse_args()

    configure_console_logging(logging.INFO if args.verbose else logging.WARNING)
    init_telemetry()

    overrides = {}
    if args.grid_size is not None:
        overrides["grid_size"] = args.grid_size
    if args.planes is not None:
        overrides["planes_per_player"] = args.planes
    play_game(settings=GameSettings.from_env(**overrides), seed=args.seed)


if __name__ == "__main__":
    main()
