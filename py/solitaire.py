import argparse
import logging
from collections.abc import Callable
from pathlib import Path

from klondike import (
    FOUNDATION_LETTERS,
    POSITION_LETTERS,
    Klondike,
    KlondikeError,
    KlondikeState,
    Render,
    apply,
    new_game,
    undo,
)
from klondike_log import load_log, replay, to_log_text

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"q", "quit", "exit"}
UNDO_COMMANDS = {"u", "undo"}
LOG_COMMANDS = {"log"}
HELP_COMMANDS = {"?", "h", "help"}

HELP_TEXT = """\
DD          draw three cards (or turn the waste over when the deck is empty)
3C          flip 3C if it is face down, otherwise send it to its foundation
3C 5        move 3C and every card above it onto column 5
W 0A        move the waste card onto foundation 0A (W5 works too)
undo        take back the last move
log         print the move log
quit        leave the game"""

CELL_WIDTH = 6


def _cell(text: str) -> str:
    return text.ljust(CELL_WIDTH)


def render_board(render: Render) -> str:
    waste = " ".join(str(card) for card in render.waste) or "--"
    foundations = "  ".join(
        f"0{FOUNDATION_LETTERS[idx]}:{card if card is not None else '--'}"
        for idx, card in enumerate(render.foundations)
    )
    lines = [
        f"Game {render.game_number}   moves {render.move_count}   undos {render.undo_count}",
        f"DD[{render.deck_size:2d}]  W: {waste:<12}  {foundations}",
        "",
        "   " + "".join(_cell(str(column + 1)) for column in range(len(render.tableaus))),
    ]
    height = max((len(tableau) for tableau in render.tableaus), default=0)
    for row in range(height):
        cells = []
        for tableau in render.tableaus:
            if row >= len(tableau):
                cells.append(_cell(""))
            elif tableau[row] is None:
                cells.append(_cell("##"))
            else:
                cells.append(_cell(str(tableau[row])))
        lines.append(f"{POSITION_LETTERS[row]}  " + "".join(cells).rstrip())
    return "\n".join(lines)


def play(game: Klondike, input_fn: Callable[[str], str] | None = None,
         output_fn: Callable[[str], None] = print) -> Klondike:
    """Run the read-eval-print loop until the player quits or input ends; returns the final game."""
    input_fn = input_fn or input
    output_fn(render_board(game.render()))
    while True:
        try:
            text = input_fn("> ")
        except EOFError:
            break

        command = text.strip().lower()
        if command in QUIT_COMMANDS:
            break
        if command in HELP_COMMANDS:
            output_fn(HELP_TEXT)
            continue
        if command in LOG_COMMANDS:
            output_fn(to_log_text(game).rstrip("\n"))
            continue

        try:
            if command in UNDO_COMMANDS:
                game = undo(game)
            else:
                game = apply(game, text)
        except KlondikeError as e:
            logger.debug("Rejected %r: %s", text, type(e).__name__)
            output_fn(str(e))
            continue

        output_fn(render_board(game.render()))
        if game.state == KlondikeState.WON:
            output_fn(f"You won game {game.game_number} in {game.move_count} moves!")
    return game


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Play Klondike Solitaire (draw three) in the terminal")
    start = parser.add_mutually_exclusive_group()
    start.add_argument("--game", type=int, default=None, help="Game number of the deal (default: random)")
    start.add_argument("--replay", type=Path, default=None, help="Continue from a saved move log")
    parser.add_argument("--log", type=Path, default=None, help="Write the move log to this file on exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.replay is not None:
            game_number, moves = load_log(args.replay.read_text())
            game = replay(game_number, moves)
            logger.info("Replayed %d moves of game %d from %s", len(moves), game_number, args.replay)
        else:
            game = new_game(args.game)
    except KlondikeError as e:
        parser.exit(1, f"{parser.prog}: {e}\n")

    print("Type ? for help.")
    game = play(game)

    if args.log is not None:
        args.log.write_text(to_log_text(game))
        logger.info("Move log written to %s", args.log)
    print("Bye!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
