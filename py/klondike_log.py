from collections.abc import Iterable

from klondike import (
    AddressKind,
    Card,
    Deal,
    Draw,
    DRAW_COUNT,
    Flip,
    Klondike,
    KlondikeError,
    MalformedLog,
    Move,
    MoveMismatch,
    Recycle,
    ReplayDivergence,
    Transfer,
    check_game_number,
    parse_address,
)

DRAW_TAG = "DD"
RECYCLE_TAG = "RC"
FLIP_TAG = "FL"
TRANSFER_TAG = "MV"


def encode_move(move: Move) -> str:
    if isinstance(move, Draw):
        return f"{DRAW_TAG} {move.count}"
    if isinstance(move, Recycle):
        return " ".join([RECYCLE_TAG, *(card.code for card in move.cards)])
    if isinstance(move, Flip):
        return f"{FLIP_TAG} {move.address}"
    if isinstance(move, Transfer):
        return f"{TRANSFER_TAG} {move.source} {move.destination} {move.count}"
    msg = f"{move} has no log encoding"
    raise TypeError(msg)


def _parse_count(token: str, maximum: int | None = None) -> int:
    if not (token.isascii() and token.isdigit()):
        msg = f"{token!r} is not a count"
        raise ValueError(msg)
    count = int(token)
    if count < 1 or (maximum is not None and count > maximum):
        msg = f"count {count} is out of range"
        raise ValueError(msg)
    return count


def decode_move(line: str) -> Move:
    tag, *fields = line.split(" ")
    if tag == DRAW_TAG and len(fields) == 1:
        return Draw(_parse_count(fields[0], DRAW_COUNT))
    if tag == RECYCLE_TAG and len(fields) >= 1:
        return Recycle(tuple(Card.from_code(code) for code in fields))
    if tag == FLIP_TAG and len(fields) == 1:
        address = parse_address(fields[0])
        if address.kind != AddressKind.TABLEAU or address.position is None:
            msg = f"{address} is not a tableau card"
            raise ValueError(msg)
        return Flip(address)
    if tag == TRANSFER_TAG and len(fields) == 3:  # noqa: PLR2004
        source = parse_address(fields[0])
        destination = parse_address(fields[1])
        if AddressKind.DECK in (source.kind, destination.kind):
            msg = "the deck takes part only in draws"
            raise ValueError(msg)
        return Transfer(source, destination, _parse_count(fields[2]))
    msg = f"unknown move {line!r}"
    raise ValueError(msg)


def serialize(game_number: int, moves: Iterable[Move]) -> str:
    lines = [str(game_number)]
    lines.extend(encode_move(move) for move in moves)
    return "\n".join(lines) + "\n"


def to_log_text(state: Klondike) -> str:
    return serialize(state.game_number, state.history)


def load_log(text: str) -> tuple[int, list[Move]]:
    """
    Parse a move log back into its game number and moves.

    Raises:
        MalformedLog: the header is not a game number or a line is not a move.
    """
    lines = text.splitlines()
    if len(lines) == 0:
        msg = "The log is empty"
        raise MalformedLog(msg, 1)

    header = lines[0].strip()
    try:
        if not (header.isascii() and header.isdigit()):
            msg = f"{header!r} is not a game number"
            raise ValueError(msg)
        game_number = check_game_number(int(header))
    except ValueError as e:
        msg = f"Line 1: {e}"
        raise MalformedLog(msg, 1) from e

    moves: list[Move] = []
    for line_number, line in enumerate(lines[1:], start=2):
        try:
            moves.append(decode_move(line))
        except ValueError as e:
            msg = f"Line {line_number}: {e}"
            raise MalformedLog(msg, line_number) from e
    return game_number, moves


def replay(game_number: int, moves: Iterable[Move]) -> Klondike:
    """
    Deal ``game_number`` again and push every move through the normal rules.

    Args:
        game_number: The deal the moves were recorded against.
        moves: Moves as returned by ``load_log`` or taken from ``Klondike.history``.

    Returns:
        The state reached after the last move.

    Raises:
        ReplayDivergence: a move is illegal on the rebuilt board, or the rules
            turn it into a different move than the one recorded.
    """
    game = Klondike(game_number)
    for index, move in enumerate(moves):
        if isinstance(move, Deal):
            msg = "a deal can only start a log"
            raise ReplayDivergence(index, MoveMismatch(msg))
        action = move.as_action()
        try:
            planned = game.plan(action)
        except KlondikeError as e:
            raise ReplayDivergence(index, e) from e
        if planned != move:
            msg = f"log records {encode_move(move)} but the board gives {_describe(planned)}"
            raise ReplayDivergence(index, MoveMismatch(msg))
        game.step(action)
    return game


def _describe(move: Move | None) -> str:
    return "nothing to draw" if move is None else encode_move(move)
