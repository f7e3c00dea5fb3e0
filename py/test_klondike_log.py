import random
from collections import Counter

import pytest
from hypothesis import given, settings, strategies as st

from klondike import (
    Address,
    Card,
    Draw,
    Flip,
    IllegalDestination,
    Klondike,
    MalformedLog,
    MAX_GAME_NUMBER,
    MIN_GAME_NUMBER,
    MoveMismatch,
    Recycle,
    ReplayDivergence,
    SourceEmpty,
    Transfer,
    apply,
    new_game,
    ordered_deck,
    shuffled_deck,
    undo,
)
from klondike_log import decode_move, encode_move, load_log, replay, serialize, to_log_text

game_numbers = st.integers(min_value=MIN_GAME_NUMBER, max_value=MAX_GAME_NUMBER)


def random_walk(game_number: int, seed: int, steps: int) -> Klondike:
    game = new_game(game_number)
    rng = random.Random(seed)
    for _ in range(steps):
        actions = game.legal_actions()
        if not actions:
            break
        game.step(rng.choice(actions))
    return game


@pytest.mark.parametrize(
    ("move", "line"),
    [
        (Draw(3), "DD 3"),
        (Draw(1), "DD 1"),
        (Recycle((Card.from_code("AS"), Card.from_code("10H"))), "RC AS 10H"),
        (Flip(Address.tableau(2, 2)), "FL 3C"),
        (Transfer(Address.waste(), Address.foundation(0), 1), "MV W 0A 1"),
        (Transfer(Address.tableau(0, 3), Address.tableau(4), 2), "MV 1D 5 2"),
        (Transfer(Address.foundation(3), Address.tableau(6), 1), "MV 0D 7 1"),
    ],
)
def test_move_encoding(move, line):
    assert encode_move(move) == line
    assert decode_move(line) == move


def test_to_log_text():
    game = apply(new_game(1), "DD")
    assert to_log_text(game) == "1\nDD 3\n"
    assert to_log_text(new_game(42)) == "42\n"


def test_load_log():
    text = "17\nDD 3\nMV W 0A 1\nFL 4D\n"

    game_number, moves = load_log(text)

    assert game_number == 17
    assert moves == [
        Draw(3),
        Transfer(Address.waste(), Address.foundation(0), 1),
        Flip(Address.tableau(3, 3)),
    ]
    assert serialize(game_number, moves) == text


@pytest.mark.parametrize(
    ("text", "line_number"),
    [
        ("", 1),
        ("abc\n", 1),
        ("0\n", 1),
        ("-5\n", 1),
        ("1\nXX\n", 2),
        ("1\n\nDD 3\n", 2),
        ("1\nDD 3\nDD 4\n", 3),
        ("1\nDD\n", 2),
        ("1\nDD  3\n", 2),
        ("1\nRC\n", 2),
        ("1\nRC ZZ\n", 2),
        ("1\nFL W\n", 2),
        ("1\nFL 3\n", 2),
        ("1\nMV W DD 1\n", 2),
        ("1\nMV W 0A 0\n", 2),
        ("1\nMV 9A 1 1\n", 2),
    ],
)
def test_malformed_log(text, line_number):
    with pytest.raises(MalformedLog) as exc_info:
        load_log(text)
    assert exc_info.value.line_number == line_number


def test_replay_reproduces_session():
    game = random_walk(1, seed=3, steps=60)

    replayed = replay(game.game_number, game.history)

    assert replayed.as_jsonable_dict() == game.as_jsonable_dict()
    assert replayed.history == game.history


def test_replay_illegal_move():
    moves = [Draw(3), Transfer(Address.tableau(0, 0), Address.tableau(0), 1)]

    with pytest.raises(ReplayDivergence) as exc_info:
        replay(1, moves)

    assert exc_info.value.index == 1
    assert isinstance(exc_info.value.reason, IllegalDestination)


def test_replay_empty_source():
    with pytest.raises(ReplayDivergence) as exc_info:
        replay(1, [Transfer(Address.waste(), Address.foundation(0), 1)])

    assert exc_info.value.index == 0
    assert isinstance(exc_info.value.reason, SourceEmpty)


def test_replay_mismatched_move():
    # Game 1 starts with 24 cards in the deck, so the first draw takes three
    with pytest.raises(ReplayDivergence) as exc_info:
        replay(1, [Draw(2)])

    assert exc_info.value.index == 0
    assert isinstance(exc_info.value.reason, MoveMismatch)


@settings(max_examples=20, deadline=None)
@given(game_number=game_numbers)
def test_deal_is_deterministic(game_number: int) -> None:
    """Property: a game number always produces the same deal."""
    assert shuffled_deck(game_number) == shuffled_deck(game_number)
    assert new_game(game_number).as_jsonable_dict() == new_game(game_number).as_jsonable_dict()


@settings(max_examples=20, deadline=None)
@given(game_number=game_numbers, seed=st.integers(min_value=0, max_value=10000))
def test_cards_conserved_and_undo_inverts(game_number: int, seed: int) -> None:
    """Property: every move keeps the 52 cards intact and undo restores the previous board."""
    full_deck = Counter(ordered_deck())
    game = new_game(game_number)
    rng = random.Random(seed)

    for _ in range(40):
        actions = game.legal_actions()
        if not actions:
            break
        after = apply(game, rng.choice(actions))

        assert Counter(after.all_cards()) == full_deck
        assert len(after.history) == len(game.history) + 1
        assert undo(after).as_jsonable_dict() == game.as_jsonable_dict()
        assert after.is_won() == all(len(f) == 13 for f in after.foundations)

        game = after


@settings(max_examples=20, deadline=None)
@given(game_number=game_numbers, seed=st.integers(min_value=0, max_value=10000))
def test_log_round_trip_and_replay(game_number: int, seed: int) -> None:
    """Property: a session's log loads back unchanged and replays to the same board."""
    game = random_walk(game_number, seed, steps=50)

    loaded_number, moves = load_log(to_log_text(game))

    assert (loaded_number, moves) == (game.game_number, game.history)
    assert replay(loaded_number, moves).as_jsonable_dict() == game.as_jsonable_dict()
