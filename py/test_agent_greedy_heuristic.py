import random

import pytest
from klondike import Action, Address, KlondikeState
from klondike_log import replay
from agent_greedy_heuristic import action_category, play_game, sample_action


@pytest.mark.parametrize(
    ("action", "category"),
    [
        (Action.draw(), 0),
        (Action(Address.waste(), Address.foundation(1)), 1),
        (Action(Address.waste(), Address.tableau(3)), 2),
        (Action(Address.tableau(2, 4), Address.foundation(0)), 3),
        (Action(Address.foundation(2), Address.tableau(0)), 4),
        (Action(Address.tableau(2, 4), Address.tableau(5)), 5),
        (Action(Address.tableau(6, 5)), 6),
    ],
)
def test_action_category(action, category):
    assert action_category(action) == category


def test_action_category_rejects_foundation_to_foundation():
    with pytest.raises(ValueError):
        action_category(Action(Address.foundation(0), Address.foundation(1)))


def test_sample_action():
    rng = random.Random(0)
    with pytest.raises(ValueError):
        sample_action([], rng)

    only = Action.draw()
    assert sample_action([only], rng) is only

    actions = [Action.draw(), Action(Address.waste(), Address.tableau(0))]
    assert sample_action(actions, rng) in actions


def test_play_game_is_repeatable():
    win_a, steps_a, game_a = play_game(game_number=5, max_steps=200, seed=1)
    win_b, steps_b, game_b = play_game(game_number=5, max_steps=200, seed=1)

    assert (win_a, steps_a) == (win_b, steps_b)
    assert game_a.history == game_b.history
    assert win_a == (game_a.state == KlondikeState.WON)
    assert 0 < steps_a <= 200


def test_agent_session_replays():
    _win, _steps, game = play_game(game_number=99, max_steps=150, seed=7)

    replayed = replay(game.game_number, game.history)

    assert replayed.as_jsonable_dict() == game.as_jsonable_dict()
    assert replayed.move_count == game.move_count
