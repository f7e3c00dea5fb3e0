import pytest
from klondike import new_game
from solitaire import main, play, render_board


def scripted(lines):
    remaining = iter(lines)

    def input_fn(_prompt: str) -> str:
        try:
            return next(remaining)
        except StopIteration:
            raise EOFError from None

    return input_fn


def test_render_board():
    board = render_board(new_game(1).render())
    lines = board.splitlines()

    assert lines[0].startswith("Game 1 ")
    assert "DD[24]" in lines[1]
    assert "0A:--" in lines[1]
    # Seven columns, the tallest holding seven cards
    assert lines[-1].startswith("G  ")
    assert "##" in lines[-2]


def test_play_loop():
    output: list[str] = []

    game = play(new_game(1), scripted(["DD", "undo", "bogus", "undo", "log", "dd", "quit", "DD"]), output.append)

    assert len(game.history) == 1
    assert game.undo_count == 1
    assert "Unrecognized address 'BOGUS'" in output
    assert "There is nothing to undo" in output
    assert "1" in output


def test_play_stops_at_end_of_input():
    game = play(new_game(3), scripted(["DD", "DD"]), lambda _text: None)
    assert game.move_count == 2


def test_main_writes_and_replays_log(tmp_path, monkeypatch, capsys):
    log_path = tmp_path / "game.log"
    monkeypatch.setattr("builtins.input", scripted(["DD", "q"]))

    assert main(["--game", "1", "--log", str(log_path)]) == 0
    assert log_path.read_text() == "1\nDD 3\n"

    second_path = tmp_path / "again.log"
    monkeypatch.setattr("builtins.input", scripted(["DD"]))

    assert main(["--replay", str(log_path), "--log", str(second_path)]) == 0
    assert second_path.read_text() == "1\nDD 3\nDD 3\n"
    assert "Bye!" in capsys.readouterr().out


def test_main_rejects_bad_log(tmp_path):
    log_path = tmp_path / "bad.log"
    log_path.write_text("not a game\n")

    with pytest.raises(SystemExit) as exc_info:
        main(["--replay", str(log_path)])
    assert exc_info.value.code == 1
