from __future__ import annotations

import threading

import pytest

from blindfold_core.engine.fen import STARTPOS_FEN, FenError
from blindfold_core.engine.game import EngineBusyError, Game, IllegalMoveError
from blindfold_core.engine.move import parse_uci
from blindfold_core.engine.rules import GameStatus


def test_set_position_from_string_replaces_position() -> None:
    game = Game.new()
    game.apply_move("e2e4")
    fen = "8/8/8/8/8/3K4/1Q6/1k6 b - - 14 9"
    game.set_position_from_string(fen)
    assert game.to_fen() == fen
    assert game.move_history_uci() == []


def test_bad_position_string_keeps_previous_position() -> None:
    game = Game.new()
    game.apply_move("d2d4")
    before = game.to_fen()
    with pytest.raises(FenError):
        game.set_position_from_string("rnbqkbnr/pppppppp/8/8 w KQkq - 0 1")
    assert game.to_fen() == before
    assert game.to_fen() != STARTPOS_FEN
    assert game.move_history_uci() == ["d2d4"]


def test_legal_moves_and_text_form() -> None:
    game = Game.new()
    assert len(game.legal_moves()) == 20
    assert "g1f3" in game.legal_moves_uci()


def test_apply_and_undo() -> None:
    game = Game.new()
    assert game.apply_move("e2e4") == parse_uci("e2e4")
    game.apply_move(parse_uci("e7e5"))
    assert game.move_history_uci() == ["e2e4", "e7e5"]
    assert game.undo_move() == parse_uci("e7e5")
    game.undo_move()
    assert game.to_fen() == STARTPOS_FEN
    with pytest.raises(IllegalMoveError):
        game.undo_move()


@pytest.mark.parametrize("text", ["e2e5", "e7e5", "zz99", "e2", "e1g1"])
def test_illegal_or_malformed_moves_rejected(text: str) -> None:
    game = Game.new()
    with pytest.raises(IllegalMoveError):
        game.apply_move(text)
    assert game.to_fen() == STARTPOS_FEN


def test_status_flags() -> None:
    mate = Game.from_fen("1k2Q3/8/1K6/8/8/8/8/8 b - - 13 7")
    assert mate.in_check() and mate.checkmate() and not mate.stalemate()
    assert mate.status() is GameStatus.CHECKMATE

    stale = Game.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    assert not stale.in_check() and stale.stalemate() and not stale.checkmate()
    assert stale.status() is GameStatus.STALEMATE


def test_search_best_move_on_terminal_position_is_none() -> None:
    assert Game.from_fen("1k2Q3/8/1K6/8/8/8/8/8 b - - 13 7").search_best_move(0.2) is None


def test_search_does_not_touch_game_position() -> None:
    game = Game.from_fen("8/8/8/8/8/3K4/1Q6/1k6 b - - 14 9")
    before = game.to_fen()
    assert game.search_best_move(0.2) == "b1b2"
    assert game.to_fen() == before
    assert game.position.ply == 0


def test_concurrent_search_is_refused() -> None:
    game = Game.new()
    game._search_lock.acquire()
    try:
        with pytest.raises(EngineBusyError):
            game.search(0.1)
    finally:
        game._search_lock.release()
    assert game.search(0.05, max_depth=1).best_move is not None


def test_searches_running_beside_legal_move_queries_stay_legal() -> None:
    game = Game.new()
    expected = set(game.legal_moves_uci())
    picked = []
    done = threading.Event()

    def searcher() -> None:
        while not done.is_set():
            picked.append(game.search(0.001, max_depth=1).best_move_uci)

    t = threading.Thread(target=searcher)
    t.start()
    try:
        for _ in range(300):
            assert set(game.legal_moves_uci()) == expected
            assert game.to_fen() == STARTPOS_FEN
    finally:
        done.set()
        t.join()
    assert picked
    assert [m for m in picked if m not in expected] == []


def test_snapshot_is_independent_of_game_position() -> None:
    game = Game.new()
    snap = game.snapshot()
    game.apply_move("e2e4")
    assert snap.to_fen() == STARTPOS_FEN
    assert snap.ply == 0
