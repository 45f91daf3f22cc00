from __future__ import annotations

from typing import Set

from blindfold_core.engine.move import parse_uci, str_to_square
from blindfold_core.engine.pieces import BR, WK, WP, WR
from blindfold_core.engine.position import Position
from blindfold_core.engine.rules import GameStatus, game_status


def _legal(fen: str) -> Set[str]:
    return {m.to_uci() for m in Position.from_fen(fen).generate_legal_moves()}


def test_startpos_has_twenty_moves() -> None:
    moves = _legal("rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1")
    assert len(moves) == 20
    assert {"e2e3", "e2e4", "g1f3", "b1c3"} <= moves


def test_promotion_generates_all_four_pieces() -> None:
    moves = _legal("8/P7/8/8/8/8/8/k6K w - - 0 1")
    assert {"a7a8q", "a7a8r", "a7a8b", "a7a8n"} <= moves
    assert "a7a8" not in moves


def test_promotion_places_chosen_piece() -> None:
    pos = Position.from_fen("1r6/P7/8/8/8/8/8/k6K w - - 0 1")
    pos.make_move(parse_uci("a7b8n"))
    assert pos.to_fen().startswith("1N6/8/")
    pos.unmake_move()
    assert pos.squares[str_to_square("a7")] == WP
    assert pos.squares[str_to_square("b8")] == BR


def test_en_passant_capture_removes_passed_pawn() -> None:
    fen = "rnbqkbnr/ppp1pppp/8/3pP3/8/8/PPPP1PPP/RNBQKBNR w KQkq d6 0 3"
    assert "e5d6" in _legal(fen)
    pos = Position.from_fen(fen)
    pos.make_move(parse_uci("e5d6"))
    assert pos.squares[str_to_square("d5")] is None
    assert pos.squares[str_to_square("d6")] == WP
    pos.unmake_move()
    assert pos.to_fen() == fen


def test_en_passant_only_right_after_double_push() -> None:
    assert "e5d6" not in _legal("rnbqkbnr/ppp1pppp/8/3pP3/8/8/PPPP1PPP/RNBQKBNR w KQkq - 0 3")


def test_castling_both_sides_moves_rook() -> None:
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
    assert {"e1g1", "e1c1"} <= _legal(fen)
    pos = Position.from_fen(fen)
    pos.make_move(parse_uci("e1g1"))
    assert pos.squares[str_to_square("g1")] == WK
    assert pos.squares[str_to_square("f1")] == WR
    assert pos.squares[str_to_square("h1")] is None
    assert pos.castling == "kq"
    pos.unmake_move()
    assert pos.to_fen() == fen


def test_castling_blocked_through_attacked_square() -> None:
    # Black rook on f2 covers f1, not d1 or c1
    moves = _legal("r3k2r/8/8/8/8/8/5r2/R3K2R w KQkq - 0 1")
    assert "e1g1" not in moves
    assert "e1c1" in moves


def test_castling_not_allowed_out_of_check() -> None:
    moves = _legal("r3k2r/8/8/8/8/8/4r3/R3K2R w KQkq - 0 1")
    assert "e1g1" not in moves
    assert "e1c1" not in moves


def test_castling_needs_empty_squares_and_right() -> None:
    assert "e1c1" not in _legal("r3k2r/8/8/8/8/8/8/RN2K2R w KQkq - 0 1")
    assert "e1g1" not in _legal("r3k2r/8/8/8/8/8/8/R3K2R w Qkq - 0 1")


def test_rook_capture_spoils_opponent_right() -> None:
    pos = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    pos.make_move(parse_uci("h1h8"))
    assert pos.castling == "Qq"


def test_king_safety_example() -> None:
    # Bishop b4 covers d2 and e1, knight g5 covers f3
    fen = "8/8/8/6N1/1B6/8/1K2k3/8 b - - 3 2"
    pos = Position.from_fen(fen)
    legal = pos.generate_legal_moves()
    assert {m.to_uci() for m in legal} == {"e2d1", "e2d3", "e2e3", "e2f1", "e2f2"}
    for m in legal:
        with pos.applied(m):
            assert not pos.in_check("b")
    assert pos.to_fen() == fen


def test_pinned_piece_cannot_expose_king() -> None:
    # Knight on e2 is pinned against e1 by the rook on e8
    moves = _legal("4r2k/8/8/8/8/8/4N3/4K3 w - - 0 1")
    assert not any(m.startswith("e2") for m in moves)


def test_checkmate_example() -> None:
    pos = Position.from_fen("1k2Q3/8/1K6/8/8/8/8/8 b - - 13 7")
    assert pos.generate_legal_moves() == []
    assert pos.in_check() is True
    assert game_status(pos) is GameStatus.CHECKMATE


def test_stalemate_example() -> None:
    pos = Position.from_fen("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1")
    assert pos.generate_legal_moves() == []
    assert pos.in_check() is False
    assert game_status(pos) is GameStatus.STALEMATE


def test_queen_defended_by_king_is_checkmate() -> None:
    # White king on c3 guards b2, so the queen cannot be taken
    pos = Position.from_fen("8/8/8/8/8/2K5/1Q6/1k6 b - - 14 9")
    assert pos.generate_legal_moves() == []
    assert game_status(pos) is GameStatus.CHECKMATE


def test_single_legal_move_is_queen_capture() -> None:
    assert _legal("8/8/8/8/8/3K4/1Q6/1k6 b - - 14 9") == {"b1b2"}


def test_ongoing_status() -> None:
    assert game_status(Position.startpos()) is GameStatus.ONGOING
