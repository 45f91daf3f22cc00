from __future__ import annotations

from blindfold_core.engine.fen import STARTPOS_FEN
from blindfold_core.engine.position import Position
from blindfold_core.engine.zobrist import MASK64, ZOBRIST, Zobrist, compute_hash_from_scratch


def test_tables_are_deterministic_per_seed() -> None:
    assert Zobrist().piece_square == ZOBRIST.piece_square
    assert Zobrist(seed=1).side_to_move != ZOBRIST.side_to_move
    assert len(ZOBRIST.piece_square) == 12
    assert all(len(row) == 64 for row in ZOBRIST.piece_square)


def test_hash_is_stable_across_fen_round_trip() -> None:
    pos = Position.from_fen(STARTPOS_FEN)
    assert pos.zobrist_hash == compute_hash_from_scratch(pos)
    assert Position.from_fen(pos.to_fen()).zobrist_hash == pos.zobrist_hash
    assert 0 <= pos.zobrist_hash <= MASK64


def test_castling_rights_change_hash() -> None:
    full = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    none = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w - - 0 1")
    assert full.zobrist_hash != none.zobrist_hash


def test_en_passant_file_changes_hash() -> None:
    with_ep = Position.from_fen("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1")
    without = Position.from_fen("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1")
    assert with_ep.zobrist_hash != without.zobrist_hash
