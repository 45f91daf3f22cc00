"""Legality filtering and game-status queries on top of pseudo-legal moves."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, List

from .move import Move
from .movegen import generate_pseudo_legal, is_square_attacked
from .pieces import KING

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


class GameStatus(str, Enum):
    ONGOING = "ongoing"
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"


def castling_path_safe(position: "Position", move: Move) -> bool:
    """False if ``move`` castles out of or through an attacked square.

    Non-castling moves always pass; the landing square is covered by the
    ordinary king-safety test after the move is made.
    """
    piece = position.squares[move.from_sq]
    if piece is None or piece % 6 != KING or abs(move.to_sq - move.from_sq) != 2:
        return True
    by_white = position.side_to_move == "b"
    squares = position.squares
    if is_square_attacked(squares, move.from_sq, by_white=by_white):
        return False
    return not is_square_attacked(squares, (move.from_sq + move.to_sq) // 2, by_white=by_white)


def is_legal(position: "Position", move: Move) -> bool:
    """Return True if a pseudo-legal ``move`` keeps the mover's king safe."""
    if not castling_path_safe(position, move):
        return False
    mover = position.side_to_move
    with position.applied(move):
        return not position.in_check(mover)


def legal_moves(position: "Position") -> List[Move]:
    """All legal moves for the side to move, in generation order."""
    return [m for m in generate_pseudo_legal(position) if is_legal(position, m)]


def has_legal_moves(position: "Position") -> bool:
    return any(is_legal(position, m) for m in generate_pseudo_legal(position))


def game_status(position: "Position") -> GameStatus:
    """Classify the position as ongoing, checkmate or stalemate.

    Draws by repetition, the fifty-move rule or material are not detected.
    """
    if has_legal_moves(position):
        return GameStatus.ONGOING
    if position.in_check():
        return GameStatus.CHECKMATE
    return GameStatus.STALEMATE
