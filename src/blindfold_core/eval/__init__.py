"""Evaluation: material plus piece-square bonuses.

The running score lives on the position and is updated by make/unmake; the
full rescan here seeds it and backs the tests that keep the two in agreement.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .pst import MATE_LOWER, MATE_UPPER, PIECE_VALUES, SQUARE_VALUES, square_value

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.position import Position


__all__ = [
    "MATE_LOWER",
    "MATE_UPPER",
    "PIECE_VALUES",
    "evaluate",
    "is_mate_score",
    "material_pst",
    "square_value",
]


def material_pst(position: "Position") -> int:
    """Recompute the White-perspective score from every occupied square."""
    total = 0
    for sq, piece in enumerate(position.squares):
        if piece is not None:
            total += SQUARE_VALUES[piece][sq]
    return total


def evaluate(position: "Position") -> int:
    """Score of ``position`` from the side to move's point of view."""
    return position.score if position.side_to_move == "w" else -position.score


def is_mate_score(score: int) -> bool:
    return abs(score) >= MATE_LOWER
