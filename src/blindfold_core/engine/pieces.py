from __future__ import annotations

from typing import Dict, Final


# Piece indices, white first then black, each in P N B R Q K order
WP, WN, WB, WR, WQ, WK, BP, BN, BB, BR, BQ, BK = range(12)

PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = range(6)
KIND_CHARS: Final = "PNBRQK"

PIECE_TO_CHAR: Final[Dict[int, str]] = {
    WP: "P",
    WN: "N",
    WB: "B",
    WR: "R",
    WQ: "Q",
    WK: "K",
    BP: "p",
    BN: "n",
    BB: "b",
    BR: "r",
    BQ: "q",
    BK: "k",
}
CHAR_TO_PIECE: Final[Dict[str, int]] = {v: k for k, v in PIECE_TO_CHAR.items()}


def make_piece(kind: int, color: str) -> int:
    """Combine a piece kind (``PAWN``..``KING``) and a color (``'w'``/``'b'``)."""
    if not 0 <= kind < 6:
        raise ValueError(f"invalid piece kind: {kind}")
    if color == "w":
        return kind
    if color == "b":
        return kind + 6
    raise ValueError("color must be 'w' or 'b'")


def promotion_piece(promo: str, color: str) -> int:
    """Map a lowercase promotion letter (``q r b n``) to a piece index for ``color``."""
    return make_piece(KIND_CHARS.index(promo.upper()), color)
