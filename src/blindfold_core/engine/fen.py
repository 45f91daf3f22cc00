"""Position-string (FEN) codec.

Parsing produces a plain :class:`FenRecord`; :class:`~blindfold_core.engine.position.Position`
builds itself from that record, which keeps this module free of any board logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from .move import square_to_str, str_to_square
from .pieces import BK, CHAR_TO_PIECE, PIECE_TO_CHAR, WK

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
CASTLING_ORDER = "KQkq"


class FenError(ValueError):
    """Raised for a malformed position string."""


@dataclass
class FenRecord:
    squares: List[Optional[int]]
    side_to_move: str
    castling: str
    ep_square: Optional[int]
    halfmove_clock: int
    fullmove_number: int


def parse_fen(fen: str) -> FenRecord:
    """Parse a Forsyth–Edwards Notation string.

    Args:
        fen (str): Six space-separated fields: placement, side, castling,
            en-passant target, halfmove clock, fullmove number.

    Returns:
        FenRecord: Decoded fields with castling rights normalized to ``KQkq``
            order and the en-passant target as a square index.

    Raises:
        FenError: If ``fen`` is empty, has the wrong number of fields, or
            contains invalid piece placement, side to move, castling rights,
            en passant square, or move counters.
    """
    if not fen or not isinstance(fen, str):
        raise FenError("FEN must be a non-empty string")
    parts = fen.strip().split()
    if len(parts) != 6:
        raise FenError("FEN must have 6 fields")
    placement, stm, castling, ep, halfmove, fullmove = parts

    ranks = placement.split("/")
    if len(ranks) != 8:
        raise FenError("FEN board must have 8 ranks")
    squares: List[Optional[int]] = [None] * 64
    for rank_idx, rank in enumerate(ranks[::-1]):  # rank 1 first
        file_idx = 0
        for ch in rank:
            if ch.isdigit():
                n = int(ch)
                if n < 1 or n > 8:
                    raise FenError("invalid empty count in FEN rank")
                file_idx += n
            else:
                if ch not in CHAR_TO_PIECE:
                    raise FenError(f"invalid piece in FEN: {ch!r}")
                if file_idx >= 8:
                    raise FenError("too many squares in FEN rank")
                squares[rank_idx * 8 + file_idx] = CHAR_TO_PIECE[ch]
                file_idx += 1
        if file_idx != 8:
            raise FenError("rank does not sum to 8 squares in FEN")
    if squares.count(WK) != 1 or squares.count(BK) != 1:
        raise FenError("each side must have exactly one king")

    if stm not in ("w", "b"):
        raise FenError("side to move must be 'w' or 'b'")

    if castling == "-":
        castling = ""
    else:
        if any(ch not in CASTLING_ORDER for ch in castling) or len(set(castling)) != len(castling):
            raise FenError("invalid castling rights")
        castling = "".join(c for c in CASTLING_ORDER if c in castling)

    ep_square: Optional[int]
    if ep == "-":
        ep_square = None
    else:
        try:
            ep_square = str_to_square(ep)
        except ValueError as e:
            raise FenError("invalid en passant square") from e
        # Target sits behind the pawn that just advanced two squares
        expected_rank = 5 if stm == "w" else 2
        if ep_square // 8 != expected_rank:
            raise FenError("invalid en passant square rank")

    try:
        halfmove_clock = int(halfmove)
        fullmove_number = int(fullmove)
    except ValueError as e:
        raise FenError("invalid move counters in FEN") from e
    if halfmove_clock < 0 or fullmove_number <= 0:
        raise FenError("invalid move counters in FEN")

    return FenRecord(
        squares=squares,
        side_to_move=stm,
        castling=castling,
        ep_square=ep_square,
        halfmove_clock=halfmove_clock,
        fullmove_number=fullmove_number,
    )


def format_fen(position: "Position") -> str:
    """Serialize a position into a normalized FEN string."""
    ranks_str: List[str] = []
    for rank_idx in range(7, -1, -1):
        run = 0
        row = []
        for file_idx in range(8):
            piece = position.squares[rank_idx * 8 + file_idx]
            if piece is None:
                run += 1
                continue
            if run > 0:
                row.append(str(run))
                run = 0
            row.append(PIECE_TO_CHAR[piece])
        if run > 0:
            row.append(str(run))
        ranks_str.append("".join(row))
    placement = "/".join(ranks_str)

    castling = position.castling or "-"
    ep = square_to_str(position.ep_square) if position.ep_square is not None else "-"
    return (
        f"{placement} {position.side_to_move} {castling} {ep} "
        f"{position.halfmove_clock} {position.fullmove_number}"
    )
