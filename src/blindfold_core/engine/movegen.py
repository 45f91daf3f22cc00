"""Pseudo-legal move generation and square-attack queries.

Moves produced here follow piece movement rules but may leave the mover's own
king attacked; :mod:`blindfold_core.engine.rules` filters them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

from .move import Move, PROMOTION_ORDER
from .pieces import (
    BB,
    BK,
    BN,
    BP,
    BQ,
    BR,
    BISHOP,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    WB,
    WK,
    WN,
    WP,
    WQ,
    WR,
)

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


KNIGHT_STEPS = ((-1, 2), (1, 2), (-2, 1), (2, 1), (-2, -1), (2, -1), (-1, -2), (1, -2))
KING_STEPS = ((-1, -1), (0, -1), (1, -1), (-1, 0), (1, 0), (-1, 1), (0, 1), (1, 1))
BISHOP_DIRS = ((-1, -1), (1, -1), (-1, 1), (1, 1))
ROOK_DIRS = ((-1, 0), (1, 0), (0, -1), (0, 1))


def _step_targets(steps: Sequence[Tuple[int, int]]) -> List[Tuple[int, ...]]:
    table = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        targets = []
        for df, dr in steps:
            tf, tr = f + df, r + dr
            if 0 <= tf < 8 and 0 <= tr < 8:
                targets.append(tr * 8 + tf)
        table.append(tuple(targets))
    return table


def _ray_targets(dirs: Sequence[Tuple[int, int]]) -> List[Tuple[Tuple[int, ...], ...]]:
    table = []
    for sq in range(64):
        f, r = sq % 8, sq // 8
        rays = []
        for df, dr in dirs:
            ray = []
            tf, tr = f, r
            while True:
                tf += df
                tr += dr
                if not (0 <= tf < 8 and 0 <= tr < 8):
                    break
                ray.append(tr * 8 + tf)
            if ray:
                rays.append(tuple(ray))
        table.append(tuple(rays))
    return table


# Per-square target tables; bounds are resolved once here instead of per step
KNIGHT_TARGETS = _step_targets(KNIGHT_STEPS)
KING_TARGETS = _step_targets(KING_STEPS)
BISHOP_RAYS = _ray_targets(BISHOP_DIRS)
ROOK_RAYS = _ray_targets(ROOK_DIRS)
QUEEN_RAYS = [b + r for b, r in zip(BISHOP_RAYS, ROOK_RAYS)]

# King destination -> (rook origin, rook destination, squares that must be empty, right)
CASTLING_PATHS = {
    6: (7, 5, (5, 6), "K"),
    2: (0, 3, (3, 2, 1), "Q"),
    62: (63, 61, (61, 62), "k"),
    58: (56, 59, (59, 58, 57), "q"),
}


def generate_pseudo_legal(position: "Position") -> List[Move]:
    """Return every pseudo-legal move for the side to move.

    Covers pawn pushes (single and double), captures, en passant and the four
    promotions, knight and king steps, slider rays and castling gated on the
    rights and on empty intervening squares. Own pieces are never captured.
    """
    squares = position.squares
    white = position.side_to_move == "w"
    moves: List[Move] = []

    for from_sq, piece in enumerate(squares):
        if piece is None or (piece < 6) != white:
            continue
        kind = piece % 6
        if kind == PAWN:
            _pawn_moves(position, from_sq, white, moves)
        elif kind == KNIGHT:
            _step_moves(squares, from_sq, KNIGHT_TARGETS[from_sq], white, moves)
        elif kind == BISHOP:
            _slider_moves(squares, from_sq, BISHOP_RAYS[from_sq], white, moves)
        elif kind == ROOK:
            _slider_moves(squares, from_sq, ROOK_RAYS[from_sq], white, moves)
        elif kind == QUEEN:
            _slider_moves(squares, from_sq, QUEEN_RAYS[from_sq], white, moves)
        else:
            _step_moves(squares, from_sq, KING_TARGETS[from_sq], white, moves)
            _castling_moves(position, from_sq, white, moves)
    return moves


def _step_moves(
    squares: List[Optional[int]],
    from_sq: int,
    targets: Sequence[int],
    white: bool,
    moves: List[Move],
) -> None:
    for to_sq in targets:
        q = squares[to_sq]
        if q is None or (q < 6) != white:
            moves.append(Move(from_sq, to_sq))


def _slider_moves(
    squares: List[Optional[int]],
    from_sq: int,
    rays: Sequence[Sequence[int]],
    white: bool,
    moves: List[Move],
) -> None:
    for ray in rays:
        for to_sq in ray:
            q = squares[to_sq]
            if q is None:
                moves.append(Move(from_sq, to_sq))
                continue
            if (q < 6) != white:
                moves.append(Move(from_sq, to_sq))
            break


def _pawn_moves(position: "Position", from_sq: int, white: bool, moves: List[Move]) -> None:
    squares = position.squares
    forward = 8 if white else -8
    start_rank = 1 if white else 6
    last_rank = 7 if white else 0
    enemy_pawn = BP if white else WP
    f = from_sq % 8

    def add(to_sq: int) -> None:
        if to_sq // 8 == last_rank:
            for promo in PROMOTION_ORDER:
                moves.append(Move(from_sq, to_sq, promotion=promo))
        else:
            moves.append(Move(from_sq, to_sq))

    one = from_sq + forward
    if not 0 <= one < 64:
        return
    if squares[one] is None:
        add(one)
        if from_sq // 8 == start_rank:
            two = one + forward
            if squares[two] is None:
                moves.append(Move(from_sq, two))

    for df in (-1, 1):
        if not 0 <= f + df < 8:
            continue
        to_sq = one + df
        q = squares[to_sq]
        if q is not None:
            if (q < 6) != white:
                add(to_sq)
        elif to_sq == position.ep_square and squares[to_sq - forward] == enemy_pawn:
            moves.append(Move(from_sq, to_sq))


def _castling_moves(position: "Position", from_sq: int, white: bool, moves: List[Move]) -> None:
    if not position.castling:
        return
    squares = position.squares
    home = 4 if white else 60
    if from_sq != home:
        return
    rook = WR if white else BR
    for king_to, (rook_from, _rook_to, between, right) in CASTLING_PATHS.items():
        if right not in position.castling or (king_to < 8) != white:
            continue
        if squares[rook_from] != rook:
            continue
        if all(squares[sq] is None for sq in between):
            moves.append(Move(from_sq, king_to))


def is_square_attacked(squares: List[Optional[int]], sq: int, *, by_white: bool) -> bool:
    """Return True if ``sq`` is attacked by the given side.

    Uses the same pawn, knight, king and ray patterns as generation, walking
    outward from ``sq`` rather than building a move list.
    """
    f = sq % 8
    if by_white:
        pawn, knight, king = WP, WN, WK
        diag, ortho, queen = WB, WR, WQ
        # White pawns attack upward, so they sit one rank below
        if f > 0 and sq - 9 >= 0 and squares[sq - 9] == pawn:
            return True
        if f < 7 and sq - 7 >= 0 and squares[sq - 7] == pawn:
            return True
    else:
        pawn, knight, king = BP, BN, BK
        diag, ortho, queen = BB, BR, BQ
        if f < 7 and sq + 9 <= 63 and squares[sq + 9] == pawn:
            return True
        if f > 0 and sq + 7 <= 63 and squares[sq + 7] == pawn:
            return True

    for o in KNIGHT_TARGETS[sq]:
        if squares[o] == knight:
            return True
    for o in KING_TARGETS[sq]:
        if squares[o] == king:
            return True

    for ray in BISHOP_RAYS[sq]:
        for o in ray:
            q = squares[o]
            if q is not None:
                if q == diag or q == queen:
                    return True
                break
    for ray in ROOK_RAYS[sq]:
        for o in ray:
            q = squares[o]
            if q is not None:
                if q == ortho or q == queen:
                    return True
                break
    return False
