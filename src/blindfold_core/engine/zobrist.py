from __future__ import annotations

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


MASK64 = 0xFFFFFFFFFFFFFFFF


class _SplitMix64:
    def __init__(self, seed: int) -> None:
        self.state = seed & MASK64

    def next(self) -> int:
        # Deterministic 64-bit SplitMix64
        self.state = (self.state + 0x9E3779B97F4A7C15) & MASK64
        z = self.state
        z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & MASK64
        z = (z ^ (z >> 27)) * 0x94D049BB133111EB & MASK64
        z = z ^ (z >> 31)
        return z & MASK64


class Zobrist:
    """Zobrist hashing seeds.

    Table layout:
    - piece_square[12][64]: indices follow the piece order (WP..BK)
    - side_to_move: toggle for black side to move
    - castling[4]: K, Q, k, q
    - ep_file[8]: files a..h
    """

    piece_square: List[List[int]]
    side_to_move: int
    castling: List[int]
    ep_file: List[int]

    def __init__(self, seed: int = 0xC0FFEE_F00D_DEAD) -> None:
        prng = _SplitMix64(seed)
        self.piece_square = [[prng.next() for _ in range(64)] for _ in range(12)]
        self.side_to_move = prng.next()
        self.castling = [prng.next() for _ in range(4)]
        self.ep_file = [prng.next() for _ in range(8)]


# Global deterministic table
ZOBRIST = Zobrist()


def castling_key(castling: str) -> int:
    """XOR of the keys for every right present in ``castling``."""
    h = 0
    for i, ch in enumerate("KQkq"):
        if ch in castling:
            h ^= ZOBRIST.castling[i]
    return h


def compute_hash_from_scratch(position: "Position") -> int:
    """Compute the 64-bit Zobrist hash of a position.

    Covers board contents, side to move, castling rights and the en-passant
    file, so two positions differing in any of them hash apart.
    """
    h = 0
    for sq, piece in enumerate(position.squares):
        if piece is not None:
            h ^= ZOBRIST.piece_square[piece][sq]
    if position.side_to_move == "b":
        h ^= ZOBRIST.side_to_move
    h ^= castling_key(position.castling)
    if position.ep_square is not None:
        h ^= ZOBRIST.ep_file[position.ep_square % 8]
    return h & MASK64
