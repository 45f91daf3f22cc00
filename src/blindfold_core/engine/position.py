"""Mutable chess position with reversible make/unmake.

Squares are a 64-entry mailbox indexed ``a1=0 .. h8=63`` holding piece indices
from :mod:`blindfold_core.engine.pieces` or ``None``. The Zobrist hash and the
White-perspective evaluation score are kept up to date incrementally.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from ..eval import material_pst
from ..eval.pst import SQUARE_VALUES
from .fen import STARTPOS_FEN, FenRecord, format_fen, parse_fen
from .move import Move
from .movegen import CASTLING_PATHS, generate_pseudo_legal, is_square_attacked
from .pieces import BK, KING, PAWN, WK, promotion_piece
from .rules import legal_moves
from .zobrist import MASK64, ZOBRIST, castling_key, compute_hash_from_scratch


# A move touching any of these squares drops the listed rights
CASTLING_SPOILERS = {4: "KQ", 0: "Q", 7: "K", 60: "kq", 56: "q", 63: "k"}


@dataclass
class UndoRecord:
    """Everything needed to reverse one :meth:`Position.make_move`.

    ``move`` is ``None`` for a null move.
    """

    move: Optional[Move]
    moved_piece: Optional[int]
    captured_piece: Optional[int]
    capture_sq: Optional[int]
    rook_from: Optional[int]
    rook_to: Optional[int]
    prev_castling: str
    prev_ep: Optional[int]
    prev_halfmove: int
    prev_fullmove: int
    prev_hash: int
    score_delta: int


@dataclass
class Position:
    squares: List[Optional[int]]
    side_to_move: str = "w"
    castling: str = ""
    ep_square: Optional[int] = None
    halfmove_clock: int = 0
    fullmove_number: int = 1
    score: int = field(init=False, default=0)
    zobrist_hash: int = field(init=False, default=0)
    _history: List[UndoRecord] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self) -> None:
        if len(self.squares) != 64:
            raise ValueError("a position needs exactly 64 squares")
        self.score = material_pst(self)
        self.zobrist_hash = compute_hash_from_scratch(self)

    # --- construction ----------------------------------------------------

    @classmethod
    def from_record(cls, record: FenRecord) -> "Position":
        return cls(
            squares=list(record.squares),
            side_to_move=record.side_to_move,
            castling=record.castling,
            ep_square=record.ep_square,
            halfmove_clock=record.halfmove_clock,
            fullmove_number=record.fullmove_number,
        )

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        """Build a position from a FEN string.

        Raises:
            FenError: If the string is malformed.
        """
        return cls.from_record(parse_fen(fen))

    @classmethod
    def startpos(cls) -> "Position":
        return cls.from_fen(STARTPOS_FEN)

    def to_fen(self) -> str:
        return format_fen(self)

    def copy(self) -> "Position":
        """Independent copy of the current state; undo history is not carried."""
        return Position(
            squares=list(self.squares),
            side_to_move=self.side_to_move,
            castling=self.castling,
            ep_square=self.ep_square,
            halfmove_clock=self.halfmove_clock,
            fullmove_number=self.fullmove_number,
        )

    def signature(self) -> bytes:
        """Exact encoding of board, side, castling rights and en-passant target.

        Two positions share a signature only if they are the same for search
        purposes; used to verify hash-keyed cache hits.
        """
        rights = 0
        for i, ch in enumerate("KQkq"):
            if ch in self.castling:
                rights |= 1 << i
        tail = (
            0 if self.side_to_move == "w" else 1,
            rights,
            0 if self.ep_square is None else self.ep_square + 1,
        )
        return bytes(0 if p is None else p + 1 for p in self.squares) + bytes(tail)

    @property
    def ply(self) -> int:
        """Number of moves made on this object that can still be unmade."""
        return len(self._history)

    # --- queries ---------------------------------------------------------

    def king_square(self, color: str) -> Optional[int]:
        king = WK if color == "w" else BK
        try:
            return self.squares.index(king)
        except ValueError:
            return None

    def is_attacked(self, sq: int, by_color: str) -> bool:
        return is_square_attacked(self.squares, sq, by_white=by_color == "w")

    def in_check(self, color: Optional[str] = None) -> bool:
        """True if ``color``'s king (default: side to move) is attacked."""
        color = color or self.side_to_move
        king_sq = self.king_square(color)
        if king_sq is None:
            return False
        return self.is_attacked(king_sq, "b" if color == "w" else "w")

    def generate_pseudo_legal_moves(self) -> List[Move]:
        return generate_pseudo_legal(self)

    def generate_legal_moves(self) -> List[Move]:
        return legal_moves(self)

    def has_non_pawn_material(self, color: Optional[str] = None) -> bool:
        """True if ``color`` owns anything besides pawns and the king."""
        color = color or self.side_to_move
        lo = 0 if color == "w" else 6
        for piece in self.squares:
            if piece is not None and lo < piece < lo + 5:
                return True
        return False

    def move_value(self, move: Move) -> int:
        """Evaluation change of ``move`` from the mover's point of view.

        Computed from the piece-square tables without touching the board;
        the search orders moves by it.
        """
        moved = self.squares[move.from_sq]
        if moved is None:
            return 0
        placed, captured, capture_sq, rook_from, rook_to = self._classify(move, moved)
        delta = self._score_delta(moved, placed, move, captured, capture_sq, rook_from, rook_to)
        return delta if self.side_to_move == "w" else -delta

    # --- make / unmake ---------------------------------------------------

    def _classify(self, move: Move, moved: int):
        squares = self.squares
        color = "w" if moved < 6 else "b"
        placed = moved
        captured = squares[move.to_sq]
        capture_sq = move.to_sq if captured is not None else None
        rook_from = rook_to = None
        kind = moved % 6
        if kind == PAWN:
            if move.promotion:
                placed = promotion_piece(move.promotion, color)
            elif (
                captured is None
                and move.to_sq == self.ep_square
                and (move.to_sq - move.from_sq) % 8 != 0
            ):
                capture_sq = move.to_sq - 8 if color == "w" else move.to_sq + 8
                captured = squares[capture_sq]
        elif kind == KING and abs(move.to_sq - move.from_sq) == 2:
            rook_from, rook_to = CASTLING_PATHS[move.to_sq][:2]
        return placed, captured, capture_sq, rook_from, rook_to

    def _score_delta(
        self,
        moved: int,
        placed: int,
        move: Move,
        captured: Optional[int],
        capture_sq: Optional[int],
        rook_from: Optional[int],
        rook_to: Optional[int],
    ) -> int:
        delta = SQUARE_VALUES[placed][move.to_sq] - SQUARE_VALUES[moved][move.from_sq]
        if captured is not None:
            delta -= SQUARE_VALUES[captured][capture_sq]
        if rook_from is not None:
            rook = self.squares[rook_from]
            if rook is not None:
                delta += SQUARE_VALUES[rook][rook_to] - SQUARE_VALUES[rook][rook_from]
        return delta

    def make_move(self, move: Move) -> None:
        """Apply ``move`` in place and push an undo record.

        The move is assumed pseudo-legal for the side to move; legality is
        checked by :mod:`blindfold_core.engine.rules`.

        Raises:
            ValueError: If the origin square does not hold a piece of the
                side to move, or the destination holds one of its own pieces.
        """
        squares = self.squares
        from_sq, to_sq = move.from_sq, move.to_sq
        moved = squares[from_sq]
        white = self.side_to_move == "w"
        if moved is None or (moved < 6) != white:
            raise ValueError(f"no piece of the side to move on {move.to_uci()[:2]}")
        target = squares[to_sq]
        if target is not None and (target < 6) == white:
            raise ValueError(f"{move.to_uci()} captures an own piece")

        placed, captured, capture_sq, rook_from, rook_to = self._classify(move, moved)
        delta = self._score_delta(moved, placed, move, captured, capture_sq, rook_from, rook_to)

        self._history.append(
            UndoRecord(
                move=move,
                moved_piece=moved,
                captured_piece=captured,
                capture_sq=capture_sq,
                rook_from=rook_from,
                rook_to=rook_to,
                prev_castling=self.castling,
                prev_ep=self.ep_square,
                prev_halfmove=self.halfmove_clock,
                prev_fullmove=self.fullmove_number,
                prev_hash=self.zobrist_hash,
                score_delta=delta,
            )
        )

        keys = ZOBRIST.piece_square
        h = self.zobrist_hash
        if self.ep_square is not None:
            h ^= ZOBRIST.ep_file[self.ep_square % 8]

        squares[from_sq] = None
        h ^= keys[moved][from_sq]
        if capture_sq is not None:
            squares[capture_sq] = None
            h ^= keys[captured][capture_sq]
        squares[to_sq] = placed
        h ^= keys[placed][to_sq]
        if rook_from is not None:
            rook = squares[rook_from]
            squares[rook_from] = None
            squares[rook_to] = rook
            h ^= keys[rook][rook_from] ^ keys[rook][rook_to]

        rights = self.castling
        if rights:
            for sq in (from_sq, to_sq):
                spoiled = CASTLING_SPOILERS.get(sq)
                if spoiled:
                    rights = "".join(c for c in rights if c not in spoiled)
            if rights != self.castling:
                h ^= castling_key(self.castling) ^ castling_key(rights)
                self.castling = rights

        kind = moved % 6
        if kind == PAWN and abs(to_sq - from_sq) == 16:
            self.ep_square = (from_sq + to_sq) // 2
            h ^= ZOBRIST.ep_file[self.ep_square % 8]
        else:
            self.ep_square = None

        if kind == PAWN or captured is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock += 1
        if not white:
            self.fullmove_number += 1

        self.side_to_move = "b" if white else "w"
        h ^= ZOBRIST.side_to_move
        self.zobrist_hash = h & MASK64
        self.score += delta

    def make_null_move(self) -> None:
        """Pass the turn without moving; clears any en-passant target."""
        self._history.append(
            UndoRecord(
                move=None,
                moved_piece=None,
                captured_piece=None,
                capture_sq=None,
                rook_from=None,
                rook_to=None,
                prev_castling=self.castling,
                prev_ep=self.ep_square,
                prev_halfmove=self.halfmove_clock,
                prev_fullmove=self.fullmove_number,
                prev_hash=self.zobrist_hash,
                score_delta=0,
            )
        )
        h = self.zobrist_hash
        if self.ep_square is not None:
            h ^= ZOBRIST.ep_file[self.ep_square % 8]
            self.ep_square = None
        h ^= ZOBRIST.side_to_move
        self.side_to_move = "b" if self.side_to_move == "w" else "w"
        self.zobrist_hash = h & MASK64

    def unmake_move(self) -> Optional[Move]:
        """Reverse the most recent make (or null move).

        Returns:
            Move: The move that was taken back (``None`` for a null move).

        Raises:
            IndexError: If there is nothing to unmake.
        """
        if not self._history:
            raise IndexError("no move to unmake")
        record = self._history.pop()
        self.side_to_move = "b" if self.side_to_move == "w" else "w"
        self.castling = record.prev_castling
        self.ep_square = record.prev_ep
        self.halfmove_clock = record.prev_halfmove
        self.fullmove_number = record.prev_fullmove
        self.zobrist_hash = record.prev_hash
        self.score -= record.score_delta

        move = record.move
        if move is None:
            return move
        squares = self.squares
        squares[move.to_sq] = None
        squares[move.from_sq] = record.moved_piece
        if record.capture_sq is not None:
            squares[record.capture_sq] = record.captured_piece
        if record.rook_from is not None:
            squares[record.rook_from] = squares[record.rook_to]
            squares[record.rook_to] = None
        return move

    @contextmanager
    def applied(self, move: Move) -> Iterator["Position"]:
        """Make ``move`` for the duration of the block, then unmake it."""
        self.make_move(move)
        try:
            yield self
        finally:
            self.unmake_move()

    @contextmanager
    def null_applied(self) -> Iterator["Position"]:
        self.make_null_move()
        try:
            yield self
        finally:
            self.unmake_move()
