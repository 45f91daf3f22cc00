from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..config import EngineConfig
from ..search.service import SearchEngine, SearchResult
from .move import Move, parse_uci
from .position import Position
from .rules import GameStatus, game_status


class IllegalMoveError(ValueError):
    """A collaborator move that is malformed or not legal in the position."""


class EngineBusyError(RuntimeError):
    """A search was requested while another one runs on the same game."""


@dataclass
class Game:
    """Collaborator facade around a position and a search engine.

    Responsibility: load positions, list legal moves, apply/undo collaborator
    moves, and run searches on a private copy of the current position.

    Legality queries make and unmake moves on ``position`` in place, so every
    read or write of it holds ``_state_lock``. A search copies the position
    under that lock and then runs without it.
    """

    position: Position
    config: EngineConfig = field(default_factory=EngineConfig)
    move_stack: List[Move] = field(default_factory=list)
    _state_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _search_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _engine: Optional[SearchEngine] = field(default=None, repr=False)

    @classmethod
    def new(cls, config: Optional[EngineConfig] = None) -> "Game":
        return cls(position=Position.startpos(), config=config or EngineConfig())

    @classmethod
    def from_fen(cls, fen: str, config: Optional[EngineConfig] = None) -> "Game":
        return cls(position=Position.from_fen(fen), config=config or EngineConfig())

    @property
    def engine(self) -> SearchEngine:
        if self._engine is None:
            self._engine = SearchEngine(self.config)
        return self._engine

    def reconfigure(self, config: EngineConfig) -> None:
        """Swap the engine settings; the next search starts a fresh engine."""
        self.config = config
        self._engine = None

    def snapshot(self) -> Position:
        """Independent copy of the current position."""
        with self._state_lock:
            return self.position.copy()

    def to_fen(self) -> str:
        with self._state_lock:
            return self.position.to_fen()

    def set_position_from_string(self, fen: str) -> None:
        """Replace the current position and clear the move history.

        Raises:
            FenError: If ``fen`` is malformed; the current position is kept.
        """
        position = Position.from_fen(fen)
        with self._state_lock:
            self.position = position
            self.move_stack.clear()

    def legal_moves(self) -> List[Move]:
        with self._state_lock:
            return self.position.generate_legal_moves()

    def legal_moves_uci(self) -> List[str]:
        return [m.to_uci() for m in self.legal_moves()]

    def apply_move(self, move: Union[Move, str]) -> Move:
        """Validate and play a collaborator move.

        Raises:
            IllegalMoveError: If the text is malformed or the move is not legal.
        """
        if isinstance(move, str):
            try:
                move = parse_uci(move)
            except ValueError as e:
                raise IllegalMoveError(str(e)) from e
        with self._state_lock:
            if move not in self.position.generate_legal_moves():
                raise IllegalMoveError(f"illegal move: {move.to_uci()}")
            self.position.make_move(move)
            self.move_stack.append(move)
        return move

    def undo_move(self) -> Move:
        with self._state_lock:
            if not self.move_stack:
                raise IllegalMoveError("no moves to undo")
            self.position.unmake_move()
            return self.move_stack.pop()

    def search(
        self, time_budget_s: Optional[float] = None, max_depth: Optional[int] = None
    ) -> SearchResult:
        """Run a search on a copy of the current position.

        Raises:
            EngineBusyError: If a search is already running on this game.
        """
        if not self._search_lock.acquire(blocking=False):
            raise EngineBusyError("a search is already running for this game")
        try:
            position = self.snapshot()
            return self.engine.search(position, time_budget_s=time_budget_s, max_depth=max_depth)
        finally:
            self._search_lock.release()

    def search_best_move(self, time_budget_s: Optional[float] = None) -> Optional[str]:
        """Best move as coordinate text, or ``None`` if the side to move has no move."""
        return self.search(time_budget_s).best_move_uci

    # --- State flags for protocol ---
    def in_check(self) -> bool:
        with self._state_lock:
            return self.position.in_check()

    def status(self) -> GameStatus:
        with self._state_lock:
            return game_status(self.position)

    def checkmate(self) -> bool:
        return self.status() is GameStatus.CHECKMATE

    def stalemate(self) -> bool:
        return self.status() is GameStatus.STALEMATE

    def move_history_uci(self) -> List[str]:
        with self._state_lock:
            return [m.to_uci() for m in self.move_stack]
