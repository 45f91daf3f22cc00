from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..config import EngineConfig
from ..engine.move import Move
from ..engine.position import Position
from ..engine.rules import GameStatus, castling_path_safe, legal_moves
from ..eval import evaluate
from ..eval.pst import MATE_LOWER, MATE_UPPER
from .transposition import Entry, TranspositionTable


logger = logging.getLogger(__name__)


class _SearchInterrupted(Exception):
    """Unwinds the recursion once the deadline passes or a stop is requested."""


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score: int
    depth: int
    nodes: int
    time_ms: int
    status: GameStatus = GameStatus.ONGOING
    pv: List[Move] = field(default_factory=list)
    stopped_on_time: bool = False
    stopped_by_request: bool = False
    tt_probes: int = 0
    tt_hits: int = 0
    tt_stores: int = 0
    tt_evictions: int = 0
    tt_size: int = 0

    @property
    def best_move_uci(self) -> Optional[str]:
        return self.best_move.to_uci() if self.best_move is not None else None


class SearchEngine:
    """Iterative-deepening MTD search over fail-soft ``bound`` probes.

    The transposition table and best-move cache belong to the instance and are
    cleared at the start of every root search. One instance must not run two
    searches at once. A search may be cut short from another thread through
    the ``stop_event`` passed to :meth:`search`; the stop is honoured once the
    first iteration has completed.

    The position handed to :meth:`search` is mutated with make/unmake during
    the search and restored before returning, including when the hard deadline
    interrupts an iteration.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.tt = TranspositionTable(self.config.tt_max_entries)
        self.nodes = 0
        self._interruptible = False
        self._deadline: Optional[float] = None
        self._stop_event: Optional[threading.Event] = None

    def bound(self, position: Position, gamma: int, depth: int, root: bool = True) -> int:
        """Fail-soft test of the position's score against ``gamma``.

        Returns a score ``>= gamma`` if the side to move can reach at least
        ``gamma``; otherwise a score ``< gamma`` that is an upper bound on
        the true score.
        """
        self.nodes += 1
        if self._interruptible and self.nodes % self.config.node_check_interval == 0:
            self._check_interrupt()

        if depth <= 0:
            return evaluate(position)

        sig = position.signature()
        entry = self.tt.probe(position, depth, sig)
        if entry.lower >= gamma:
            return entry.lower
        if entry.upper < gamma:
            return entry.upper

        cfg = self.config
        mover = position.side_to_move
        best = -MATE_UPPER

        if self._null_move_allowed(position, depth, root):
            with position.null_applied():
                score = -self.bound(
                    position, 1 - gamma, depth - cfg.null_move_reduction, root=False
                )
            best = score

        if best < gamma:
            any_legal = False
            for move in self._ordered_moves(position, sig):
                if not castling_path_safe(position, move):
                    continue
                with position.applied(move):
                    if position.in_check(mover):
                        continue
                    any_legal = True
                    score = -self.bound(position, 1 - gamma, depth - 1, root=False)
                if score > best:
                    best = score
                if score >= gamma:
                    self.tt.store_move(position, move, sig)
                    break
            if not any_legal:
                best = -MATE_LOWER if position.in_check(mover) else 0

        if best >= gamma:
            self.tt.store(position, depth, Entry(best, entry.upper), sig)
        else:
            self.tt.store(position, depth, Entry(entry.lower, best), sig)
        return best

    def _check_interrupt(self) -> None:
        if self._stop_event is not None and self._stop_event.is_set():
            raise _SearchInterrupted()
        if self._deadline is not None and time.perf_counter() >= self._deadline:
            raise _SearchInterrupted()

    def _null_move_allowed(self, position: Position, depth: int, root: bool) -> bool:
        # Zugzwang guards: never at the root, in check, or with only king and pawns
        cfg = self.config
        return (
            not root
            and depth >= cfg.null_move_min_depth
            and position.has_non_pawn_material(position.side_to_move)
            and abs(evaluate(position)) < cfg.null_move_max_imbalance
            and not position.in_check()
        )

    def _ordered_moves(self, position: Position, sig: bytes) -> List[Move]:
        # Cached best move first, then the rest by evaluation gain
        moves = sorted(
            position.generate_pseudo_legal_moves(), key=position.move_value, reverse=True
        )
        killer = self.tt.best_move(position, sig)
        if killer is not None and killer in moves:
            moves.remove(killer)
            moves.insert(0, killer)
        return moves

    def _search_root(self, position: Position, depth: int) -> Tuple[int, Optional[Move]]:
        # Bisect gamma until the root score is pinned within eval_roughness
        lower, upper = -MATE_UPPER, MATE_UPPER
        while lower < upper - self.config.eval_roughness:
            gamma = (lower + upper + 1) // 2
            score = self.bound(position, gamma, depth)
            if score >= gamma:
                lower = score
            else:
                upper = score
        return lower, self.tt.best_move(position)

    def search(
        self,
        position: Position,
        time_budget_s: Optional[float] = None,
        max_depth: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> SearchResult:
        """Pick a move for the side to move within ``time_budget_s`` seconds.

        Setting ``stop_event`` ends the search early with the best move of the
        deepest completed iteration. ``time_budget_s=math.inf`` searches until
        stopped or until the depth ceiling.

        Terminal positions return at once with ``best_move=None`` and a
        checkmate or stalemate status. Otherwise the result always carries a
        legal move, even if the budget ran out during the first iteration.

        Raises:
            ValueError: If the budget is negative or ``max_depth`` < 1.
        """
        cfg = self.config
        budget = cfg.default_time_budget_s if time_budget_s is None else time_budget_s
        if budget < 0:
            raise ValueError("time_budget_s must be >= 0")
        depth_limit = cfg.max_depth if max_depth is None else max_depth
        if depth_limit < 1:
            raise ValueError("max_depth must be >= 1")

        start = time.perf_counter()
        self.tt.clear()
        self.nodes = 0
        self._deadline = None
        self._interruptible = False

        root_moves = legal_moves(position)
        if not root_moves:
            checkmate = position.in_check()
            return SearchResult(
                best_move=None,
                score=-MATE_LOWER if checkmate else 0,
                depth=0,
                nodes=0,
                time_ms=int((time.perf_counter() - start) * 1000),
                status=GameStatus.CHECKMATE if checkmate else GameStatus.STALEMATE,
            )

        best_move: Optional[Move] = None
        best_score = 0
        completed_depth = 0
        stopped_on_time = False
        stopped_by_request = False
        self._stop_event = stop_event
        try:
            for depth in range(1, depth_limit + 1):
                score, move = self._search_root(position, depth)
                completed_depth = depth
                best_score = score
                if move is not None and move in root_moves:
                    best_move = move
                elapsed = time.perf_counter() - start
                logger.debug(
                    "iteration",
                    extra={
                        "depth": depth,
                        "score": score,
                        "best_move": best_move.to_uci() if best_move else None,
                        "nodes": self.nodes,
                        "elapsed_ms": int(elapsed * 1000),
                    },
                )
                if stop_event is not None and stop_event.is_set():
                    stopped_by_request = depth < depth_limit
                    break
                if elapsed > budget:
                    stopped_on_time = depth < depth_limit
                    break
                if cfg.hard_deadline and self._deadline is None:
                    self._deadline = start + budget
                self._interruptible = True
        except _SearchInterrupted:
            if stop_event is not None and stop_event.is_set():
                stopped_by_request = True
            else:
                stopped_on_time = True
                logger.info(
                    "search deadline reached",
                    extra={"depth": completed_depth + 1, "nodes": self.nodes},
                )
        finally:
            self._deadline = None
            self._interruptible = False
            self._stop_event = None

        if stopped_on_time:
            logger.info(
                "search stopped on time",
                extra={"completed_depth": completed_depth, "budget_s": budget},
            )
        if stopped_by_request:
            logger.info("search stopped by request", extra={"completed_depth": completed_depth})

        if best_move is None:
            best_move = max(root_moves, key=position.move_value)

        pv = self.principal_variation(position, best_move, max(1, completed_depth))
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "search complete",
            extra={
                "best_move": best_move.to_uci(),
                "score": best_score,
                "depth": completed_depth,
                "nodes": self.nodes,
                "time_ms": elapsed_ms,
            },
        )
        return SearchResult(
            best_move=best_move,
            score=best_score,
            depth=completed_depth,
            nodes=self.nodes,
            time_ms=elapsed_ms,
            status=GameStatus.ONGOING,
            pv=pv,
            stopped_on_time=stopped_on_time,
            stopped_by_request=stopped_by_request,
            tt_probes=self.tt.probes,
            tt_hits=self.tt.hits,
            tt_stores=self.tt.stores,
            tt_evictions=self.tt.evictions,
            tt_size=len(self.tt),
        )

    def search_best_move(
        self, position: Position, time_budget_s: Optional[float] = None
    ) -> Optional[str]:
        """Coordinate text of the chosen move, or ``None`` in a terminal position."""
        return self.search(position, time_budget_s).best_move_uci

    def principal_variation(self, position: Position, first: Move, max_len: int) -> List[Move]:
        """Follow cached best moves from ``first`` for at most ``max_len`` plies."""
        pv = [first]
        seen = {position.zobrist_hash}
        made = 0
        try:
            position.make_move(first)
            made += 1
            while len(pv) < max_len and position.zobrist_hash not in seen:
                seen.add(position.zobrist_hash)
                move = self.tt.best_move(position)
                if move is None or move not in legal_moves(position):
                    break
                position.make_move(move)
                made += 1
                pv.append(move)
        finally:
            for _ in range(made):
                position.unmake_move()
        return pv
