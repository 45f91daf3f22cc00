"""Bounded score/best-move caches for one search engine.

Entries are keyed by Zobrist hash (plus depth for score bounds) and carry the
full position signature, so a hash collision reads as a miss instead of
returning a bound that belongs to another position.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from ..engine.move import Move
from ..eval.pst import MATE_UPPER

if TYPE_CHECKING:  # pragma: no cover
    from ..engine.position import Position


@dataclass(frozen=True)
class Entry:
    """Lower and upper bound on the true score of a position at a depth."""

    lower: int
    upper: int


DEFAULT_ENTRY = Entry(-MATE_UPPER, MATE_UPPER)


class TranspositionTable:
    """Score-bound table plus killer-move cache with FIFO eviction.

    Not thread-safe; each :class:`~blindfold_core.search.service.SearchEngine`
    owns one.
    """

    def __init__(self, max_entries: int = 200_000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._scores: Dict[Tuple[int, int], Tuple[bytes, Entry]] = {}
        self._moves: Dict[int, Tuple[bytes, Move]] = {}
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._scores)

    def clear(self) -> None:
        self._scores.clear()
        self._moves.clear()
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.evictions = 0

    def probe(self, position: "Position", depth: int, signature: Optional[bytes] = None) -> Entry:
        """Return the stored bounds, or the open interval if none are known."""
        self.probes += 1
        found = self._scores.get((position.zobrist_hash, depth))
        if found is None:
            return DEFAULT_ENTRY
        sig = signature if signature is not None else position.signature()
        if found[0] != sig:
            return DEFAULT_ENTRY
        self.hits += 1
        return found[1]

    def store(
        self, position: "Position", depth: int, entry: Entry, signature: Optional[bytes] = None
    ) -> None:
        key = (position.zobrist_hash, depth)
        sig = signature if signature is not None else position.signature()
        if key not in self._scores and len(self._scores) >= self.max_entries:
            # Dicts iterate in insertion order, so the first key is the oldest
            del self._scores[next(iter(self._scores))]
            self.evictions += 1
        self._scores[key] = (sig, entry)
        self.stores += 1

    def best_move(self, position: "Position", signature: Optional[bytes] = None) -> Optional[Move]:
        found = self._moves.get(position.zobrist_hash)
        if found is None:
            return None
        sig = signature if signature is not None else position.signature()
        return found[1] if found[0] == sig else None

    def store_move(self, position: "Position", move: Move, signature: Optional[bytes] = None) -> None:
        key = position.zobrist_hash
        sig = signature if signature is not None else position.signature()
        if key not in self._moves and len(self._moves) >= self.max_entries:
            del self._moves[next(iter(self._moves))]
        self._moves[key] = (sig, move)
