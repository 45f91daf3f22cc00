from __future__ import annotations

from typing import Dict, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .position import Position


def perft(position: "Position", depth: int) -> int:
    """Compute perft node count for ``position`` at ``depth``.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Children are visited with make/unmake, so ``position`` is left unchanged.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = position.generate_legal_moves()
    if depth == 1:
        return len(moves)
    nodes = 0
    for m in moves:
        with position.applied(m):
            nodes += perft(position, depth - 1)
    return nodes


def divide(position: "Position", depth: int) -> Dict[str, int]:
    """Per-root-move perft counts, keyed by coordinate text."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    counts: Dict[str, int] = {}
    for m in position.generate_legal_moves():
        with position.applied(m):
            counts[m.to_uci()] = perft(position, depth - 1)
    return counts
