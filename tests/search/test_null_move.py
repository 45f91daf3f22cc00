from __future__ import annotations

from typing import List, Tuple

import pytest

from blindfold_core.config import EngineConfig
from blindfold_core.engine.position import Position
from blindfold_core.search.service import SearchEngine

KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


@pytest.fixture
def null_moves(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[bool, bool]]:
    # (in_check, has_non_pawn_material) of the side passing, per null move tried
    calls: List[Tuple[bool, bool]] = []
    original = Position.null_applied

    def recording(self: Position):
        calls.append((self.in_check(), self.has_non_pawn_material()))
        return original(self)

    monkeypatch.setattr(Position, "null_applied", recording)
    return calls


def test_null_move_tried_in_quiet_rook_ending(null_moves) -> None:
    pos = Position.from_fen("r3k3/8/8/8/8/8/8/4K2R w - - 0 1")
    res = SearchEngine().search(pos, time_budget_s=30.0, max_depth=4)
    assert res.best_move in pos.generate_legal_moves()
    assert null_moves
    assert all(not in_check and material for in_check, material in null_moves)


def test_null_move_guard_in_pawn_endgame_returns_legal_move(null_moves) -> None:
    # Only kings and pawns: zugzwang-prone, the pass is never tried
    pos = Position.from_fen("8/8/8/8/4k3/8/4P3/4K3 w - - 0 1")
    res = SearchEngine().search(pos, time_budget_s=30.0, max_depth=5)
    assert null_moves == []
    assert res.best_move in pos.generate_legal_moves()


def test_null_move_disabled_while_in_check_returns_legal_evasion(null_moves) -> None:
    fen = "4k3/8/8/8/8/8/8/4K2r w - - 0 1"
    pos = Position.from_fen(fen)
    assert pos.in_check()
    res = SearchEngine().search(pos, time_budget_s=30.0, max_depth=4)
    assert all(not in_check for in_check, _ in null_moves)

    after = Position.from_fen(fen)
    after.make_move(res.best_move)
    assert not after.in_check("w")


@pytest.mark.parametrize(
    "fen,depth,root,allowed",
    [
        (KIWIPETE, 3, False, True),
        (KIWIPETE, 3, True, False),
        (KIWIPETE, 2, False, False),
        # in check
        ("4k3/8/8/8/8/8/8/R3K2r w - - 0 1", 5, False, False),
        # king and pawns only
        ("4k3/pppp4/8/8/8/8/PPPP4/4K3 w - - 0 1", 5, False, False),
        # overwhelming material
        ("4k3/8/8/8/8/8/8/QQQ1K3 w - - 0 1", 5, False, False),
    ],
)
def test_null_move_gating(fen: str, depth: int, root: bool, allowed: bool) -> None:
    engine = SearchEngine()
    assert engine._null_move_allowed(Position.from_fen(fen), depth, root) is allowed


def test_null_move_depth_threshold_follows_config() -> None:
    engine = SearchEngine(EngineConfig(null_move_min_depth=5))
    pos = Position.from_fen(KIWIPETE)
    assert engine._null_move_allowed(pos, 4, False) is False
    assert engine._null_move_allowed(pos, 5, False) is True
