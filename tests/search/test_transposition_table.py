from __future__ import annotations

import pytest

from blindfold_core.engine.move import parse_uci
from blindfold_core.engine.position import Position
from blindfold_core.eval.pst import MATE_UPPER
from blindfold_core.search.transposition import DEFAULT_ENTRY, Entry, TranspositionTable


def test_fresh_position_gets_open_interval() -> None:
    tt = TranspositionTable()
    entry = tt.probe(Position.startpos(), 3)
    assert entry == DEFAULT_ENTRY == Entry(-MATE_UPPER, MATE_UPPER)
    assert tt.probes == 1
    assert tt.hits == 0


def test_store_then_probe_hits_same_depth_only() -> None:
    tt = TranspositionTable()
    pos = Position.startpos()
    tt.store(pos, 3, Entry(10, 40))
    assert tt.probe(pos, 3) == Entry(10, 40)
    assert tt.probe(pos, 2) == DEFAULT_ENTRY
    assert tt.hits == 1
    assert tt.stores == 1


def test_signature_mismatch_reads_as_miss() -> None:
    tt = TranspositionTable()
    pos = Position.startpos()
    tt.store(pos, 1, Entry(5, 5), signature=b"another position")
    assert tt.probe(pos, 1) == DEFAULT_ENTRY
    tt.store_move(pos, parse_uci("e2e4"), signature=b"another position")
    assert tt.best_move(pos) is None


def test_oldest_entries_evicted_first() -> None:
    tt = TranspositionTable(max_entries=2)
    pos = Position.startpos()
    for depth in (1, 2, 3):
        tt.store(pos, depth, Entry(depth, depth))
    assert len(tt) == 2
    assert tt.evictions == 1
    assert tt.probe(pos, 1) == DEFAULT_ENTRY
    assert tt.probe(pos, 3) == Entry(3, 3)


def test_overwrite_does_not_evict() -> None:
    tt = TranspositionTable(max_entries=1)
    pos = Position.startpos()
    tt.store(pos, 1, Entry(0, 100))
    tt.store(pos, 1, Entry(50, 100))
    assert tt.evictions == 0
    assert tt.probe(pos, 1) == Entry(50, 100)


def test_best_move_cache_and_clear() -> None:
    tt = TranspositionTable()
    pos = Position.startpos()
    tt.store_move(pos, parse_uci("d2d4"))
    assert tt.best_move(pos) == parse_uci("d2d4")
    other = pos.copy()
    other.make_move(parse_uci("d2d4"))
    assert tt.best_move(other) is None
    tt.store(pos, 1, Entry(0, 0))
    tt.clear()
    assert len(tt) == 0
    assert tt.best_move(pos) is None
    assert tt.probes == 0


def test_rejects_empty_capacity() -> None:
    with pytest.raises(ValueError):
        TranspositionTable(max_entries=0)
