from __future__ import annotations

import logging
import math
import sys
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, TextIO, Tuple

from ... import __version__
from ...config import EngineConfig
from ...engine.fen import FenError
from ...engine.game import Game, IllegalMoveError
from ...search.service import SearchEngine, SearchResult


logger = logging.getLogger(__name__)

Writer = Callable[[str], None]


@dataclass
class GoParams:
    depth: Optional[int] = None
    movetime_ms: Optional[int] = None
    wtime: Optional[int] = None
    btime: Optional[int] = None
    winc: Optional[int] = None
    binc: Optional[int] = None
    movestogo: Optional[int] = None
    infinite: bool = False


class UCIEngine:
    """UCI protocol adapter around the core engine.

    Notes:
    - Core remains pure; I/O is isolated here.
    - ``go`` searches a copy of the position on a daemon thread, so the
      command loop keeps reading ``stop``/``isready`` while it runs.
    - ``stop`` ends the search cooperatively and waits for the worker to
      print its best move.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.game: Game = Game.new(self.config)
        # Async search state
        self._search_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._gen = 0  # generation id to invalidate stale workers
        self.hash_mb: int = max(1, self.config.tt_max_entries // 16384)

    # ---- Command handlers ----
    def cmd_uci(self, write: Writer) -> None:
        write(f"id name blindfold {__version__}")
        write("id author blindfold developers")
        write(f"option name Hash type spin default {self.hash_mb} min 1 max 4096")
        write("uciok")

    def cmd_isready(self, write: Writer) -> None:
        write("readyok")

    def cmd_ucinewgame(self) -> None:
        self._cancel_running_search()
        self.game = Game.new(self.config)

    def cmd_position(self, args: List[str]) -> None:
        # position [startpos | fen <FEN> ] [moves m1 m2 ...]
        if not args:
            return
        idx = 0
        if args[idx] == "startpos":
            game = Game.new(self.config)
            idx += 1
        elif args[idx] == "fen":
            idx += 1
            fen_tokens: List[str] = []
            while idx < len(args) and args[idx] != "moves":
                fen_tokens.append(args[idx])
                idx += 1
            try:
                game = Game.from_fen(" ".join(fen_tokens), self.config)
            except FenError as e:
                logger.warning(
                    "ignoring invalid position",
                    extra={"fen": " ".join(fen_tokens), "error": str(e)},
                )
                return
        else:
            return
        if idx < len(args) and args[idx] == "moves":
            for u in args[idx + 1 :]:
                try:
                    game.apply_move(u)
                except IllegalMoveError as e:
                    logger.warning(
                        "ignoring moves from first illegal one",
                        extra={"move": u, "error": str(e)},
                    )
                    break
        self.game = game

    def cmd_setoption(self, args: List[str]) -> None:
        # setoption name <name> [value <value>]
        if not args:
            return
        i = 0
        if args[i] == "name":
            i += 1
        name_tokens: List[str] = []
        while i < len(args) and args[i] != "value":
            name_tokens.append(args[i])
            i += 1
        value_tokens = args[i + 1 :] if i < len(args) else []
        name = " ".join(name_tokens).strip().lower()
        value = " ".join(value_tokens).strip()
        if name == "hash":
            try:
                mb = int(value)
            except ValueError:
                logger.warning("ignoring invalid Hash value", extra={"value": value})
                return
            self.hash_mb = min(4096, max(1, mb))
            self.config = self.config.with_hash_mb(self.hash_mb)
            self.game.reconfigure(self.config)

    def cmd_go(self, args: List[str], write: Writer) -> None:
        params = self._parse_go_args(args)
        budget_s, depth = self._select_time_and_depth(params)
        self._cancel_running_search()
        self._gen += 1
        gen = self._gen
        stop_event = threading.Event()
        self._stop_event = stop_event
        position = self.game.snapshot()
        engine = SearchEngine(self.config)

        def worker() -> None:
            res = engine.search(
                position, time_budget_s=budget_s, max_depth=depth, stop_event=stop_event
            )
            if params.infinite:
                # go infinite reports only after stop
                stop_event.wait()
            if gen != self._gen:
                return
            self._emit_info(res, write)
            write(f"bestmove {res.best_move_uci or '(none)'}")

        self._search_thread = threading.Thread(target=worker, name="uci-search", daemon=True)
        self._search_thread.start()

    def cmd_stop(self) -> None:
        # The worker prints bestmove from its deepest completed iteration
        if self._search_thread is None:
            return
        self._stop_event.set()
        self._search_thread.join()
        self._search_thread = None

    # ---- Utilities ----
    def _parse_go_args(self, args: List[str]) -> GoParams:
        gp = GoParams()
        int_fields = {"depth", "movetime", "wtime", "btime", "winc", "binc", "movestogo"}
        i = 0
        while i < len(args):
            tok = args[i]
            if tok == "infinite":
                gp.infinite = True
                i += 1
                continue
            if tok in int_fields and i + 1 < len(args):
                try:
                    value = int(args[i + 1])
                except ValueError:
                    logger.warning("ignoring invalid go argument", extra={tok: args[i + 1]})
                else:
                    setattr(gp, "movetime_ms" if tok == "movetime" else tok, value)
                i += 2
                continue
            i += 1
        return gp

    def _select_time_and_depth(self, gp: GoParams) -> Tuple[float, Optional[int]]:
        # Precedence: explicit movetime > (wtime/btime based) > depth only > default budget.
        if gp.movetime_ms is not None:
            return max(1, gp.movetime_ms) / 1000.0, gp.depth

        if any(v is not None for v in (gp.wtime, gp.btime, gp.winc, gp.binc, gp.movestogo)):
            stm_white = self.game.position.side_to_move == "w"
            remaining = gp.wtime if stm_white else gp.btime
            inc = gp.winc if stm_white else gp.binc
            if remaining is None:
                return self.config.default_time_budget_s, gp.depth
            moves_left = gp.movestogo if (gp.movestogo and gp.movestogo > 0) else 30
            alloc = remaining // max(1, moves_left) + int((inc or 0) * 0.5)
            # Clamp allocation conservatively
            safety_margin = 50
            max_cap = min(int(remaining * 0.7), max(0, remaining - safety_margin))
            if max_cap <= 0:
                alloc = max(1, remaining - 1)
            else:
                alloc = max(10, min(alloc, max_cap))
            return alloc / 1000.0, gp.depth

        if gp.infinite or gp.depth is not None:
            return math.inf, gp.depth
        return self.config.default_time_budget_s, gp.depth

    def _emit_info(self, res: SearchResult, write: Writer) -> None:
        if res.best_move is None:
            return
        time_ms = max(0, res.time_ms)
        nps = int(res.nodes * 1000 / max(1, time_ms))
        score = f"cp {res.score}"
        pv = " ".join(m.to_uci() for m in res.pv)
        write(
            f"info depth {res.depth} time {time_ms} nodes {res.nodes} nps {nps} "
            f"score {score} pv {pv}"
        )

    def _cancel_running_search(self) -> None:
        # Silence the running worker, then stop and join it
        self._gen += 1
        self.cmd_stop()


def _default_writer(line: str) -> None:
    # Ensure newline termination and immediate flush
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def run_uci(
    stdin: Optional[TextIO] = None,
    write: Writer = _default_writer,
    config: Optional[EngineConfig] = None,
) -> None:
    eng = UCIEngine(config)
    for raw in stdin if stdin is not None else sys.stdin:
        line = raw.strip()
        if not line:
            continue
        parts = line.split()
        cmd, args = parts[0], parts[1:]

        if cmd == "uci":
            eng.cmd_uci(write)
        elif cmd == "isready":
            eng.cmd_isready(write)
        elif cmd == "setoption":
            eng.cmd_setoption(args)
        elif cmd == "ucinewgame":
            eng.cmd_ucinewgame()
        elif cmd == "position":
            eng.cmd_position(args)
        elif cmd == "go":
            eng.cmd_go(args, write)
        elif cmd == "stop":
            eng.cmd_stop()
        elif cmd == "quit":
            eng.cmd_stop()
            break
        # Ignore unknown commands per UCI convention
