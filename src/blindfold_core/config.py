"""Engine tunables, with ``BLINDFOLD_*`` environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional, TypeVar

T = TypeVar("T")

# Entries per MiB when a UCI front end sizes the table by memory
ENTRIES_PER_MB = 16384


@dataclass(frozen=True)
class EngineConfig:
    """Search and table settings shared by every front end.

    Attributes:
        max_depth: Iterative-deepening ceiling.
        default_time_budget_s: Budget used when a caller passes none.
        tt_max_entries: Bound on transposition entries (and cached best moves).
        null_move_min_depth: Smallest remaining depth at which a null move is tried.
        null_move_reduction: Depth taken off the null-move search.
        null_move_max_imbalance: Static imbalance (centipawns) above which the
            null move is skipped.
        eval_roughness: Root bisection stops once the score interval is this narrow.
        hard_deadline: Abort an iteration in progress once the budget is spent
            (only after depth 1 completed).
        node_check_interval: Nodes between clock reads for the hard deadline.
        log_level: Level name handed to ``logging.basicConfig`` by front ends.
    """

    max_depth: int = 100
    default_time_budget_s: float = 1.0
    tt_max_entries: int = 200_000
    null_move_min_depth: int = 3
    null_move_reduction: int = 3
    null_move_max_imbalance: int = 1500
    eval_roughness: int = 15
    hard_deadline: bool = True
    node_check_interval: int = 1024
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        if self.default_time_budget_s <= 0:
            raise ValueError("default_time_budget_s must be > 0")
        if self.tt_max_entries < 1:
            raise ValueError("tt_max_entries must be >= 1")
        if self.node_check_interval < 1:
            raise ValueError("node_check_interval must be >= 1")
        if self.eval_roughness < 1:
            raise ValueError("eval_roughness must be >= 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from defaults overridden by ``BLINDFOLD_*`` variables.

        Raises:
            ValueError: If a variable is present but malformed; the message
                names the variable.
        """
        env = os.environ if environ is None else environ
        base = cls()
        return replace(
            base,
            max_depth=_read(env, "BLINDFOLD_MAX_DEPTH", int, base.max_depth),
            tt_max_entries=_read(env, "BLINDFOLD_TT_MAX_ENTRIES", int, base.tt_max_entries),
            default_time_budget_s=_read(
                env, "BLINDFOLD_TIME_BUDGET_S", float, base.default_time_budget_s
            ),
            hard_deadline=_read(env, "BLINDFOLD_HARD_DEADLINE", _parse_bool, base.hard_deadline),
            log_level=_read(env, "BLINDFOLD_LOG_LEVEL", _parse_level, base.log_level),
        )

    def with_hash_mb(self, mb: int) -> "EngineConfig":
        return replace(self, tt_max_entries=max(1, int(mb)) * ENTRIES_PER_MB)


def _read(env: Mapping[str, str], name: str, parse: Callable[[str], T], default: T) -> T:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as e:
        raise ValueError(f"invalid value for {name}: {raw!r}") from e


def _parse_bool(raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(raw)


def _parse_level(raw: str) -> str:
    level = raw.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(raw)
    return level
