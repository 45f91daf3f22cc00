from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, Optional

from ...engine.game import Game


class InMemorySessionStore:
    """Thread-safe map of ``game_id`` to :class:`Game`.

    Searches run in the thread pool while other requests read the store, so
    every access goes through one lock. Per-game search exclusion is the
    game's own concern.
    """

    def __init__(self, factory: Callable[[], Game] = Game.new) -> None:
        self._lock = threading.RLock()
        self._games: Dict[str, Game] = {}
        self._factory = factory

    def create(self, game: Optional[Game] = None) -> str:
        """Register ``game`` (or a fresh one) and return its new ``game_id``."""
        gid = uuid.uuid4().hex
        with self._lock:
            self._games[gid] = game if game is not None else self._factory()
        return gid

    def get(self, game_id: str) -> Optional[Game]:
        with self._lock:
            return self._games.get(game_id)

    def delete(self, game_id: str) -> bool:
        """Drop ``game_id``; returns whether it existed."""
        with self._lock:
            return self._games.pop(game_id, None) is not None
