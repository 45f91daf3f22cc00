from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from ... import __version__
from ...config import EngineConfig
from ...engine.game import Game
from .error import install_error_handlers
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore


logger = logging.getLogger(__name__)


class CreateGameRequest(BaseModel):
    fen: Optional[str] = Field(default=None, description="Starting FEN; standard start if omitted")


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., min_length=1, description="FEN string")


class MoveRequest(BaseModel):
    move: str = Field(..., min_length=4, max_length=5, description="Coordinate move, e.g. e2e4")


class SearchRequest(BaseModel):
    time_budget_s: Optional[float] = Field(default=None, gt=0, le=60)
    max_depth: Optional[int] = Field(default=None, ge=1, le=100)


class SearchResponse(BaseModel):
    best_move: Optional[str]
    score: int
    depth: int
    nodes: int
    time_ms: int
    status: str
    pv: List[str]
    stopped_on_time: bool


class GameState(BaseModel):
    game_id: str
    fen: str
    legal_moves: List[str]
    in_check: bool
    status: str
    last_move: Optional[str]
    move_history: List[str]


def _state(game_id: str, game: Game) -> GameState:
    history = game.move_history_uci()
    return GameState(
        game_id=game_id,
        fen=game.to_fen(),
        legal_moves=game.legal_moves_uci(),
        in_check=game.in_check(),
        status=game.status().value,
        last_move=history[-1] if history else None,
        move_history=history,
    )


def create_app(config: Optional[EngineConfig] = None) -> FastAPI:
    config = config or EngineConfig.from_env()
    app = FastAPI(title="Blindfold Engine API", version=__version__)

    logging.basicConfig(level=config.log_level)

    app.add_middleware(RequestIDLoggingMiddleware)
    install_error_handlers(app)

    store = InMemorySessionStore(lambda: Game.new(config))

    def require_game(game_id: str) -> Game:
        game = store.get(game_id)
        if game is None:
            raise HTTPException(status_code=404, detail="game not found")
        return game

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        game = Game.new(config)
        if req is not None and req.fen:
            game.set_position_from_string(req.fen)
        game_id = store.create(game)
        logger.info("game created", extra={"game_id": game_id})
        return CreateGameResponse(game_id=game_id, fen=game.to_fen())

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    async def get_state(game_id: str) -> GameState:
        return _state(game_id, require_game(game_id))

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    async def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        game = require_game(game_id)
        game.set_position_from_string(req.fen)
        return _state(game_id, game)

    @app.get("/api/games/{game_id}/legal-moves")
    async def legal_moves(game_id: str) -> Dict[str, List[str]]:
        return {"moves": require_game(game_id).legal_moves_uci()}

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    async def make_move(game_id: str, req: MoveRequest) -> GameState:
        game = require_game(game_id)
        game.apply_move(req.move)
        return _state(game_id, game)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    async def undo(game_id: str) -> GameState:
        game = require_game(game_id)
        game.undo_move()
        return _state(game_id, game)

    @app.delete("/api/games/{game_id}", status_code=204)
    async def delete_game(game_id: str) -> Response:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        logger.info("game deleted", extra={"game_id": game_id})
        return Response(status_code=204)

    @app.post("/api/games/{game_id}/search", response_model=SearchResponse)
    async def search(game_id: str, req: SearchRequest) -> SearchResponse:
        game = require_game(game_id)
        res = await run_in_threadpool(game.search, req.time_budget_s, req.max_depth)
        return SearchResponse(
            best_move=res.best_move_uci,
            score=res.score,
            depth=res.depth,
            nodes=res.nodes,
            time_ms=res.time_ms,
            status=res.status.value,
            pv=[m.to_uci() for m in res.pv],
            stopped_on_time=res.stopped_on_time,
        )

    return app
