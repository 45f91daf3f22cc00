"""Structured JSON error envelope and the handlers that produce it."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, cast

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from ...engine.fen import FenError
from ...engine.game import EngineBusyError, IllegalMoveError


logger = logging.getLogger(__name__)

_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "unprocessable_entity",
}


def error_envelope(
    *,
    code: str,
    message: str,
    err_type: str,
    request_id: str,
    field_errors: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "type": err_type,
            "request_id": request_id,
        }
    }
    if field_errors:
        payload["error"]["field_errors"] = field_errors
    return payload


def _respond(request: Request, status_code: int, code: str, message: str, **kw: Any) -> JSONResponse:
    payload = error_envelope(
        code=code,
        message=message,
        err_type="client_error" if 400 <= status_code < 500 else "server_error",
        request_id=getattr(request.state, "request_id", ""),
        **kw,
    )
    return JSONResponse(status_code=status_code, content=payload)


def _status_to_code(status_code: int) -> str:
    if 500 <= status_code < 600:
        return "internal_error"
    return _STATUS_CODES.get(status_code, "error")


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(HTTPException, exc)
    detail = http_exc.detail if isinstance(http_exc.detail, str) else str(http_exc.detail)
    return _respond(request, http_exc.status_code, _status_to_code(http_exc.status_code), detail)


async def fen_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _respond(request, status.HTTP_400_BAD_REQUEST, "invalid_position", str(exc))


async def illegal_move_handler(request: Request, exc: Exception) -> JSONResponse:
    return _respond(request, status.HTTP_400_BAD_REQUEST, "illegal_move", str(exc))


async def engine_busy_handler(request: Request, exc: Exception) -> JSONResponse:
    return _respond(request, status.HTTP_409_CONFLICT, "conflict", str(exc))


async def request_validation_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    errors = []
    for e in cast(RequestValidationError, exc).errors():
        loc = ".".join(str(p) for p in e.get("loc", []) if p is not None)
        errors.append(
            {
                "field": loc,
                "code": e.get("type", "value_error"),
                "message": e.get("msg", "invalid value"),
            }
        )
    return _respond(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "unprocessable_entity",
        "Validation error",
        field_errors=errors or None,
    )


async def exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception", extra={"request_id": getattr(request.state, "request_id", "")}
    )
    return _respond(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal Server Error"
    )


def install_error_handlers(app: Any) -> None:
    """Register every handler on a FastAPI ``app``."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(FenError, fen_error_handler)
    app.add_exception_handler(IllegalMoveError, illegal_move_handler)
    app.add_exception_handler(EngineBusyError, engine_busy_handler)
    app.add_exception_handler(Exception, exception_handler)
