from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..exceptions import (
    AlreadyAuthenticated,
    CurrentSessionDeletion,
    InfraUnavailable,
    SessionInvalidated,
    SessionNotFound,
    SessionServiceError,
    Unauthenticated,
)
from ..models.session_record import short_session_id
from .cookies import clear_session_cookie


logger = logging.getLogger(__name__)


_STATUS_BY_ERROR: dict[type[SessionServiceError], int] = {
    Unauthenticated: 401,
    SessionInvalidated: 401,
    AlreadyAuthenticated: 400,
    CurrentSessionDeletion: 400,
    SessionNotFound: 404,
    InfraUnavailable: 503,
}


def _error_body(exc: SessionServiceError) -> dict[str, str]:
    return {"detail": str(exc), "code": exc.code}


async def _handle_session_error(request: Request, exc: SessionServiceError) -> JSONResponse:
    status = _STATUS_BY_ERROR.get(type(exc), 400)
    return JSONResponse(status_code=status, content=_error_body(exc))


async def _handle_session_invalidated(request: Request, exc: SessionInvalidated) -> JSONResponse:
    # 다음 요청이 깨끗한 상태로 시작하도록 이 응답에서 쿠키를 지운다.
    response = JSONResponse(status_code=401, content=_error_body(exc))
    clear_session_cookie(response, request.app.state.container.config.cookie)
    return response


async def _handle_infra_unavailable(request: Request, exc: InfraUnavailable) -> JSONResponse:
    logger.error(
        "session infrastructure unavailable: %s",
        exc,
        extra={
            "operation": exc.operation,
            "session_id": short_session_id(exc.session_id),
            "user_id": exc.user_id,
            "path": request.url.path,
        },
    )
    return JSONResponse(status_code=503, content=_error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SessionInvalidated, _handle_session_invalidated)  # type: ignore[arg-type]
    app.add_exception_handler(InfraUnavailable, _handle_infra_unavailable)  # type: ignore[arg-type]
    app.add_exception_handler(SessionServiceError, _handle_session_error)  # type: ignore[arg-type]
