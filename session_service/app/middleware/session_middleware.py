from __future__ import annotations

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response

from ..api.cookies import set_session_cookie
from ..container import SessionContainer
from ..exceptions import InfraUnavailable
from ..models.session_record import short_session_id


logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """쿠키의 세션 ID 로 Redis 세션 blob 을 읽어 request.state 에 붙이는 미들웨어.

    - request.state.session_id: 쿠키의 세션 ID (없으면 None)
    - request.state.session: SessionBlob (없으면 None)

    인증 여부 판단은 SessionGuard 가 하고, 이 미들웨어는 로딩만 담당한다.
    rolling expiry 로 TTL 이 연장된 경우 응답에 쿠키 max_age 를 다시 설정한다.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        container: SessionContainer = request.app.state.container
        cookie_config = container.config.cookie

        session_id = request.cookies.get(cookie_config.name) or None
        blob = None
        if session_id:
            try:
                blob = await container.store.load(session_id)
            except InfraUnavailable as exc:
                logger.error(
                    "failed to load session blob",
                    extra={
                        "operation": exc.operation or "store_load",
                        "session_id": short_session_id(session_id),
                        "path": request.url.path,
                    },
                )
                return JSONResponse(
                    status_code=503,
                    content={"detail": "session store unavailable", "code": InfraUnavailable.code},
                )

        request.state.session_id = session_id
        request.state.session = blob
        request.state.refreshed_max_age = None

        response = await call_next(request)

        refreshed_max_age = getattr(request.state, "refreshed_max_age", None)
        if session_id and refreshed_max_age is not None and "set-cookie" not in response.headers:
            set_session_cookie(response, cookie_config, session_id, refreshed_max_age)

        return response
