from __future__ import annotations

import logging

from fastapi import Depends, Request

from ..container import SessionContainer
from ..exceptions import InfraUnavailable
from ..models.session_record import short_session_id
from ..services.session_guard import AuthenticatedSession
from ..services.session_lifecycle_service import SessionLifecycleManager


logger = logging.getLogger(__name__)


def get_container(request: Request) -> SessionContainer:
    return request.app.state.container


def get_lifecycle(
    container: SessionContainer = Depends(get_container),
) -> SessionLifecycleManager:
    return container.lifecycle


async def require_session(
    request: Request,
    container: SessionContainer = Depends(get_container),
) -> AuthenticatedSession:
    """로그인 필수 엔드포인트용 의존성. SessionGuard 를 통과하지 못하면 예외가 전파된다."""

    auth = await container.guard.authorize(
        getattr(request.state, "session_id", None),
        getattr(request.state, "session", None),
    )

    if container.config.session.rolling and auth.record is not None:
        try:
            refreshed = await container.lifecycle.refresh_session(auth.record)
        except InfraUnavailable:
            # 만료 연장은 부가 기능이라 실패해도 요청은 진행한다.
            logger.warning(
                "failed to refresh session expiry",
                extra={
                    "operation": "refresh_session",
                    "session_id": short_session_id(auth.session_id),
                    "user_id": auth.user_id,
                },
            )
        else:
            if refreshed is not None and refreshed is not auth.record:
                auth.record = refreshed
                request.state.refreshed_max_age = container.lifecycle.max_age_for(refreshed)

    return auth
