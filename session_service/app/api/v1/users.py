from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_lifecycle
from ..schemas.sessions import SessionBulkDeleteResponse, SessionCountResponse
from ...services.session_lifecycle_service import SessionLifecycleManager


router = APIRouter()


@router.delete(
    "/{user_id}/sessions",
    response_model=SessionBulkDeleteResponse,
    summary="유저 전체 세션 원격 로그아웃 (Gateway 전용)",
)
async def delete_user_sessions(
    user_id: str,
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
) -> SessionBulkDeleteResponse:
    deleted = await lifecycle.delete_all_user_sessions(user_id)
    return SessionBulkDeleteResponse(deleted_count=deleted)


@router.get(
    "/{user_id}/sessions/count",
    response_model=SessionCountResponse,
    summary="유저 활성 세션 수 조회 (Gateway 전용)",
)
async def count_user_sessions(
    user_id: str,
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
) -> SessionCountResponse:
    count = await lifecycle.count_user_sessions(user_id)
    return SessionCountResponse(user_id=user_id, count=count)
