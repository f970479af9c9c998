from __future__ import annotations


from fastapi import APIRouter, Depends, Request, Response

from ..cookies import clear_session_cookie, set_session_cookie
from ..dependencies import get_container, require_session
from ..schemas.sessions import (
    CurrentSessionResponse,
    SessionBulkDeleteResponse,
    SessionCreateRequest,
    SessionCreateResponse,
    SessionDeleteResponse,
    SessionListResponse,
    SessionSummaryResponse,
)
from ...container import SessionContainer
from ...device.classifier import classify_device
from ...exceptions import (
    AlreadyAuthenticated,
    CurrentSessionDeletion,
    SessionNotFound,
    Unauthenticated,
)
from ...models.session_record import session_ref
from ...services.session_guard import AuthenticatedSession


router = APIRouter()


@router.post(
    "",
    response_model=SessionCreateResponse,
    summary="로그인 세션 생성 (Gateway 전용)",
)
async def create_session(
    body: SessionCreateRequest,
    request: Request,
    response: Response,
    container: SessionContainer = Depends(get_container),
) -> SessionCreateResponse:
    current_id: str | None = request.state.session_id
    current_blob = request.state.session

    # 이미 유효한 세션이 있으면 로그인 차단 (force=true 이면 강제 로그인 허용)
    if current_blob is not None and current_blob.is_authenticated and not body.force:
        if await container.guard.is_live(current_id, current_blob):
            raise AlreadyAuthenticated("already logged in")

    client_host = request.client.host if request.client else None
    device = classify_device(request.headers, client_host)
    created = await container.lifecycle.create_session(body.user_id, device, body.claims)

    # 세션 고정 방지: 요청에 실려 온 이전 세션 ID 는 더 이상 쓰지 않는다.
    if current_id and current_id != created.session_id:
        await container.lifecycle.delete_session(current_id)

    set_session_cookie(response, container.config.cookie, created.session_id, created.max_age_seconds)

    terminated = created.evicted[0] if created.evicted else None
    return SessionCreateResponse(
        session_id=created.session_id,
        user_id=created.record.user_id,
        platform=created.record.platform,
        device_name=created.record.device_name,
        expires_at=created.expires_at,
        previous_session_terminated=terminated is not None,
        terminated_device_name=terminated.device_name if terminated else None,
    )


@router.get(
    "/me",
    response_model=CurrentSessionResponse,
    summary="현재 세션 확인",
)
async def get_current_session(
    auth: AuthenticatedSession = Depends(require_session),
) -> CurrentSessionResponse:
    return CurrentSessionResponse(
        user_id=auth.user_id,
        platform=auth.platform,
        claims=auth.blob.claims,
        verified=auth.verified,
        expires_at=auth.record.expires_at if auth.record else None,
    )


@router.delete(
    "/me",
    response_model=SessionDeleteResponse,
    summary="로그아웃",
)
async def logout(
    request: Request,
    response: Response,
    container: SessionContainer = Depends(get_container),
) -> SessionDeleteResponse:
    # 이미 파기된 세션으로 로그아웃해도 성공으로 처리한다 (멱등).
    session_id: str | None = request.state.session_id
    if not session_id:
        raise Unauthenticated("login required")

    deleted = await container.lifecycle.delete_session(session_id)
    clear_session_cookie(response, container.config.cookie)
    return SessionDeleteResponse(deleted=deleted)


@router.get(
    "",
    response_model=SessionListResponse,
    summary="활성 세션 목록 조회",
)
async def list_sessions(
    auth: AuthenticatedSession = Depends(require_session),
    container: SessionContainer = Depends(get_container),
) -> SessionListResponse:
    summaries = await container.lifecycle.list_active_sessions(auth.user_id, auth.session_id)
    return SessionListResponse(
        total=len(summaries),
        items=[SessionSummaryResponse.from_domain(summary) for summary in summaries],
    )


@router.delete(
    "/others",
    response_model=SessionBulkDeleteResponse,
    summary="현재 세션을 제외한 모든 세션 로그아웃",
)
async def delete_other_sessions(
    auth: AuthenticatedSession = Depends(require_session),
    container: SessionContainer = Depends(get_container),
) -> SessionBulkDeleteResponse:
    deleted = await container.lifecycle.delete_other_sessions(auth.user_id, auth.session_id)
    return SessionBulkDeleteResponse(deleted_count=deleted)


@router.delete(
    "/{ref}",
    response_model=SessionDeleteResponse,
    summary="특정 기기 세션 강제 종료",
)
async def delete_session_by_ref(
    ref: str,
    auth: AuthenticatedSession = Depends(require_session),
    container: SessionContainer = Depends(get_container),
) -> SessionDeleteResponse:
    # 현재 세션은 이 방법으로 삭제할 수 없다 (DELETE /sessions/me 사용)
    if ref == session_ref(auth.session_id):
        raise CurrentSessionDeletion("use DELETE /sessions/me to end the current session")

    # 본인 세션 중에서만 찾으므로 다른 사용자의 세션은 404 가 된다.
    record = await container.lifecycle.find_session_by_ref(auth.user_id, ref)
    if record is None:
        raise SessionNotFound("session not found")

    deleted = await container.lifecycle.delete_session(record.session_id)
    return SessionDeleteResponse(deleted=deleted)


@router.delete(
    "",
    response_model=SessionBulkDeleteResponse,
    summary="모든 기기에서 로그아웃",
)
async def delete_all_sessions(
    response: Response,
    auth: AuthenticatedSession = Depends(require_session),
    container: SessionContainer = Depends(get_container),
) -> SessionBulkDeleteResponse:
    deleted = await container.lifecycle.delete_all_user_sessions(auth.user_id)
    clear_session_cookie(response, container.config.cookie)
    return SessionBulkDeleteResponse(deleted_count=deleted)
