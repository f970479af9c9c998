from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, NoReturn, TypeVar

from common.types.datetime import utcnow

from ..config import GuardConfig
from ..exceptions import InfraUnavailable, SessionInvalidated, Unauthenticated
from ..models.session_blob import SessionBlob
from ..models.session_record import Platform, SessionRecord, short_session_id
from ..repositories.interfaces import (
    InvalidationLedgerInterface,
    SessionRegistryInterface,
    SessionStoreInterface,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Unavailable:
    """조회가 인프라 오류로 결과를 내지 못했음을 나타내는 센티널."""


_UNAVAILABLE = _Unavailable()


@dataclass(slots=True)
class AuthenticatedSession:
    """SessionGuard 를 통과한 요청의 세션 정보.

    record 가 None 이면 레지스트리 확인이 인프라 장애로 생략된(fail-open) 경우다.
    """

    session_id: str
    user_id: str
    platform: Platform
    blob: SessionBlob
    record: SessionRecord | None

    @property
    def verified(self) -> bool:
        return self.record is not None


class SessionGuard:
    """인증이 필요한 요청마다 세션의 유효성을 판단하는 게이트.

    1. 세션/사용자 정보가 없으면 Unauthenticated (blob 이 없어도 원장 표식이 있으면 SessionInvalidated)
    2. 무효화 원장에 표식이 있으면 SessionInvalidated
    3. 레지스트리에 없거나 만료됐으면 SessionInvalidated

    원장과 레지스트리를 모두 확인한다. 파기는 "원장 표식 → 저장소 삭제 → 레지스트리 삭제"
    순서라서, 표식 이후 레지스트리 삭제 전까지는 레지스트리만 보면 세션이 살아있는 것으로 보인다.
    """

    def __init__(
        self,
        registry: SessionRegistryInterface,
        store: SessionStoreInterface,
        ledger: InvalidationLedgerInterface,
        config: GuardConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._store = store
        self._ledger = ledger
        self._config = config
        self._clock = clock

    async def authorize(self, session_id: str | None, blob: SessionBlob | None) -> AuthenticatedSession:
        if not session_id:
            raise Unauthenticated("login required")
        if blob is None or not blob.user_id:
            await self._raise_for_missing_blob(session_id)

        user_id = blob.user_id

        # 인프라 장애(타임아웃 포함)는 GuardConfig 정책에 따라 통과(fail-open)시키지만,
        # "표식 있음"/"레코드 없음"/"만료" 같은 명시적 부정 결과는 정책과 무관하게 항상 거부한다.
        # 가용성을 위해 장애 시 인증을 느슨하게 하는 보안상의 트레이드오프이며,
        # SESSION_GUARD_FAIL_OPEN=false 로 끌 수 있다.
        marked = await self._lookup(
            "ledger_check",
            lambda: self._ledger.is_marked(session_id),
            session_id=session_id,
            user_id=user_id,
        )
        if marked is True:
            await self._reject(session_id, user_id, reason="ledger")

        record = await self._lookup(
            "registry_check",
            lambda: self._registry.find_by_session_id(session_id),
            session_id=session_id,
            user_id=user_id,
        )
        if isinstance(record, _Unavailable):
            return AuthenticatedSession(
                session_id=session_id,
                user_id=user_id,
                platform=blob.platform,
                blob=blob,
                record=None,
            )

        if record is None:
            await self._reject(session_id, user_id, reason="registry_miss")
        elif record.is_expired(self._clock()):
            await self._reject(session_id, user_id, reason="expired")
        elif record.user_id != user_id:
            await self._reject(session_id, user_id, reason="user_mismatch")

        return AuthenticatedSession(
            session_id=session_id,
            user_id=user_id,
            platform=record.platform,
            blob=blob,
            record=record,
        )

    async def is_live(self, session_id: str | None, blob: SessionBlob | None) -> bool:
        """예외 대신 bool 로 세션 생존 여부를 돌려준다. 로그인 중복 확인용."""

        try:
            await self.authorize(session_id, blob)
        except (Unauthenticated, SessionInvalidated):
            return False
        return True

    async def _raise_for_missing_blob(self, session_id: str) -> NoReturn:
        # 축출 직후에는 저장소 blob 이 이미 지워져 있다. 원장 표식이 남아있는 동안은
        # "다른 곳에서 로그아웃됨" 으로 구분해서 알려준다.
        marked = await self._lookup(
            "ledger_check",
            lambda: self._ledger.is_marked(session_id),
            session_id=session_id,
            user_id=None,
        )
        if marked is True:
            await self._reject(session_id, None, reason="ledger")
        raise Unauthenticated("login required")

    async def _lookup(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        *,
        session_id: str,
        user_id: str | None,
    ) -> T | _Unavailable:
        try:
            return await asyncio.wait_for(call(), timeout=self._config.lookup_timeout_seconds)
        except (InfraUnavailable, asyncio.TimeoutError) as exc:
            extra: dict[str, Any] = {
                "operation": operation,
                "session_id": short_session_id(session_id),
                "user_id": user_id,
            }
            if not self._config.fail_open_on_infra_error:
                logger.error("session check failed, rejecting request (fail-closed)", extra=extra)
                raise InfraUnavailable(
                    f"session check unavailable during {operation}",
                    operation=operation,
                    session_id=session_id,
                    user_id=user_id,
                ) from exc
            logger.warning(
                "session check failed, allowing request (fail-open): %r",
                exc,
                extra=extra,
            )
            return _UNAVAILABLE

    async def _reject(self, session_id: str, user_id: str | None, *, reason: str) -> NoReturn:
        # 로컬 세션(저장소 blob)을 즉시 파기한다. 실패해도 거부 결정은 그대로 유지한다.
        try:
            await self._store.delete(session_id)
        except InfraUnavailable:
            logger.warning(
                "failed to destroy local session after rejection",
                extra={
                    "operation": "guard_destroy",
                    "session_id": short_session_id(session_id),
                    "user_id": user_id,
                },
            )

        logger.info(
            "session rejected (%s)",
            reason,
            extra={
                "operation": "guard",
                "session_id": short_session_id(session_id),
                "user_id": user_id,
            },
        )
        raise SessionInvalidated(reason=reason)
