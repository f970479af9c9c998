from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from common.types.datetime import utcnow, whole_seconds_until

from ..config import SessionConfig
from ..exceptions import InfraUnavailable
from ..models.session_blob import SessionBlob
from ..models.session_record import (
    DeviceInfo,
    SessionRecord,
    SessionSummary,
    session_ref,
    short_session_id,
)
from ..repositories.interfaces import (
    InvalidationLedgerInterface,
    SessionRegistryInterface,
    SessionStoreInterface,
)


logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


@dataclass(slots=True)
class CreatedSession:
    """create_session 결과. evicted 에는 같은 플랫폼에서 축출된 이전 세션이 담긴다."""

    session_id: str
    record: SessionRecord
    max_age_seconds: int
    evicted: list[SessionRecord] = field(default_factory=list)

    @property
    def expires_at(self) -> datetime:
        return self.record.expires_at


class SessionLifecycleManager:
    """로그인/로그아웃 시 레지스트리·세션 저장소·무효화 원장을 함께 갱신하는 서비스.

    파기 순서는 항상 "원장 표식 → 저장소 삭제 → 레지스트리 삭제" 이고,
    생성 순서는 "레지스트리 교체 → 저장소 저장" 이다. 원장이 보호 대상 데이터보다
    항상 먼저 갱신되어야 진행 중인 요청이 파기 중인 세션을 통과시키지 않는다.
    """

    def __init__(
        self,
        registry: SessionRegistryInterface,
        store: SessionStoreInterface,
        ledger: InvalidationLedgerInterface,
        config: SessionConfig,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_session_id,
    ) -> None:
        self._registry = registry
        self._store = store
        self._ledger = ledger
        self._config = config
        self._clock = clock
        self._id_factory = id_factory

    async def create_session(
        self,
        user_id: str,
        device_info: DeviceInfo,
        claims: dict[str, Any] | None = None,
    ) -> CreatedSession:
        platform = device_info.platform
        now = self._clock()

        existing = await self._registry.find_by_user_id(user_id, now)
        same_platform = [record for record in existing if record.platform is platform]
        for record in same_platform:
            await self._invalidate(record.session_id)

        expires_at = now + self._config.ttl_for(platform)
        record = SessionRecord(
            session_id=self._id_factory(),
            user_id=user_id,
            platform=platform,
            device_name=device_info.name,
            device_type=device_info.type,
            user_agent=device_info.user_agent,
            ip_address=device_info.ip_address,
            created_at=now,
            last_activity_at=now,
            expires_at=expires_at,
        )

        previous = await self._registry.replace_platform_slot(record)

        evicted = list(same_platform)
        seen = {item.session_id for item in same_platform}
        for stale in same_platform:
            # 유니크 인덱스 도입 이전 데이터처럼 슬롯 밖에 남아있는 같은 플랫폼 레코드도 지운다.
            if previous is None or stale.session_id != previous.session_id:
                await self._registry.delete_by_session_id(stale.session_id)
        if previous is not None and previous.session_id not in seen:
            # 조회 이후 끼어든 동시 로그인의 세션이 교체된 경우
            await self._invalidate(previous.session_id)
            if not previous.is_expired(now):
                evicted.append(previous)

        max_age = self._seconds_until(expires_at)
        blob = SessionBlob(
            user_id=user_id,
            platform=platform,
            claims=dict(claims or {}),
            issued_at=now,
        )
        try:
            await self._store.save(record.session_id, blob, max_age)
        except InfraUnavailable:
            # 쿠키가 발급되지 않으므로 방금 만든 레지스트리 레코드는 고아가 된다.
            logger.error(
                "failed to store session blob, rolling back registry record",
                extra={
                    "operation": "create_session",
                    "session_id": short_session_id(record.session_id),
                    "user_id": user_id,
                },
            )
            await self._registry.delete_by_session_id(record.session_id)
            raise

        logger.info(
            "session created (evicted=%d)",
            len(evicted),
            extra={
                "operation": "create_session",
                "session_id": short_session_id(record.session_id),
                "user_id": user_id,
                "platform": platform.value,
            },
        )
        return CreatedSession(
            session_id=record.session_id,
            record=record,
            max_age_seconds=max_age,
            evicted=evicted,
        )

    async def delete_session(self, session_id: str) -> bool:
        """세션을 파기한다. 이미 삭제된 세션이면 False 를 반환한다 (멱등)."""

        await self._invalidate(session_id)
        deleted = await self._registry.delete_by_session_id(session_id)
        logger.info(
            "session deleted" if deleted else "session already deleted",
            extra={"operation": "delete_session", "session_id": short_session_id(session_id)},
        )
        return deleted

    async def delete_all_user_sessions(self, user_id: str) -> int:
        """전체 로그아웃."""

        session_ids = await self._registry.list_session_ids(user_id)
        return await self._evict_many(session_ids, user_id, "delete_all_user_sessions")

    async def delete_other_sessions(self, user_id: str, except_session_id: str) -> int:
        """현재 세션을 제외한 다른 기기 로그아웃."""

        session_ids = await self._registry.list_session_ids(
            user_id, exclude_session_id=except_session_id
        )
        return await self._evict_many(session_ids, user_id, "delete_other_sessions")

    async def find_by_session_id(self, session_id: str) -> SessionRecord | None:
        return await self._registry.find_by_session_id(session_id)

    async def find_by_user_id(self, user_id: str) -> list[SessionRecord]:
        return await self._registry.find_by_user_id(user_id, self._clock())

    async def find_session_by_ref(self, user_id: str, ref: str) -> SessionRecord | None:
        for record in await self.find_by_user_id(user_id):
            if session_ref(record.session_id) == ref:
                return record
        return None

    async def list_active_sessions(
        self, user_id: str, current_session_id: str | None
    ) -> list[SessionSummary]:
        records = await self.find_by_user_id(user_id)
        return [SessionSummary.from_record(record, current_session_id) for record in records]

    async def update_activity(
        self, session_id: str, expires_at: datetime | None = None
    ) -> SessionRecord | None:
        return await self._registry.update_activity(session_id, self._clock(), expires_at)

    async def refresh_session(self, record: SessionRecord) -> SessionRecord | None:
        """rolling expiry: 레지스트리 expires_at 을 먼저 늘리고, 저장소 TTL 을 그 다음에 늘린다.

        throttle 간격 안의 반복 요청은 쓰기 없이 record 를 그대로 돌려준다.
        """

        now = self._clock()
        elapsed = (now - record.last_activity_at).total_seconds()
        if elapsed < self._config.rolling_throttle_seconds:
            return record

        expires_at = now + self._config.ttl_for(record.platform)
        updated = await self._registry.update_activity(record.session_id, now, expires_at)
        if updated is None:
            return None
        await self._store.expire(record.session_id, self._seconds_until(expires_at))
        return updated

    async def count_user_sessions(self, user_id: str) -> int:
        return await self._registry.count_active_by_user_id(user_id, self._clock())

    async def clean_expired_sessions(self) -> int:
        return await self._registry.delete_expired(self._clock())

    def max_age_for(self, record: SessionRecord) -> int:
        return self._seconds_until(record.expires_at)

    async def _invalidate(self, session_id: str) -> None:
        await self._ledger.mark(session_id)
        await self._store.delete(session_id)

    async def _evict_many(self, session_ids: list[str], user_id: str, operation: str) -> int:
        if not session_ids:
            return 0

        await self._ledger.mark_many(session_ids)
        await asyncio.gather(*(self._store.delete(session_id) for session_id in session_ids))
        deleted = await self._registry.delete_by_session_ids(session_ids)

        logger.info(
            "sessions deleted",
            extra={"operation": operation, "user_id": user_id, "count": deleted},
        )
        return deleted

    def _seconds_until(self, expires_at: datetime) -> int:
        # 내림 처리로 저장소/쿠키 TTL 이 레지스트리 expires_at 을 넘지 않게 한다.
        return whole_seconds_until(expires_at, self._clock())
