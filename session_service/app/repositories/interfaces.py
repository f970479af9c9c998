from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models.session_blob import SessionBlob
from ..models.session_record import SessionRecord


class SessionRegistryInterface(Protocol):
    """디바이스별 세션 레지스트리(user_sessions)가 따라야 할 최소한의 계약.

    Service 레이어는 이 인터페이스에만 의존하고, 구체 구현(Mongo 등)은 몰라도 된다.
    인프라 오류는 구현체가 InfraUnavailable 로 변환해 던진다.
    """

    async def replace_platform_slot(
        self, record: SessionRecord
    ) -> SessionRecord | None:  # pragma: no cover - Protocol
        """(user_id, platform) 슬롯을 record 로 원자적으로 교체하고, 이전 점유자를 반환한다."""
        ...

    async def find_by_session_id(
        self, session_id: str
    ) -> SessionRecord | None:  # pragma: no cover - Protocol
        ...

    async def find_by_user_id(
        self, user_id: str, now: datetime
    ) -> list[SessionRecord]:  # pragma: no cover - Protocol
        """만료되지 않은 세션을 최근 활동 순으로 반환한다."""
        ...

    async def list_session_ids(
        self, user_id: str, exclude_session_id: str | None = None
    ) -> list[str]:  # pragma: no cover - Protocol
        """만료 여부와 관계없이 유저의 모든 세션 ID 를 반환한다."""
        ...

    async def update_activity(
        self,
        session_id: str,
        last_activity_at: datetime,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:  # pragma: no cover - Protocol
        ...

    async def delete_by_session_id(
        self, session_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...

    async def delete_by_session_ids(
        self, session_ids: list[str]
    ) -> int:  # pragma: no cover - Protocol
        ...

    async def delete_expired(
        self, now: datetime
    ) -> int:  # pragma: no cover - Protocol
        """expires_at < now 인 레코드를 삭제하고 삭제 개수를 반환한다."""
        ...

    async def count_active_by_user_id(
        self, user_id: str, now: datetime
    ) -> int:  # pragma: no cover - Protocol
        ...


class SessionStoreInterface(Protocol):
    """요청마다 읽히는 휘발성 세션 저장소(Redis app:sess:<id>)의 계약."""

    async def save(
        self, session_id: str, blob: SessionBlob, ttl_seconds: int
    ) -> None:  # pragma: no cover - Protocol
        ...

    async def load(
        self, session_id: str
    ) -> SessionBlob | None:  # pragma: no cover - Protocol
        ...

    async def delete(
        self, session_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...

    async def expire(
        self, session_id: str, ttl_seconds: int
    ) -> bool:  # pragma: no cover - Protocol
        ...


class InvalidationLedgerInterface(Protocol):
    """"지금 파기 중인 세션" 표식(invalidated:<id>)을 짧은 TTL 로 보관하는 원장의 계약."""

    async def mark(
        self, session_id: str
    ) -> None:  # pragma: no cover - Protocol
        ...

    async def mark_many(
        self, session_ids: list[str]
    ) -> None:  # pragma: no cover - Protocol
        ...

    async def is_marked(
        self, session_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...
