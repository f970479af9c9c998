from __future__ import annotations

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..exceptions import InfraUnavailable
from ..models.session_record import short_session_id
from .interfaces import InvalidationLedgerInterface


logger = logging.getLogger(__name__)


INVALIDATION_KEY_PREFIX = "invalidated:"


class RedisInvalidationLedger(InvalidationLedgerInterface):
    """파기 중인 세션 ID 를 짧은 TTL 로 기록하는 Redis 원장.

    표식은 한 번 쓰고 여러 번 읽으며, TTL 이 지나면 스스로 사라진다.
    TTL 이후에는 레지스트리 조회가 같은 세션을 거부한다.
    """

    def __init__(
        self,
        client: aioredis.Redis,
        *,
        ttl_seconds: int,
        key_prefix: str = INVALIDATION_KEY_PREFIX,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._client = client
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def _unavailable(self, operation: str, session_id: str | None, exc: Exception) -> InfraUnavailable:
        logger.warning(
            "invalidation ledger operation failed: %s",
            exc,
            extra={"operation": operation, "session_id": short_session_id(session_id)},
        )
        return InfraUnavailable(
            f"invalidation ledger unavailable during {operation}",
            operation=operation,
            session_id=session_id,
        )

    async def mark(self, session_id: str) -> None:
        try:
            await self._client.set(self._key(session_id), "1", ex=self._ttl)
        except RedisError as exc:
            raise self._unavailable("ledger_mark", session_id, exc) from exc

    async def mark_many(self, session_ids: list[str]) -> None:
        if not session_ids:
            return
        try:
            pipe = self._client.pipeline(transaction=False)
            for session_id in session_ids:
                pipe.set(self._key(session_id), "1", ex=self._ttl)
            await pipe.execute()
        except RedisError as exc:
            raise self._unavailable("ledger_mark_many", None, exc) from exc

    async def is_marked(self, session_id: str) -> bool:
        try:
            return bool(await self._client.exists(self._key(session_id)))
        except RedisError as exc:
            raise self._unavailable("ledger_check", session_id, exc) from exc
