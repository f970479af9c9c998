from __future__ import annotations

import logging

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from ..exceptions import InfraUnavailable
from ..models.session_blob import SessionBlob
from ..models.session_record import short_session_id
from .interfaces import SessionStoreInterface


logger = logging.getLogger(__name__)


SESSION_KEY_PREFIX = "app:sess:"


class RedisSessionStore(SessionStoreInterface):
    """Redis 에 세션 blob 을 JSON 으로 저장하는 세션 저장소.

    TTL 은 레지스트리와 별개로 관리되며, 호출자가 레지스트리 expires_at 이하로 맞춘다.
    """

    def __init__(self, client: aioredis.Redis, *, key_prefix: str = SESSION_KEY_PREFIX) -> None:
        self._client = client
        self._prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    def _unavailable(self, operation: str, session_id: str, exc: Exception) -> InfraUnavailable:
        logger.warning(
            "session store operation failed: %s",
            exc,
            extra={"operation": operation, "session_id": short_session_id(session_id)},
        )
        return InfraUnavailable(
            f"session store unavailable during {operation}",
            operation=operation,
            session_id=session_id,
        )

    async def save(self, session_id: str, blob: SessionBlob, ttl_seconds: int) -> None:
        # Redis 는 0 이하 TTL 을 거부하므로, 이미 만료된 세션은 저장 대신 삭제한다.
        if ttl_seconds <= 0:
            await self.delete(session_id)
            return
        try:
            await self._client.set(self._key(session_id), blob.model_dump_json(), ex=ttl_seconds)
        except RedisError as exc:
            raise self._unavailable("store_save", session_id, exc) from exc

    async def load(self, session_id: str) -> SessionBlob | None:
        try:
            raw = await self._client.get(self._key(session_id))
        except RedisError as exc:
            raise self._unavailable("store_load", session_id, exc) from exc

        if raw is None:
            return None
        try:
            return SessionBlob.model_validate_json(raw)
        except ValidationError:
            logger.warning(
                "discarding malformed session blob",
                extra={"operation": "store_load", "session_id": short_session_id(session_id)},
            )
            return None

    async def delete(self, session_id: str) -> bool:
        try:
            deleted = await self._client.delete(self._key(session_id))
        except RedisError as exc:
            raise self._unavailable("store_delete", session_id, exc) from exc
        return bool(deleted)

    async def expire(self, session_id: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return await self.delete(session_id)
        try:
            updated = await self._client.expire(self._key(session_id), ttl_seconds)
        except RedisError as exc:
            raise self._unavailable("store_expire", session_id, exc) from exc
        return bool(updated)
