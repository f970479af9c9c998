from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from common.mongo.client import USER_SESSIONS_COLLECTION

from ..exceptions import InfraUnavailable
from ..models.session_record import SessionRecord, short_session_id
from .documents.session_record_document import SessionRecordDocument
from .interfaces import SessionRegistryInterface


logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(
    operation: str,
    *,
    session_id: str | None = None,
    user_id: str | None = None,
) -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        logger.warning(
            "session registry operation failed: %s",
            exc,
            extra={
                "operation": operation,
                "session_id": short_session_id(session_id),
                "user_id": user_id,
            },
        )
        raise InfraUnavailable(
            f"session registry unavailable during {operation}",
            operation=operation,
            session_id=session_id,
            user_id=user_id,
        ) from exc


class SessionRegistry(SessionRegistryInterface):
    """user_sessions 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: AsyncDatabase) -> None:
        self._db = database
        self._col = database[USER_SESSIONS_COLLECTION]

    @staticmethod
    def _from_document(doc: dict[str, Any], operation: str) -> SessionRecord | None:
        """도큐먼트를 도메인 모델로 변환한다. 손상된 도큐먼트는 경고 후 없는 것으로 취급한다."""

        try:
            return SessionRecordDocument.from_mongo(doc).to_domain()
        except (ValidationError, ValueError) as exc:
            session_id = doc.get("session_id")
            logger.warning(
                "discarding malformed session record: %s",
                exc,
                extra={
                    "operation": operation,
                    "session_id": short_session_id(session_id if isinstance(session_id, str) else None),
                    "user_id": doc.get("user_id"),
                },
            )
            return None

    async def replace_platform_slot(self, record: SessionRecord) -> SessionRecord | None:
        """(user_id, platform) 슬롯을 새 레코드로 교체한다.

        find-then-delete-then-insert 대신 uniq_user_id_platform 인덱스 위에서
        find_one_and_replace(upsert=True) 한 번으로 처리해, 같은 플랫폼의 동시 로그인이
        두 개의 살아있는 세션을 남기지 못하게 한다.

        두 upsert 가 동시에 "문서 없음"을 보고 insert 를 시도하면 한쪽이
        DuplicateKeyError 를 받는다. 이때 한 번 더 시도하면 먼저 들어간 문서와 매칭되어
        교체(=축출)된다.
        """

        payload = SessionRecordDocument.from_domain(record).to_mongo_record()
        query = {"user_id": record.user_id, "platform": record.platform.value}

        with _translate_errors(
            "replace_platform_slot",
            session_id=record.session_id,
            user_id=record.user_id,
        ):
            try:
                previous = await self._col.find_one_and_replace(
                    query,
                    payload,
                    upsert=True,
                    return_document=ReturnDocument.BEFORE,
                )
            except DuplicateKeyError:
                logger.info(
                    "concurrent login on the same platform detected, retrying replace",
                    extra={
                        "operation": "replace_platform_slot",
                        "user_id": record.user_id,
                        "platform": record.platform.value,
                    },
                )
                previous = await self._col.find_one_and_replace(
                    query,
                    payload,
                    upsert=True,
                    return_document=ReturnDocument.BEFORE,
                )

        if not previous:
            return None
        return self._from_document(previous, "replace_platform_slot")

    async def find_by_session_id(self, session_id: str) -> SessionRecord | None:
        with _translate_errors("find_by_session_id", session_id=session_id):
            doc = await self._col.find_one({"session_id": session_id})
        if not doc:
            return None
        return self._from_document(doc, "find_by_session_id")

    async def find_by_user_id(self, user_id: str, now: datetime) -> list[SessionRecord]:
        with _translate_errors("find_by_user_id", user_id=user_id):
            cursor = self._col.find(
                {"user_id": user_id, "expires_at": {"$gt": now}},
            ).sort("last_activity_at", DESCENDING)
            docs = await cursor.to_list(length=None)
        records = [self._from_document(doc, "find_by_user_id") for doc in docs]
        return [record for record in records if record is not None]

    async def list_session_ids(
        self, user_id: str, exclude_session_id: str | None = None
    ) -> list[str]:
        query: dict[str, Any] = {"user_id": user_id}
        if exclude_session_id is not None:
            query["session_id"] = {"$ne": exclude_session_id}

        with _translate_errors("list_session_ids", user_id=user_id):
            cursor = self._col.find(query, projection={"session_id": 1, "_id": 0})
            docs = await cursor.to_list(length=None)
        return [str(doc["session_id"]) for doc in docs]

    async def update_activity(
        self,
        session_id: str,
        last_activity_at: datetime,
        expires_at: datetime | None = None,
    ) -> SessionRecord | None:
        update: dict[str, datetime] = {"last_activity_at": last_activity_at}
        # expires_at 이 주어지면 rolling session 으로 만료 시각도 연장한다.
        if expires_at is not None:
            update["expires_at"] = expires_at

        with _translate_errors("update_activity", session_id=session_id):
            doc = await self._col.find_one_and_update(
                {"session_id": session_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            return None
        return self._from_document(doc, "update_activity")

    async def delete_by_session_id(self, session_id: str) -> bool:
        with _translate_errors("delete_by_session_id", session_id=session_id):
            result = await self._col.delete_one({"session_id": session_id})
        return result.deleted_count > 0

    async def delete_by_session_ids(self, session_ids: list[str]) -> int:
        if not session_ids:
            return 0
        with _translate_errors("delete_by_session_ids"):
            result = await self._col.delete_many({"session_id": {"$in": session_ids}})
        return result.deleted_count

    async def delete_expired(self, now: datetime) -> int:
        # 필터 기반 bulk delete 라 여러 인스턴스가 동시에 실행해도 안전하다.
        with _translate_errors("delete_expired"):
            result = await self._col.delete_many({"expires_at": {"$lt": now}})
        return result.deleted_count

    async def count_active_by_user_id(self, user_id: str, now: datetime) -> int:
        with _translate_errors("count_active_by_user_id", user_id=user_id):
            return await self._col.count_documents(
                {"user_id": user_id, "expires_at": {"$gt": now}},
            )
