from __future__ import annotations

import logging

from pymongo import ASCENDING, AsyncMongoClient, IndexModel
from pymongo.asynchronous.database import AsyncDatabase

from .config import MongoSettings, load_mongo_settings


logger = logging.getLogger(__name__)


USER_SESSIONS_COLLECTION = "user_sessions"


async def create_client(
    settings: MongoSettings | None = None,
) -> tuple[AsyncMongoClient, AsyncDatabase]:
    """AsyncMongoClient 와 기본 Database 를 생성해 반환한다.

    - settings 가 없으면 환경변수(MONGO_URI 등)에서 읽는다.
    - ping 으로 연결을 검증한다.
    - URI 에 기본 데이터베이스가 포함되어 있지 않으면 에러를 발생시킨다.
    - user_sessions 컬렉션에 필요한 인덱스를 생성한다.

    전역 싱글톤을 두지 않는다. 호출자(애플리케이션 lifespan)가 결과를 보관하고
    종료 시 ``client.close()`` 를 호출해야 한다.
    """

    settings = settings or load_mongo_settings()
    timeout_ms = settings.timeout_ms
    client: AsyncMongoClient = AsyncMongoClient(
        settings.uri,
        tz_aware=True,
        serverSelectionTimeoutMS=timeout_ms,
        connectTimeoutMS=timeout_ms,
        socketTimeoutMS=timeout_ms,
    )

    try:
        await client.admin.command("ping")
    except Exception as exc:  # noqa: BLE001
        await client.close()
        raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

    # 사용할 DB 이름 결정: MONGO_DB_NAME 우선, 없으면 URI의 기본 DB 사용
    db_name = settings.db_name
    try:
        if db_name:
            db = client[db_name]
        else:
            db = client.get_default_database()
    except Exception as exc:  # noqa: BLE001
        await client.close()
        raise RuntimeError(
            "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
        ) from exc

    try:
        await ensure_indexes(db)
    except Exception as exc:  # noqa: BLE001
        # 인덱스 생성 실패는 치명적 오류로 간주한다.
        logger.error("failed to ensure MongoDB indexes: %s", exc)
        await client.close()
        raise

    logger.info("MongoDB connected and indexes ensured (db=%s)", db.name)
    return client, db


async def ensure_indexes(db: AsyncDatabase) -> None:
    """user_sessions 컬렉션의 필수 인덱스를 생성한다.

    중복 생성해도 MongoDB 가 처리하므로 idempotent 하다.
    """

    sessions = db[USER_SESSIONS_COLLECTION]
    await sessions.create_indexes(
        [
            IndexModel(
                [("session_id", ASCENDING)],
                name="uniq_session_id",
                unique=True,
            ),
            IndexModel([("user_id", ASCENDING)], name="idx_user_id"),
            # expires_at 이 지나면 MongoDB 가 문서를 삭제한다 (1차 만료 경로).
            IndexModel(
                [("expires_at", ASCENDING)],
                name="ttl_expires_at",
                expireAfterSeconds=0,
            ),
            IndexModel(
                [("user_id", ASCENDING), ("session_id", ASCENDING)],
                name="idx_user_id_session_id",
            ),
            # 유저당 플랫폼별 세션 1개를 저장소 레벨에서 보장한다.
            IndexModel(
                [("user_id", ASCENDING), ("platform", ASCENDING)],
                name="uniq_user_id_platform",
                unique=True,
            ),
        ]
    )
