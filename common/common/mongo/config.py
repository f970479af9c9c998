from __future__ import annotations

import os
from dataclasses import dataclass


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"
MONGO_TIMEOUT_MS_ENV = "MONGO_TIMEOUT_MS"

DEFAULT_MONGO_TIMEOUT_MS = 2000


@dataclass(frozen=True, slots=True)
class MongoSettings:
    """user_sessions 레지스트리 연결 설정.

    db_name 이 None 이면 URI 에 포함된 기본 DB 를 사용한다.
    timeout_ms 는 서버 선택/연결/소켓 타임아웃에 모두 적용된다.
    """

    uri: str
    db_name: str | None = None
    timeout_ms: int = DEFAULT_MONGO_TIMEOUT_MS


def load_mongo_settings() -> MongoSettings:
    """환경변수에서 MongoSettings 를 읽는다. MONGO_URI 가 없으면 즉시 실패한다."""

    uri = os.getenv(MONGO_URI_ENV)
    if not uri:
        raise RuntimeError(
            f"{MONGO_URI_ENV} environment variable is required for MongoDB",
        )

    db_name = os.getenv(MONGO_DB_NAME_ENV, "").strip() or None

    raw_timeout = os.getenv(MONGO_TIMEOUT_MS_ENV, "").strip()
    timeout_ms = DEFAULT_MONGO_TIMEOUT_MS
    if raw_timeout:
        try:
            timeout_ms = int(raw_timeout)
        except ValueError as exc:
            raise RuntimeError(f"invalid {MONGO_TIMEOUT_MS_ENV}: {raw_timeout!r}") from exc
        if timeout_ms <= 0:
            raise RuntimeError(f"{MONGO_TIMEOUT_MS_ENV} must be positive: {timeout_ms}")

    return MongoSettings(uri=uri, db_name=db_name, timeout_ms=timeout_ms)
