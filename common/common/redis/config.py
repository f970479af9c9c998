from __future__ import annotations

import os


REDIS_URL_ENV = "REDIS_URL"
REDIS_SOCKET_TIMEOUT_ENV = "REDIS_SOCKET_TIMEOUT_SECONDS"

DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS = 2.0


def get_redis_url() -> str:
    """Redis 연결 URL 을 반환한다. 설정되지 않으면 즉시 실패한다."""

    value = os.getenv(REDIS_URL_ENV)
    if not value:
        raise RuntimeError(
            f"{REDIS_URL_ENV} environment variable is required for Redis",
        )
    return value


def get_redis_socket_timeout() -> float:
    raw = os.getenv(REDIS_SOCKET_TIMEOUT_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(
            f"invalid {REDIS_SOCKET_TIMEOUT_ENV}: {raw!r}",
        ) from exc
    if value <= 0:
        raise RuntimeError(f"{REDIS_SOCKET_TIMEOUT_ENV} must be positive: {value}")
    return value
