from __future__ import annotations

import logging

import redis.asyncio as aioredis

from .config import get_redis_socket_timeout, get_redis_url


logger = logging.getLogger(__name__)


async def create_redis() -> aioredis.Redis:
    """세션 저장소/무효화 원장에서 공유할 비동기 Redis 클라이언트를 생성한다.

    - 명시적인 socket 타임아웃을 설정해 요청 경로가 무한정 블록되지 않게 한다.
    - ping 으로 연결을 검증하고, 실패하면 RuntimeError 를 발생시킨다.
    """

    url = get_redis_url()
    timeout = get_redis_socket_timeout()
    client = aioredis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )

    try:
        await client.ping()
    except Exception as exc:  # noqa: BLE001
        await client.aclose()
        raise RuntimeError(f"failed to connect to Redis: {exc}") from exc

    logger.info("Redis connected (socket_timeout=%.1fs)", timeout)
    return client
