from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import create_client
from common.redis.client import create_redis

from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .config import load_config
from .container import SessionContainer, build_container
from .middleware.session_middleware import SessionMiddleware
from .repositories.invalidation_ledger import RedisInvalidationLedger
from .repositories.session_registry import SessionRegistry
from .repositories.session_store import RedisSessionStore
from .scheduler.session_cleanup_scheduler import SessionCleanupScheduler


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:  # pragma: no cover - framework hook
    """앱 생명주기 관리.

    - 시작 시: MongoDB/Redis 연결, 세션 컨테이너 구성, 만료 세션 정리 스케줄러 시작
    - 종료 시: 스케줄러 정지, 직접 만든 클라이언트 정리
    """
    logger.info("session-service starting up")

    mongo_client = None
    redis_client = None
    container: SessionContainer | None = getattr(app.state, "container", None)

    if container is None:
        config = load_config()
        mongo_client, database = await create_client()
        try:
            redis_client = await create_redis()
        except Exception:
            await mongo_client.close()
            raise

        container = build_container(
            config,
            registry=SessionRegistry(database),
            store=RedisSessionStore(redis_client),
            ledger=RedisInvalidationLedger(
                redis_client,
                ttl_seconds=config.session.invalidation_ttl_seconds,
            ),
        )
        app.state.container = container
        logger.info("session container initialized")

    scheduler = SessionCleanupScheduler(
        container.lifecycle,
        interval_seconds=container.config.cleanup_interval_seconds,
    )
    scheduler.start()

    try:
        yield
    finally:
        logger.info("session-service shutting down")
        await scheduler.stop()
        if redis_client is not None:
            await redis_client.aclose()
        if mongo_client is not None:
            await mongo_client.close()
        logger.info("session-service stopped")


def create_app(container: SessionContainer | None = None) -> FastAPI:
    """FastAPI 앱 팩토리. container 를 넘기면 lifespan 에서 외부 연결을 만들지 않는다."""
    setup_logger(name="session-service")
    app = FastAPI(
        title="Concert Session Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    # 나중에 추가한 미들웨어가 바깥쪽에서 실행된다.
    app.add_middleware(SessionMiddleware)
    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    """Session Service 메인 엔트리 포인트."""
    import uvicorn

    port = int(os.getenv("SESSION_SERVICE_PORT", "8003"))
    uvicorn.run(
        "session_service.app.main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
