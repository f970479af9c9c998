from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from common.types.datetime import utcnow

from .config import AppConfig
from .repositories.interfaces import (
    InvalidationLedgerInterface,
    SessionRegistryInterface,
    SessionStoreInterface,
)
from .services.session_guard import SessionGuard
from .services.session_lifecycle_service import SessionLifecycleManager


@dataclass(slots=True)
class SessionContainer:
    """프로세스 시작 시 한 번 만들어 app.state 에 보관하는 세션 구성요소 묶음.

    라우터/미들웨어는 전역 변수가 아니라 request.app.state.container 를 통해 접근한다.
    """

    config: AppConfig
    store: SessionStoreInterface
    lifecycle: SessionLifecycleManager
    guard: SessionGuard


def build_container(
    config: AppConfig,
    *,
    registry: SessionRegistryInterface,
    store: SessionStoreInterface,
    ledger: InvalidationLedgerInterface,
    clock: Callable[[], datetime] = utcnow,
) -> SessionContainer:
    lifecycle = SessionLifecycleManager(
        registry,
        store,
        ledger,
        config.session,
        clock=clock,
    )
    guard = SessionGuard(registry, store, ledger, config.guard, clock=clock)
    return SessionContainer(
        config=config,
        store=store,
        lifecycle=lifecycle,
        guard=guard,
    )
