from __future__ import annotations

import asyncio
import logging

from ..services.session_lifecycle_service import SessionLifecycleManager


logger = logging.getLogger(__name__)


DEFAULT_CLEANUP_INTERVAL_SECONDS = 10.0 * 60.0
STOP_TIMEOUT_SECONDS = 10.0


class SessionCleanupScheduler:
    """만료된 user_sessions 레코드를 주기적으로 정리하는 백그라운드 작업.

    MongoDB TTL 인덱스가 1차 만료 경로이고, 이 스케줄러는 TTL 모니터의 지연을
    보완하는 보조 수단이다. 삭제는 필터 기반 bulk delete 라서 여러 인스턴스가
    조율 없이 동시에 실행해도 안전하다.
    """

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        *,
        interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._lifecycle = lifecycle
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """스케줄러 태스크를 시작한다. FastAPI lifespan 에서 호출된다."""

        if self.is_running:
            logger.warning("session cleanup scheduler is already running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(self._stop_event), name="session-cleanup-scheduler")
        logger.info(
            "session cleanup scheduler launched (interval=%.0f seconds)",
            self._interval,
        )

    async def stop(self) -> None:
        """스케줄러 태스크를 정지한다. FastAPI lifespan 종료 시 호출된다."""

        task, stop_event = self._task, self._stop_event
        self._task = None
        self._stop_event = None
        if task is None or stop_event is None:
            return

        stop_event.set()
        try:
            await asyncio.wait_for(task, timeout=STOP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("session cleanup scheduler did not stop in time, cancelled")

        logger.info("session cleanup scheduler stopped by shutdown")

    async def run_once(self) -> int:
        """만료된 세션을 한 번 정리하고 삭제 개수를 반환한다."""

        deleted = await self._lifecycle.clean_expired_sessions()
        if deleted > 0:
            logger.info(
                "expired sessions cleaned",
                extra={"operation": "clean_expired_sessions", "count": deleted},
            )
        else:
            logger.debug("session cleanup completed - no expired sessions found")
        return deleted

    async def trigger_cleanup(self) -> int:
        """수동 정리 (관리/테스트용)."""

        logger.info("manual session cleanup triggered")
        return await self.run_once()

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        try:
            # 최초 실행
            await self._run_safely("initial run")

            # 주기적 실행
            while not await self._wait_for_stop(stop_event):
                await self._run_safely("scheduled run")
        finally:
            logger.info("session cleanup scheduler loop exited")

    async def _run_safely(self, label: str) -> None:
        try:
            await self.run_once()
        except Exception:  # noqa: BLE001
            logger.exception("session cleanup failed (%s)", label)

    async def _wait_for_stop(self, stop_event: asyncio.Event) -> bool:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
        except asyncio.TimeoutError:
            return False
        return True
