from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta

from .models.session_record import Platform


SESSION_MAX_AGE_WEB = "SESSION_MAX_AGE_WEB"
SESSION_MAX_AGE_APP = "SESSION_MAX_AGE_APP"
SESSION_INVALIDATION_TTL_SECONDS = "SESSION_INVALIDATION_TTL_SECONDS"
SESSION_GUARD_TIMEOUT_SECONDS = "SESSION_GUARD_TIMEOUT_SECONDS"
SESSION_GUARD_FAIL_OPEN = "SESSION_GUARD_FAIL_OPEN"
SESSION_ROLLING = "SESSION_ROLLING"
SESSION_ROLLING_THROTTLE_SECONDS = "SESSION_ROLLING_THROTTLE_SECONDS"
SESSION_CLEANUP_INTERVAL_SECONDS = "SESSION_CLEANUP_INTERVAL_SECONDS"
SESSION_COOKIE_NAME = "SESSION_COOKIE_NAME"
SESSION_COOKIE_SECURE = "SESSION_COOKIE_SECURE"
SESSION_COOKIE_SAMESITE = "SESSION_COOKIE_SAMESITE"
SESSION_COOKIE_DOMAIN = "SESSION_COOKIE_DOMAIN"
APP_ENV = "APP_ENV"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_SAMESITE_VALUES = {"lax", "strict", "none"}


@dataclass(slots=True)
class SessionConfig:
    """플랫폼별 세션 수명 정책.

    - web: 기본 1일, app: 기본 30일 (초 단위 환경변수로 조정)
    - registry 만료, store TTL, 쿠키 max_age 가 모두 ttl_for() 하나를 기준으로 계산된다.
    """

    web_max_age_seconds: int = 24 * 60 * 60
    app_max_age_seconds: int = 30 * 24 * 60 * 60
    invalidation_ttl_seconds: int = 30
    rolling: bool = False
    rolling_throttle_seconds: int = 60

    def ttl_for(self, platform: Platform | str) -> timedelta:
        if Platform(platform) is Platform.APP:
            return timedelta(seconds=self.app_max_age_seconds)
        return timedelta(seconds=self.web_max_age_seconds)


@dataclass(slots=True)
class GuardConfig:
    """SessionGuard 의 조회 타임아웃과 인프라 장애 시 정책.

    fail_open_on_infra_error=True 이면 Redis/MongoDB 장애(타임아웃 포함) 시
    요청을 통과시킨다. 명시적인 무효화/미존재 결과는 이 값과 무관하게 항상 거부한다.
    """

    lookup_timeout_seconds: float = 0.5
    fail_open_on_infra_error: bool = True


@dataclass(slots=True)
class CookieConfig:
    name: str = "sid"
    secure: bool = False
    samesite: str = "lax"
    domain: str | None = None
    httponly: bool = True


@dataclass(slots=True)
class AppConfig:
    """session-service 전체 설정 루트."""

    session: SessionConfig = field(default_factory=SessionConfig)
    guard: GuardConfig = field(default_factory=GuardConfig)
    cookie: CookieConfig = field(default_factory=CookieConfig)
    cleanup_interval_seconds: float = 600.0
    environment: str = "development"


def _read_int(name: str, default: int, *, minimum: int = 1, maximum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(f"invalid {name}: {raw!r}") from exc
    if value < minimum or (maximum is not None and value > maximum):
        raise RuntimeError(f"{name} out of range: {value}")
    return value


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:  # noqa: TRY003
        raise RuntimeError(f"invalid {name}: {raw!r}") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive: {value}")
    return value


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise RuntimeError(f"invalid {name}: {raw!r}")


def load_session_config() -> SessionConfig:
    return SessionConfig(
        web_max_age_seconds=_read_int(SESSION_MAX_AGE_WEB, 24 * 60 * 60),
        app_max_age_seconds=_read_int(SESSION_MAX_AGE_APP, 30 * 24 * 60 * 60),
        invalidation_ttl_seconds=_read_int(
            SESSION_INVALIDATION_TTL_SECONDS, 30, minimum=5, maximum=300
        ),
        rolling=_read_bool(SESSION_ROLLING, False),
        rolling_throttle_seconds=_read_int(SESSION_ROLLING_THROTTLE_SECONDS, 60),
    )


def load_guard_config() -> GuardConfig:
    return GuardConfig(
        lookup_timeout_seconds=_read_float(SESSION_GUARD_TIMEOUT_SECONDS, 0.5),
        fail_open_on_infra_error=_read_bool(SESSION_GUARD_FAIL_OPEN, True),
    )


def load_cookie_config(environment: str) -> CookieConfig:
    samesite = os.getenv(SESSION_COOKIE_SAMESITE, "lax").strip().lower()
    if samesite not in _SAMESITE_VALUES:
        raise RuntimeError(f"invalid {SESSION_COOKIE_SAMESITE}: {samesite!r}")

    secure = _read_bool(SESSION_COOKIE_SECURE, environment == "production")
    # SameSite=None 쿠키는 브라우저가 Secure 속성 없이는 거부한다.
    if samesite == "none" and not secure:
        raise RuntimeError(
            f"{SESSION_COOKIE_SAMESITE}=none requires a secure cookie",
        )

    domain = os.getenv(SESSION_COOKIE_DOMAIN, "").strip() or None
    name = os.getenv(SESSION_COOKIE_NAME, "sid").strip() or "sid"
    return CookieConfig(name=name, secure=secure, samesite=samesite, domain=domain)


def load_config() -> AppConfig:
    """session-service 설정을 환경변수에서 로드하여 AppConfig 로 반환한다."""

    environment = os.getenv(APP_ENV, "development").strip().lower() or "development"
    return AppConfig(
        session=load_session_config(),
        guard=load_guard_config(),
        cookie=load_cookie_config(environment),
        cleanup_interval_seconds=_read_float(SESSION_CLEANUP_INTERVAL_SECONDS, 600.0),
        environment=environment,
    )
