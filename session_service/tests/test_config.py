from __future__ import annotations

from datetime import timedelta

import pytest

from session_service.app.config import SessionConfig, load_config
from session_service.app.models.session_record import Platform


_ENV_NAMES = (
    "APP_ENV",
    "SESSION_MAX_AGE_WEB",
    "SESSION_MAX_AGE_APP",
    "SESSION_INVALIDATION_TTL_SECONDS",
    "SESSION_GUARD_TIMEOUT_SECONDS",
    "SESSION_GUARD_FAIL_OPEN",
    "SESSION_ROLLING",
    "SESSION_COOKIE_SECURE",
    "SESSION_COOKIE_SAMESITE",
    "SESSION_COOKIE_DOMAIN",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    config = load_config()

    assert config.session.ttl_for(Platform.WEB) == timedelta(days=1)
    assert config.session.ttl_for("app") == timedelta(days=30)
    assert config.session.invalidation_ttl_seconds == 30
    assert config.guard.fail_open_on_infra_error is True
    assert config.cookie.name == "sid"
    assert config.cookie.secure is False
    assert config.cookie.httponly is True


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SESSION_MAX_AGE_WEB", "3600")
    monkeypatch.setenv("SESSION_GUARD_FAIL_OPEN", "false")
    monkeypatch.setenv("SESSION_ROLLING", "yes")
    monkeypatch.setenv("SESSION_COOKIE_DOMAIN", ".concert.example")

    config = load_config()

    assert config.session.web_max_age_seconds == 3600
    assert config.session.rolling is True
    assert config.guard.fail_open_on_infra_error is False
    assert config.cookie.domain == ".concert.example"


def test_production_defaults_to_secure_cookie(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")

    assert load_config().cookie.secure is True


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("SESSION_MAX_AGE_WEB", "abc"),
        ("SESSION_INVALIDATION_TTL_SECONDS", "1"),
        ("SESSION_INVALIDATION_TTL_SECONDS", "3600"),
        ("SESSION_GUARD_FAIL_OPEN", "maybe"),
        ("SESSION_COOKIE_SAMESITE", "none"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError):
        load_config()


def test_ttl_for_unknown_platform_raises() -> None:
    with pytest.raises(ValueError):
        SessionConfig().ttl_for("desktop")
