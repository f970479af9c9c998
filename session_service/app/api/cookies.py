from __future__ import annotations

from starlette.responses import Response

from ..config import CookieConfig


def set_session_cookie(
    response: Response,
    config: CookieConfig,
    session_id: str,
    max_age: int,
) -> None:
    """세션 쿠키를 설정한다. max_age 는 플랫폼 TTL 정책에서 계산된 값과 같아야 한다."""

    response.set_cookie(
        key=config.name,
        value=session_id,
        max_age=max_age,
        path="/",
        domain=config.domain,
        secure=config.secure,
        httponly=config.httponly,
        samesite=config.samesite,  # type: ignore[arg-type]
    )


def clear_session_cookie(response: Response, config: CookieConfig) -> None:
    response.delete_cookie(
        key=config.name,
        path="/",
        domain=config.domain,
        secure=config.secure,
        httponly=config.httponly,
        samesite=config.samesite,  # type: ignore[arg-type]
    )
