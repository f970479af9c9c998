from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer


def utcnow() -> datetime:
    """tz-aware UTC 현재 시각. 서비스 전반의 기본 clock 으로 사용한다."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """naive datetime 은 UTC 로 간주하고, aware datetime 은 UTC 로 변환한다."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_seconds_until(target: datetime, now: datetime) -> int:
    """now 부터 target 까지 남은 시간을 초 단위로 내림한다. 이미 지났으면 0."""
    return max(0, int((as_utc(target) - as_utc(now)).total_seconds()))


# API 응답에서는 항상 UTC ISO8601(+00:00) 문자열로 내보낸다.
UtcDateTime = Annotated[
    datetime,
    PlainSerializer(
        lambda value: as_utc(value).isoformat(),
        return_type=str,
        when_used="json",
    ),
]
