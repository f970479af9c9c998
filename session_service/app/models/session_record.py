from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class Platform(str, Enum):
    """세션 개수 제한의 기준이 되는 클라이언트 분류 (웹 1개 + 앱 1개)."""

    WEB = "web"
    APP = "app"


class DeviceType(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    WEB = "web"
    UNKNOWN = "unknown"


class DeviceInfo(BaseModel):
    """요청 헤더에서 추출한 디바이스 정보."""

    platform: Platform = Platform.WEB
    name: str = "Unknown Device"
    type: DeviceType = DeviceType.UNKNOWN
    user_agent: str = ""
    ip_address: str = ""


class SessionRecord(BaseModel):
    """user_sessions 컬렉션의 디바이스별 세션 도메인 모델.

    - session_id 는 쿠키의 세션 ID 와 같고, 레지스트리의 기본 조회 키다.
    - (user_id, platform) 조합은 만료되지 않은 레코드 기준으로 유일해야 한다.
    - expires_at 은 세션 저장소(Redis) TTL 보다 항상 같거나 늦어야 한다.
    """

    session_id: str
    user_id: str
    platform: Platform
    device_name: str = "Unknown Device"
    device_type: DeviceType = DeviceType.UNKNOWN
    user_agent: str = ""
    ip_address: str = ""
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime

    @field_validator("session_id", "user_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _validate_expiry(self) -> "SessionRecord":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be greater than created_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SessionSummary(BaseModel):
    """"내 활성 세션 목록" 응답용 읽기 모델.

    다른 기기의 원본 세션 ID 를 노출하지 않도록 session_ref(해시 일부)만 제공한다.
    """

    session_ref: str
    device_name: str
    platform: Platform
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime
    is_current: bool = Field(default=False)

    @classmethod
    def from_record(cls, record: SessionRecord, current_session_id: str | None) -> "SessionSummary":
        return cls(
            session_ref=session_ref(record.session_id),
            device_name=record.device_name,
            platform=record.platform,
            created_at=record.created_at,
            last_activity_at=record.last_activity_at,
            expires_at=record.expires_at,
            is_current=record.session_id == current_session_id,
        )


def session_ref(session_id: str) -> str:
    """세션 ID 로부터 외부 노출용 불투명 식별자를 만든다."""
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:16]


def short_session_id(session_id: str | None) -> str:
    """로그용으로 세션 ID 앞부분만 남긴다."""
    if not session_id:
        return "-"
    return session_id[:8]
