from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.session_record import Platform, SessionSummary


class SessionCreateRequest(BaseModel):
    """인증 계층(Gateway)이 사용자를 식별한 뒤 보내는 세션 생성 요청."""

    user_id: str = Field(min_length=1)
    claims: dict[str, Any] = Field(default_factory=dict)
    force: bool = False


class SessionCreateResponse(BaseModel):
    session_id: str
    user_id: str
    platform: Platform
    device_name: str
    expires_at: UtcDateTime
    previous_session_terminated: bool = False
    terminated_device_name: str | None = None


class SessionSummaryResponse(BaseModel):
    session_ref: str
    device_name: str
    platform: Platform
    created_at: UtcDateTime
    last_activity_at: UtcDateTime
    expires_at: UtcDateTime
    is_current: bool

    @classmethod
    def from_domain(cls, summary: SessionSummary) -> "SessionSummaryResponse":
        return cls(**summary.model_dump())


class SessionListResponse(BaseModel):
    total: int
    items: list[SessionSummaryResponse]


class CurrentSessionResponse(BaseModel):
    logged_in: bool = True
    user_id: str
    platform: Platform
    claims: dict[str, Any] = Field(default_factory=dict)
    verified: bool
    expires_at: UtcDateTime | None = None


class SessionDeleteResponse(BaseModel):
    deleted: bool


class SessionBulkDeleteResponse(BaseModel):
    deleted_count: int


class SessionCountResponse(BaseModel):
    user_id: str
    count: int
