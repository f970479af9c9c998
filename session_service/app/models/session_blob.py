from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .session_record import Platform


class SessionBlob(BaseModel):
    """Redis 세션 저장소(app:sess:<id>)에 JSON 으로 저장되는 세션 페이로드.

    user_id 가 없으면 인증되지 않은 세션으로 취급한다.
    claims 는 인증 계층(OAuth/비밀번호 로그인)이 넘겨준 값을 그대로 보관한다.
    """

    user_id: str | None = None
    platform: Platform = Platform.WEB
    claims: dict[str, Any] = Field(default_factory=dict)
    issued_at: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)
