from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated, Self

from common.types.datetime import as_utc


# tz_aware 클라이언트가 아니어도 항상 UTC aware datetime 으로 읽히게 한다.
MongoDateTime = Annotated[datetime, BeforeValidator(as_utc)]


class BaseDocument(BaseModel):
    """MongoDB 도큐먼트용 공통 베이스 모델.

    - _id 는 Mongo 가 생성하도록 비워두고, 읽을 때만 채워진다.
    - 알 수 없는 필드는 무시해 스키마가 바뀌어도 구버전 도큐먼트를 읽을 수 있다.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        extra="ignore",
    )

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    created_at: MongoDateTime

    @classmethod
    def from_mongo(cls, raw: Mapping[str, Any]) -> Self:
        return cls.model_validate(dict(raw))

    def to_mongo_record(self) -> dict[str, Any]:
        """저장용 dict. _id=None 은 빼서 replace/insert 가 기존 _id 를 건드리지 않게 한다."""

        return self.model_dump(by_alias=True, exclude_none=True)
