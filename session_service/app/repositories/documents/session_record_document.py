from __future__ import annotations

from common.mongo.types import BaseDocument, MongoDateTime

from ...models.session_record import DeviceType, Platform, SessionRecord


class SessionRecordDocument(BaseDocument):
    """MongoDB user_sessions 컬렉션 도큐먼트 모델.

    enum 값은 문자열로 저장한다. expires_at 에는 TTL 인덱스가 걸려 있다.
    """

    session_id: str
    user_id: str
    platform: str
    device_name: str = "Unknown Device"
    device_type: str = DeviceType.UNKNOWN.value
    user_agent: str = ""
    ip_address: str = ""
    last_activity_at: MongoDateTime
    expires_at: MongoDateTime

    @classmethod
    def from_domain(cls, record: SessionRecord) -> "SessionRecordDocument":
        return cls(
            session_id=record.session_id,
            user_id=record.user_id,
            platform=record.platform.value,
            device_name=record.device_name,
            device_type=record.device_type.value,
            user_agent=record.user_agent,
            ip_address=record.ip_address,
            created_at=record.created_at,
            last_activity_at=record.last_activity_at,
            expires_at=record.expires_at,
        )

    def to_domain(self) -> SessionRecord:
        try:
            device_type = DeviceType(self.device_type)
        except ValueError:
            device_type = DeviceType.UNKNOWN
        return SessionRecord(
            session_id=self.session_id,
            user_id=self.user_id,
            platform=Platform(self.platform),
            device_name=self.device_name,
            device_type=device_type,
            user_agent=self.user_agent,
            ip_address=self.ip_address,
            created_at=self.created_at,
            last_activity_at=self.last_activity_at,
            expires_at=self.expires_at,
        )
