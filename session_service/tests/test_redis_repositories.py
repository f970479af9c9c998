from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from session_service.app.exceptions import InfraUnavailable
from session_service.app.models.session_blob import SessionBlob
from session_service.app.models.session_record import Platform
from session_service.app.repositories.invalidation_ledger import RedisInvalidationLedger
from session_service.app.repositories.session_store import RedisSessionStore


class FakeRedisPipeline:
    def __init__(self, client: "FakeRedisClient") -> None:
        self._client = client
        self._ops: list[tuple[str, str, int | None]] = []

    def set(self, key: str, value: str, ex: int | None = None) -> None:
        self._ops.append((key, value, ex))

    async def execute(self) -> list[bool]:
        results = []
        for key, value, ex in self._ops:
            results.append(await self._client.set(key, value, ex=ex))
        return results


class FakeRedisClient:
    """redis.asyncio.Redis 중 저장소/원장이 쓰는 명령만 흉내낸다. TTL 은 값만 기록한다."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("connection refused")

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self._check()
        self.values[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self.values.get(key)

    async def delete(self, key: str) -> int:
        self._check()
        self.ttls.pop(key, None)
        return 1 if self.values.pop(key, None) is not None else 0

    async def expire(self, key: str, seconds: int) -> bool:
        self._check()
        if key not in self.values:
            return False
        self.ttls[key] = seconds
        return True

    async def exists(self, key: str) -> int:
        self._check()
        return 1 if key in self.values else 0

    def pipeline(self, transaction: bool = True) -> FakeRedisPipeline:
        self._check()
        return FakeRedisPipeline(self)


@pytest.mark.asyncio
async def test_store_round_trips_blob_under_prefixed_key() -> None:
    client = FakeRedisClient()
    store = RedisSessionStore(client)  # type: ignore[arg-type]
    blob = SessionBlob(user_id="user-1", platform=Platform.APP, claims={"role": "fan"})

    await store.save("sid-1", blob, 120)

    assert client.ttls["app:sess:sid-1"] == 120
    loaded = await store.load("sid-1")
    assert loaded is not None
    assert loaded.user_id == "user-1"
    assert loaded.platform is Platform.APP
    assert await store.expire("sid-1", 60) is True
    assert client.ttls["app:sess:sid-1"] == 60
    assert await store.delete("sid-1") is True
    assert await store.delete("sid-1") is False


@pytest.mark.asyncio
async def test_store_deletes_instead_of_saving_expired_blob() -> None:
    client = FakeRedisClient()
    store = RedisSessionStore(client)  # type: ignore[arg-type]
    await store.save("sid-1", SessionBlob(user_id="user-1"), 60)

    await store.save("sid-1", SessionBlob(user_id="user-1"), 0)

    assert "app:sess:sid-1" not in client.values


@pytest.mark.asyncio
async def test_store_discards_malformed_blob() -> None:
    client = FakeRedisClient()
    client.values["app:sess:sid-1"] = "not-json"
    store = RedisSessionStore(client)  # type: ignore[arg-type]

    assert await store.load("sid-1") is None


@pytest.mark.asyncio
async def test_store_translates_redis_errors() -> None:
    client = FakeRedisClient()
    client.down = True
    store = RedisSessionStore(client)  # type: ignore[arg-type]

    with pytest.raises(InfraUnavailable) as exc_info:
        await store.load("sid-1")
    assert exc_info.value.operation == "store_load"


@pytest.mark.asyncio
async def test_ledger_marks_with_ttl() -> None:
    client = FakeRedisClient()
    ledger = RedisInvalidationLedger(client, ttl_seconds=30)  # type: ignore[arg-type]

    await ledger.mark("sid-1")
    await ledger.mark_many(["sid-2", "sid-3"])

    assert client.ttls == {"invalidated:sid-1": 30, "invalidated:sid-2": 30, "invalidated:sid-3": 30}
    assert await ledger.is_marked("sid-2") is True
    assert await ledger.is_marked("sid-9") is False


@pytest.mark.asyncio
async def test_ledger_translates_redis_errors() -> None:
    client = FakeRedisClient()
    client.down = True
    ledger = RedisInvalidationLedger(client, ttl_seconds=30)  # type: ignore[arg-type]

    with pytest.raises(InfraUnavailable):
        await ledger.is_marked("sid-1")
    with pytest.raises(InfraUnavailable):
        await ledger.mark_many(["sid-1"])


def test_ledger_requires_positive_ttl() -> None:
    with pytest.raises(ValueError):
        RedisInvalidationLedger(FakeRedisClient(), ttl_seconds=0)  # type: ignore[arg-type]
