from __future__ import annotations

import asyncio

import pytest

from fakes import APP_DEVICE, WEB_DEVICE, Fixture
from session_service.app.config import SessionConfig
from session_service.app.exceptions import InfraUnavailable
from session_service.app.models.session_record import Platform, session_ref


@pytest.mark.asyncio
async def test_create_session_writes_registry_then_store(fx: Fixture) -> None:
    created = await fx.lifecycle.create_session("user-1", WEB_DEVICE, {"role": "fan"})

    assert created.record.platform is Platform.WEB
    assert created.evicted == []
    assert fx.events == [
        f"registry.replace:{created.session_id}",
        f"store.save:{created.session_id}",
    ]

    blob = await fx.store.load(created.session_id)
    assert blob is not None
    assert blob.user_id == "user-1"
    assert blob.claims == {"role": "fan"}


@pytest.mark.asyncio
async def test_same_platform_login_evicts_previous_session(fx: Fixture) -> None:
    first = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    fx.clock.advance(5)
    second = await fx.lifecycle.create_session("user-1", WEB_DEVICE)

    assert [record.session_id for record in second.evicted] == [first.session_id]
    assert await fx.registry.find_by_session_id(first.session_id) is None
    assert first.session_id not in fx.store
    assert await fx.ledger.is_marked(first.session_id)

    active = await fx.lifecycle.find_by_user_id("user-1")
    assert [record.session_id for record in active] == [second.session_id]


@pytest.mark.asyncio
async def test_eviction_marks_ledger_before_destroying_store(fx: Fixture) -> None:
    first = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    fx.events.clear()

    second = await fx.lifecycle.create_session("user-1", WEB_DEVICE)

    mark = fx.events.index(f"ledger.mark:{first.session_id}")
    destroy = fx.events.index(f"store.delete:{first.session_id}")
    replace = fx.events.index(f"registry.replace:{second.session_id}")
    save = fx.events.index(f"store.save:{second.session_id}")
    assert mark < destroy < replace < save


@pytest.mark.asyncio
async def test_platforms_are_isolated(fx: Fixture) -> None:
    web = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    app = await fx.lifecycle.create_session("user-1", APP_DEVICE)

    assert app.evicted == []
    assert await fx.registry.find_by_session_id(web.session_id) is not None
    assert await fx.lifecycle.count_user_sessions("user-1") == 2


@pytest.mark.asyncio
async def test_concurrent_logins_leave_single_live_session_per_platform(fx: Fixture) -> None:
    results = await asyncio.gather(
        fx.lifecycle.create_session("user-1", WEB_DEVICE),
        fx.lifecycle.create_session("user-1", WEB_DEVICE),
    )

    active = await fx.lifecycle.find_by_user_id("user-1")
    assert len(active) == 1
    survivor = active[0].session_id

    live = []
    for created in results:
        if await fx.guard.is_live(created.session_id, await fx.store.load(created.session_id)):
            live.append(created.session_id)
    assert live == [survivor]


@pytest.mark.asyncio
async def test_store_ttl_never_exceeds_registry_expiry(fx: Fixture) -> None:
    created = await fx.lifecycle.create_session("user-1", APP_DEVICE)

    ttl = fx.store.ttl(created.session_id)
    remaining = (created.expires_at - fx.clock()).total_seconds()
    assert ttl is not None
    assert ttl <= remaining
    assert created.max_age_seconds == 30 * 24 * 60 * 60


@pytest.mark.asyncio
async def test_store_failure_rolls_back_registry_record(fx: Fixture) -> None:
    fx.store.fail_with = InfraUnavailable("redis down", operation="store_save")

    with pytest.raises(InfraUnavailable):
        await fx.lifecycle.create_session("user-1", WEB_DEVICE)

    assert fx.registry.records == {}


@pytest.mark.asyncio
async def test_delete_session_is_idempotent(fx: Fixture) -> None:
    created = await fx.lifecycle.create_session("user-1", WEB_DEVICE)

    assert await fx.lifecycle.delete_session(created.session_id) is True
    assert await fx.lifecycle.delete_session(created.session_id) is False
    assert await fx.ledger.is_marked(created.session_id)
    assert created.session_id not in fx.store


@pytest.mark.asyncio
async def test_delete_all_user_sessions_marks_every_session(fx: Fixture) -> None:
    web = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    app = await fx.lifecycle.create_session("user-1", APP_DEVICE)
    other = await fx.lifecycle.create_session("user-2", WEB_DEVICE)

    deleted = await fx.lifecycle.delete_all_user_sessions("user-1")

    assert deleted == 2
    for session_id in (web.session_id, app.session_id):
        assert await fx.ledger.is_marked(session_id)
        assert session_id not in fx.store
    assert await fx.registry.find_by_session_id(other.session_id) is not None
    assert await fx.lifecycle.delete_all_user_sessions("user-1") == 0


@pytest.mark.asyncio
async def test_delete_other_sessions_keeps_current(fx: Fixture) -> None:
    web = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    app = await fx.lifecycle.create_session("user-1", APP_DEVICE)

    deleted = await fx.lifecycle.delete_other_sessions("user-1", web.session_id)

    assert deleted == 1
    assert await fx.registry.find_by_session_id(web.session_id) is not None
    assert await fx.registry.find_by_session_id(app.session_id) is None
    assert not await fx.ledger.is_marked(web.session_id)


@pytest.mark.asyncio
async def test_list_active_sessions_flags_current_and_hides_raw_ids(fx: Fixture) -> None:
    web = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    fx.clock.advance(1)
    app = await fx.lifecycle.create_session("user-1", APP_DEVICE)

    summaries = await fx.lifecycle.list_active_sessions("user-1", web.session_id)

    assert [summary.session_ref for summary in summaries] == [
        session_ref(app.session_id),
        session_ref(web.session_id),
    ]
    assert [summary.is_current for summary in summaries] == [False, True]
    found = await fx.lifecycle.find_session_by_ref("user-1", session_ref(app.session_id))
    assert found is not None and found.session_id == app.session_id
    assert await fx.lifecycle.find_session_by_ref("user-2", session_ref(app.session_id)) is None


@pytest.mark.asyncio
async def test_clean_expired_sessions_removes_only_expired_records() -> None:
    fx = Fixture(session_config=SessionConfig(web_max_age_seconds=60))
    web = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    app = await fx.lifecycle.create_session("user-1", APP_DEVICE)

    fx.clock.advance(61)

    assert await fx.lifecycle.clean_expired_sessions() == 1
    assert await fx.registry.find_by_session_id(web.session_id) is None
    assert await fx.registry.find_by_session_id(app.session_id) is not None
    assert await fx.lifecycle.clean_expired_sessions() == 0


@pytest.mark.asyncio
async def test_refresh_session_extends_registry_and_store_after_throttle() -> None:
    fx = Fixture(session_config=SessionConfig(web_max_age_seconds=600, rolling=True, rolling_throttle_seconds=60))
    created = await fx.lifecycle.create_session("user-1", WEB_DEVICE)

    fx.clock.advance(30)
    assert await fx.lifecycle.refresh_session(created.record) is created.record

    fx.clock.advance(90)
    refreshed = await fx.lifecycle.refresh_session(created.record)

    assert refreshed is not None
    assert refreshed.expires_at > created.expires_at
    assert refreshed.last_activity_at == fx.clock()
    assert fx.store.ttl(created.session_id) == 600


@pytest.mark.asyncio
async def test_update_activity_touches_last_activity_only(fx: Fixture) -> None:
    created = await fx.lifecycle.create_session("user-1", WEB_DEVICE)
    fx.clock.advance(10)

    updated = await fx.lifecycle.update_activity(created.session_id)

    assert updated is not None
    assert updated.last_activity_at == fx.clock()
    assert updated.expires_at == created.expires_at
    found = await fx.lifecycle.find_by_session_id(created.session_id)
    assert found == updated
    assert await fx.lifecycle.update_activity("missing") is None
