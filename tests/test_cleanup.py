"""定时清理任务测试"""
import asyncio
import threading
from datetime import timedelta

import cleanup
from liveconnect.core.config import Settings
from liveconnect.services.registry import FamilyRegistry
from liveconnect.websocket.manager import Connection, ConnectionManager
from liveconnect.websocket.relay import FamilyRelay


def test_evict_expired_groups(registry, clock):
    old, _ = registry.create_group("Alice")
    clock.advance(hours=23)
    fresh, _ = registry.create_group("Bob")
    clock.advance(hours=1, minutes=1)

    assert asyncio.run(cleanup.evict_expired_groups(registry)) == [old]
    assert not registry.has_group(old)
    assert registry.has_group(fresh)


def test_evict_expired_groups_nothing_to_do(registry):
    registry.create_group("Alice")
    assert asyncio.run(cleanup.evict_expired_groups(registry)) == []
    assert len(registry.groups) == 1


def test_settings_defaults():
    settings = Settings()
    assert settings.group_max_age == timedelta(hours=24)
    assert settings.cleanup_interval == timedelta(hours=1)
    assert settings.CORS_ORIGINS_LIST == ["*"]


def test_start_scheduler_registers_interval_job(registry):
    settings = Settings(CLEANUP_INTERVAL_MINUTES=15)
    manager = ConnectionManager()

    async def scenario():
        scheduler = cleanup.start_scheduler(registry, settings, manager)
        try:
            job = scheduler.get_job("evict_expired_groups")
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=15)
            assert job.args == (registry, manager)
        finally:
            scheduler.shutdown(wait=False)

    asyncio.run(scenario())


def test_scheduled_sweep_runs_on_event_loop_thread(registry):
    # 约 0.12 秒一次，等几轮让任务真正跑起来
    settings = Settings(CLEANUP_INTERVAL_MINUTES=0.002)
    sweep_threads = []
    evict = registry.evict_expired

    def recording_evict(*args, **kwargs):
        sweep_threads.append(threading.current_thread())
        return evict(*args, **kwargs)

    registry.evict_expired = recording_evict

    async def scenario():
        scheduler = cleanup.start_scheduler(registry, settings)
        try:
            await asyncio.sleep(0.6)
        finally:
            scheduler.shutdown(wait=False)
        return threading.current_thread()

    loop_thread = asyncio.run(scenario())
    assert sweep_threads
    assert all(t is loop_thread for t in sweep_threads)


def test_sweep_releases_connections_of_evicted_group(clock, make_socket):
    # 邀请码固定，过期后新家庭组会拿到同一个码
    registry = FamilyRegistry(clock=clock, id_factory=lambda: "ABC123")
    relay = FamilyRelay(registry, ConnectionManager())

    async def scenario():
        group_id, alice_id = registry.create_group("Alice")
        alice_ws = make_socket()
        alice = await relay.manager.connect(alice_ws)
        await relay.dispatch(alice, {
            "type": "join-family",
            "data": {"groupId": group_id, "memberId": alice_id},
        })

        clock.advance(hours=25)
        assert await cleanup.evict_expired_groups(registry, relay.manager) == [group_id]
        assert alice.state == Connection.UNASSOCIATED
        assert relay.manager.room_size(group_id) == 0

        new_group, carol_id = registry.create_group("Carol")
        assert new_group == group_id
        carol_ws = make_socket()
        carol = await relay.manager.connect(carol_ws)
        await relay.dispatch(carol, {
            "type": "join-family",
            "data": {"groupId": new_group, "memberId": carol_id},
        })
        await relay.dispatch(carol, {"type": "send-message", "data": {"groupId": new_group, "message": "private"}})

        await relay.dispatch(alice, {"type": "send-message", "data": {"groupId": group_id, "message": "hi from old group"}})
        assert carol_ws.types() == ["family-members"]
        # 旧连接只收到过自己当初的成员列表
        assert alice_ws.types() == ["family-members"]

        # 旧连接退出时不影响新家庭组
        await relay.handle_disconnect(alice)
        assert carol_ws.types() == ["family-members"]
        assert registry.get_member(new_group, carol_id).is_online is True

    asyncio.run(scenario())
