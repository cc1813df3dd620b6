import asyncio

from subwatch.clients.base import BackendError
from subwatch.services.timers import drain_inflight_ticks

from conftest import sub


def test_global_interval_runs_batch_of_enabled_remote_records(make_manager, backend):
    manager = make_manager()
    manager.initialize([sub("a"), sub("b", enabled=False), sub("c", url="ss://c")])

    async def scenario():
        await manager.start()
        manager.set_update_interval(1)
        await asyncio.sleep(0.035)
        await manager.stop()

    asyncio.run(scenario())
    assert backend.batch_calls
    assert all(call == ["a"] for call in backend.batch_calls)


def test_global_interval_zero_cancels_timer(make_manager, backend):
    manager = make_manager()
    manager.initialize([sub("a")])

    async def scenario():
        await manager.start()
        manager.set_update_interval(1)
        await asyncio.sleep(0.035)
        manager.set_update_interval(0)
        await drain_inflight_ticks()
        calls = len(backend.batch_calls)
        await asyncio.sleep(0.04)
        active = manager.global_scheduler.active
        await manager.stop()
        return calls, active

    calls, active = asyncio.run(scenario())
    assert calls >= 1
    assert len(backend.batch_calls) == calls
    assert active is False


def test_start_reads_global_interval_from_settings(make_manager, backend):
    backend.settings_interval = 30
    manager = make_manager()

    async def scenario():
        await manager.start()
        state = (manager.global_scheduler.interval_minutes, manager.global_scheduler.active)
        await manager.stop()
        return state

    assert asyncio.run(scenario()) == (30, True)
    assert backend.settings_calls == 1


def test_settings_failure_leaves_global_refresh_disabled(make_manager, backend):
    backend.settings_error = BackendError("unreachable")
    manager = make_manager()

    async def scenario():
        await manager.start()
        active = manager.global_scheduler.active
        await manager.stop()
        return active

    assert asyncio.run(scenario()) is False
    assert manager.global_scheduler.interval_minutes == 0


def test_global_tick_with_nothing_enabled_makes_no_call(make_manager, backend):
    manager = make_manager()
    manager.initialize([sub("a", enabled=False)])

    assert asyncio.run(manager.global_scheduler.tick()) is None
    assert backend.batch_calls == []


def test_only_eligible_records_get_item_timers(make_manager):
    manager = make_manager()
    manager.initialize([
        sub("a", updateInterval=1),
        sub("b", updateInterval=5),
        sub("c"),
        sub("d", updateInterval=1, enabled=False),
        sub("e", url="vless://e", updateInterval=1),
    ])

    async def scenario():
        await manager.start()
        tracked = sorted(manager.item_scheduler.tracked_ids())
        await manager.stop()
        return tracked

    assert asyncio.run(scenario()) == ["a", "b"]


def test_changing_one_interval_rebuilds_every_item_timer(make_manager):
    manager = make_manager()
    manager.initialize([sub("a", updateInterval=5), sub("b", updateInterval=5), sub("c")])

    async def scenario():
        await manager.start()
        before = {i: manager.item_scheduler.timer_for(i) for i in ("a", "b")}
        manager.set_subscription_interval("c", 5)
        after = {i: manager.item_scheduler.timer_for(i) for i in ("a", "b", "c")}
        await manager.stop()
        return before, after

    before, after = asyncio.run(scenario())
    assert set(after) == {"a", "b", "c"}
    for sub_id, timer in before.items():
        assert after[sub_id] is not timer
        assert not timer.active


def test_clearing_an_interval_removes_its_timer(make_manager, dirty):
    manager = make_manager()
    manager.initialize([sub("a", updateInterval=5)])

    async def scenario():
        await manager.start()
        manager.set_subscription_interval("a", 0)
        tracked = manager.item_scheduler.tracked_ids()
        await manager.stop()
        return tracked

    assert asyncio.run(scenario()) == []
    assert manager.get("a").update_interval is None
    assert dirty.count == 1


def test_item_timer_refreshes_its_record(make_manager, backend, notifier):
    manager = make_manager()
    manager.initialize([sub("a", updateInterval=1), sub("b")])

    async def scenario():
        await manager.start()
        await asyncio.sleep(0.035)
        await manager.stop()

    asyncio.run(scenario())
    assert backend.node_count_calls
    assert set(backend.node_count_calls) == {"https://example.com/a"}
    assert "A auto-update complete" in notifier.texts()
    assert manager.get("a").node_count == 10


def test_item_timer_uses_current_record_after_edit(make_manager, backend):
    manager = make_manager()
    manager.initialize([sub("a", updateInterval=1)])

    async def scenario():
        await manager.start()
        manager.update(sub("a", url="https://example.com/moved", updateInterval=1))
        await manager.wait_idle()
        backend.node_count_calls.clear()
        await asyncio.sleep(0.035)
        await manager.stop()

    asyncio.run(scenario())
    assert backend.node_count_calls
    assert set(backend.node_count_calls) == {"https://example.com/moved"}


def test_timers_are_not_armed_before_start(make_manager):
    manager = make_manager()
    manager.initialize([sub("a", updateInterval=1)])

    assert manager.item_scheduler.tracked_ids() == []
    assert manager.set_subscription_interval("a", 3)
    assert manager.get("a").update_interval == 3
