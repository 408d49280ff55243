import asyncio

import pytest

from tidytabs.models.run import OrganizeResult
from tidytabs.models.schedule import ScheduleState
from tidytabs.persistence import JsonStore, ScheduleStore
from tidytabs.scheduler import AsyncioTimer, OrganizeScheduler
from tidytabs.tasks import BackgroundTaskManager

T0 = 1_700_000_000_000


class FakeTimer:
    def __init__(self):
        self.calls = []
        self.interval = None
        self.callback = None

    @property
    def next_fire_at_ms(self):
        return None if self.interval is None else T0 + self.interval * 60_000

    def arm(self, interval_minutes, callback):
        self.calls.append(("arm", interval_minutes))
        self.interval = interval_minutes
        self.callback = callback

    def disarm(self):
        self.calls.append(("disarm",))
        self.interval = None
        self.callback = None


class FakeOrganizer:
    def __init__(self, result=None, error=None):
        self.result = result or OrganizeResult(success=True, applied=True, groups_created=2)
        self.error = error
        self.calls = []

    async def organize(self, scope=None, mode=None, *, is_auto=False):
        self.calls.append(is_auto)
        if self.error:
            raise self.error
        return self.result


class Clock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def store(tmp_path):
    return ScheduleStore(JsonStore(str(tmp_path / "schedule.json")))


def _scheduler(store, organizer=None, clock=None):
    return OrganizeScheduler(organizer or FakeOrganizer(), store, FakeTimer(), clock=clock or Clock())


def test_enable_clamps_interval_to_floor(store):
    scheduler = _scheduler(store)

    state = asyncio.run(scheduler.enable(1))

    assert state.interval_minutes == 2
    assert scheduler.armed is True
    assert scheduler.armed_interval == 2
    assert scheduler.timer.calls == [("disarm",), ("arm", 2)]
    assert asyncio.run(store.load()) == ScheduleState(enabled=True, interval_minutes=2)


def test_re_enable_clears_previous_timer_first(store):
    scheduler = _scheduler(store)

    asyncio.run(scheduler.enable(5))
    asyncio.run(scheduler.enable(10))

    assert scheduler.timer.calls == [("disarm",), ("arm", 5), ("disarm",), ("arm", 10)]


def test_disable_disarms_and_persists(store):
    scheduler = _scheduler(store)
    asyncio.run(scheduler.enable(5))

    asyncio.run(scheduler.disable())

    assert scheduler.armed is False
    assert scheduler.timer.interval is None
    assert asyncio.run(store.load()).enabled is False


def test_fire_30_seconds_after_last_run_is_skipped(store):
    organizer = FakeOrganizer()
    scheduler = _scheduler(store, organizer, Clock(T0 + 30_000))
    asyncio.run(store.save(ScheduleState(enabled=True, interval_minutes=5, last_run_at_ms=T0)))

    result = asyncio.run(scheduler.on_fire())

    assert result is None
    assert organizer.calls == []
    assert asyncio.run(store.load()).last_run_at_ms == T0


def test_fire_90_seconds_after_last_run_runs_and_records(store):
    organizer = FakeOrganizer()
    scheduler = _scheduler(store, organizer, Clock(T0 + 90_000))
    asyncio.run(store.save(ScheduleState(enabled=True, interval_minutes=5, last_run_at_ms=T0)))

    result = asyncio.run(scheduler.on_fire())

    assert result.success is True
    assert organizer.calls == [True]
    assert asyncio.run(store.load()).last_run_at_ms == T0 + 90_000


def test_failed_run_still_consumes_rate_limit_window(store):
    organizer = FakeOrganizer(result=OrganizeResult(success=False, error="Rate limit exceeded"))
    scheduler = _scheduler(store, organizer, Clock(T0 + 120_000))
    asyncio.run(store.save(ScheduleState(enabled=True, last_run_at_ms=T0)))

    result = asyncio.run(scheduler.on_fire())

    assert result.success is False
    assert asyncio.run(store.load()).last_run_at_ms == T0 + 120_000


def test_raising_run_still_records_time(store):
    organizer = FakeOrganizer(error=RuntimeError("boom"))
    scheduler = _scheduler(store, organizer, Clock(T0 + 120_000))
    asyncio.run(store.save(ScheduleState(enabled=True, last_run_at_ms=T0)))

    with pytest.raises(RuntimeError):
        asyncio.run(scheduler.on_fire())

    assert asyncio.run(store.load()).last_run_at_ms == T0 + 120_000


def test_fire_while_disabled_clears_timer(store):
    organizer = FakeOrganizer()
    scheduler = _scheduler(store, organizer, Clock(T0 + 600_000))
    asyncio.run(scheduler.enable(5))
    asyncio.run(store.save(ScheduleState(enabled=False, interval_minutes=5)))

    result = asyncio.run(scheduler.on_fire())

    assert result is None
    assert organizer.calls == []
    assert scheduler.armed is False
    assert scheduler.timer.calls[-1] == ("disarm",)


def test_restore_rearms_with_persisted_interval(store):
    asyncio.run(store.save(ScheduleState(enabled=True, interval_minutes=15)))
    scheduler = _scheduler(store)

    assert asyncio.run(scheduler.restore()) is True
    assert scheduler.timer.calls[-1] == ("arm", 15)


def test_restore_does_nothing_when_disabled(store):
    scheduler = _scheduler(store)

    assert asyncio.run(scheduler.restore()) is False
    assert scheduler.timer.calls == []


def test_set_auto_organize_disable_keeps_interval(store):
    scheduler = _scheduler(store)

    asyncio.run(scheduler.set_auto_organize(False, 30))

    assert asyncio.run(store.load()) == ScheduleState(enabled=False, interval_minutes=30)


def test_status_reports_next_run_only_when_armed(store):
    scheduler = _scheduler(store)
    assert asyncio.run(scheduler.status()).next_run is None

    asyncio.run(scheduler.enable(3))
    status = asyncio.run(scheduler.status())

    assert status.enabled is True
    assert status.interval == 3
    assert status.next_run == T0 + 3 * 60_000


def test_asyncio_timer_fires_repeatedly_until_disarmed():
    async def scenario():
        fired = []

        async def callback():
            fired.append(1)

        timer = AsyncioTimer(BackgroundTaskManager(), seconds_per_minute=0.01)
        timer.arm(1, callback)
        await asyncio.sleep(0.055)
        assert timer.next_fire_at_ms is not None
        timer.disarm()
        count = len(fired)
        await asyncio.sleep(0.03)
        return count, len(fired), timer.next_fire_at_ms

    count, later, next_fire = asyncio.run(scenario())

    assert count >= 2
    # a tick already in flight when disarmed still completes
    assert count <= later <= count + 1
    assert next_fire is None


def test_scheduler_with_asyncio_timer_runs_pipeline(store):
    async def scenario():
        organizer = FakeOrganizer()
        manager = BackgroundTaskManager()
        scheduler = OrganizeScheduler(
            organizer,
            store,
            AsyncioTimer(manager, seconds_per_minute=0.01),
            min_spacing_ms=0,
        )
        await scheduler.enable(2)
        await asyncio.sleep(0.2)
        await scheduler.disable()
        await manager.shutdown()
        return organizer.calls

    calls = asyncio.run(scenario())

    assert calls and all(calls)


def test_asyncio_timer_tick_failing_after_disarm_is_logged(caplog):
    async def scenario():
        manager = BackgroundTaskManager()
        started = asyncio.Event()

        async def callback():
            started.set()
            await asyncio.sleep(0.02)
            raise OSError("schedule.json is read-only")

        timer = AsyncioTimer(manager, seconds_per_minute=0.01)
        timer.arm(1, callback)
        await asyncio.wait_for(started.wait(), 1)
        timer.disarm()
        await manager.shutdown()

    asyncio.run(scenario())

    assert "Run 'auto-organize-run' failed" in caplog.text
    assert "schedule.json is read-only" in caplog.text
    assert "never retrieved" not in caplog.text


def test_asyncio_timer_keeps_ticking_after_a_failed_tick():
    async def scenario():
        manager = BackgroundTaskManager()
        ticks = []

        async def callback():
            ticks.append(1)
            if len(ticks) == 1:
                raise RuntimeError("first tick fails")

        timer = AsyncioTimer(manager, seconds_per_minute=0.01)
        timer.arm(1, callback)
        await asyncio.sleep(0.06)
        timer.disarm()
        await manager.shutdown()
        return len(ticks)

    assert asyncio.run(scenario()) >= 2
