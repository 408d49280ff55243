import asyncio
import logging

import pytest

from tidytabs.tasks import BackgroundTaskManager


def test_start_and_complete():
    async def scenario():
        manager = BackgroundTaskManager()
        done = asyncio.Event()

        async def job(cancel):
            done.set()

        manager.start("job", job)
        await asyncio.wait_for(done.wait(), 1)
        await asyncio.sleep(0)
        return manager.is_running("job")

    assert asyncio.run(scenario()) is False


def test_duplicate_name_requires_replace():
    async def scenario():
        manager = BackgroundTaskManager()

        async def forever(cancel):
            await asyncio.sleep(10)

        manager.start("loop", forever)
        with pytest.raises(RuntimeError):
            manager.start("loop", forever)
        first = manager._loops["loop"][0]
        manager.start("loop", forever, replace=True)
        await asyncio.sleep(0)
        running = manager.is_running("loop")
        await manager.shutdown()
        return first, running, manager.is_running("loop")

    first, running, after_shutdown = asyncio.run(scenario())

    assert first.cancelled() or first.done()
    assert running is True
    assert after_shutdown is False


def test_cancel_sets_token_and_unknown_returns_false():
    async def scenario():
        manager = BackgroundTaskManager()

        async def forever(cancel):
            await asyncio.sleep(10)

        token = manager.start("loop", forever)
        assert manager.cancel("loop") is True
        assert manager.cancel("nope") is False
        await asyncio.sleep(0)
        return token.is_set(), manager.is_running("loop")

    assert asyncio.run(scenario()) == (True, False)


def test_failing_loop_is_logged_not_raised(caplog):
    async def scenario():
        manager = BackgroundTaskManager()

        async def broken(cancel):
            raise ValueError("bad tick")

        manager.start("broken", broken)
        await asyncio.sleep(0.01)
        return manager.is_running("broken")

    assert asyncio.run(scenario()) is False
    assert "Background task 'broken' failed" in caplog.text


def test_detached_run_failure_is_logged(caplog):
    async def scenario():
        manager = BackgroundTaskManager()

        async def broken():
            raise OSError("disk full")

        run = manager.detach("organize-run", broken())
        await asyncio.wait([run])
        await asyncio.sleep(0)
        return manager._runs

    with caplog.at_level(logging.ERROR, logger="tidytabs.tasks"):
        runs = asyncio.run(scenario())

    assert runs == set()
    assert "Run 'organize-run' failed" in caplog.text
    assert "disk full" in caplog.text


def test_shutdown_waits_for_detached_runs_without_cancelling():
    async def scenario():
        manager = BackgroundTaskManager()
        finished = []

        async def slow():
            await asyncio.sleep(0.02)
            finished.append(1)

        manager.detach("organize-run", slow())
        await manager.shutdown()
        return finished

    assert asyncio.run(scenario()) == [1]
