import asyncio

import pytest

from pokemaker.drafts.autosave import DebouncedTask


@pytest.mark.asyncio
async def test_rapid_schedules_fire_once():
    calls = []

    async def callback():
        calls.append("fired")

    task = DebouncedTask(callback, delay=0.01)
    for _ in range(5):
        task.schedule()
    assert task.pending

    await task.flush()

    assert calls == ["fired"]
    assert not task.pending


@pytest.mark.asyncio
async def test_cancel_stops_a_sleeping_task():
    calls = []

    async def callback():
        calls.append("fired")

    task = DebouncedTask(callback, delay=0.05)
    task.schedule()

    assert task.cancel() is True
    await asyncio.sleep(0.1)

    assert calls == []
    assert task.cancel() is False


@pytest.mark.asyncio
async def test_schedule_does_not_cancel_a_running_callback():
    started = asyncio.Event()
    release = asyncio.Event()
    calls = 0

    async def callback():
        nonlocal calls
        calls += 1
        started.set()
        await release.wait()

    task = DebouncedTask(callback, delay=0)
    task.schedule()
    await started.wait()
    assert task.running
    assert not task.pending

    assert task.cancel() is False
    task.schedule()
    release.set()
    await task.flush()

    assert calls == 2


@pytest.mark.asyncio
async def test_flush_without_schedule_returns():
    async def callback():
        raise AssertionError("should not run")

    task = DebouncedTask(callback, delay=0)
    await task.flush()
    assert not task.running
