"""Unit tests for PollScheduler."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.serverpulse.gateway.poll_scheduler import PollScheduler
from src.serverpulse.status.models import Origin, PlayerBreakdown, StatusSnapshot


def _snapshot() -> StatusSnapshot:
    return StatusSnapshot(
        online=True,
        players=1,
        max_players=128,
        server_name="Tokyo Edge Roleplay",
        ping_ms=10,
        resource_count=None,
        player_breakdown=PlayerBreakdown(total=1),
        captured_at=datetime.now(timezone.utc),
        origin=Origin.LIVE,
    )


@pytest.fixture
def aggregator():
    mock = AsyncMock()
    mock.resolve_status = AsyncMock(return_value=_snapshot())
    return mock


@pytest.fixture
def hub():
    mock = AsyncMock()
    mock.publish = AsyncMock(return_value=0)
    return mock


@pytest.mark.asyncio
async def test_first_cycle_runs_immediately(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    await scheduler.start()
    try:
        await asyncio.sleep(0.05)
    finally:
        await scheduler.stop()

    aggregator.resolve_status.assert_awaited_once()
    hub.publish.assert_awaited_once_with(aggregator.resolve_status.return_value)
    assert scheduler.last_cycle_at is not None


@pytest.mark.asyncio
async def test_cycles_repeat_on_interval(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=0.05)
    await scheduler.start()
    try:
        await asyncio.sleep(0.28)
    finally:
        await scheduler.stop()

    assert aggregator.resolve_status.await_count >= 3


@pytest.mark.asyncio
async def test_state_reflects_lifecycle(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    assert scheduler.state == "stopped"
    await scheduler.start()
    assert scheduler.state == "running"
    await scheduler.stop()
    assert scheduler.state == "stopped"


@pytest.mark.asyncio
async def test_overlapping_cycle_is_skipped(aggregator, hub):
    release = asyncio.Event()

    async def slow_resolve():
        await release.wait()
        return _snapshot()

    aggregator.resolve_status = AsyncMock(side_effect=slow_resolve)
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)

    first = asyncio.create_task(scheduler.run_cycle())
    await asyncio.sleep(0)
    skipped = await scheduler.run_cycle()
    release.set()
    completed = await first

    assert skipped is None
    assert completed is not None
    assert aggregator.resolve_status.await_count == 1
    hub.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_stop_lets_in_flight_cycle_finish(aggregator, hub):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_resolve():
        started.set()
        await release.wait()
        return _snapshot()

    aggregator.resolve_status = AsyncMock(side_effect=slow_resolve)
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    await scheduler.start()
    await started.wait()

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0.01)
    assert not stopping.done()
    release.set()
    await asyncio.wait_for(stopping, timeout=1)

    hub.publish.assert_awaited_once()
    assert aggregator.resolve_status.await_count == 1


@pytest.mark.asyncio
async def test_stop_does_not_touch_hub_subscribers(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    await scheduler.start()
    await asyncio.sleep(0.01)
    await scheduler.stop()

    hub.stop.assert_not_called()
    hub.unsubscribe.assert_not_called()


@pytest.mark.asyncio
async def test_restarts_after_crash(aggregator, hub):
    calls = 0

    async def flaky_resolve():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        return _snapshot()

    aggregator.resolve_status = AsyncMock(side_effect=flaky_resolve)
    scheduler = PollScheduler(aggregator, hub, interval_seconds=0.05)
    await scheduler.start()
    try:
        await asyncio.sleep(0.2)
    finally:
        await scheduler.stop()

    assert aggregator.resolve_status.await_count >= 2
    assert hub.publish.await_count >= 1


@pytest.mark.asyncio
async def test_set_interval(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=30)
    scheduler.set_interval(60)
    assert scheduler.interval_seconds == 60


@pytest.mark.asyncio
async def test_stop_after_poll_task_was_cancelled(aggregator, hub):
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    await scheduler.start()
    await asyncio.sleep(0.01)
    scheduler._task.cancel()
    await asyncio.sleep(0.01)

    await asyncio.wait_for(scheduler.stop(), timeout=1)

    assert scheduler.state == "stopped"
    assert scheduler._task is None
    assert scheduler._restart_task is None


@pytest.mark.asyncio
async def test_cancelling_stop_itself_propagates(aggregator, hub):
    started = asyncio.Event()

    async def hung_resolve():
        started.set()
        await asyncio.Event().wait()

    aggregator.resolve_status = AsyncMock(side_effect=hung_resolve)
    scheduler = PollScheduler(aggregator, hub, interval_seconds=3600)
    await scheduler.start()
    await started.wait()

    stopping = asyncio.create_task(scheduler.stop())
    await asyncio.sleep(0.01)
    stopping.cancel()

    with pytest.raises(asyncio.CancelledError):
        await stopping
