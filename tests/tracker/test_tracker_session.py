"""Tests for the tracker session: tick loop, sync policy, teardown."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import httpx
import pytest

from coursepath.tracker import (
    PlayerJsAdapter,
    ProgressApiError,
    TrackerConfig,
    TrackerSession,
)
from coursepath.video.schemas import VideoCompletionResponse


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _stored(lesson_id, report) -> VideoCompletionResponse:
    total = report.total_time_seconds or 0
    completed = bool(report.completed) or (
        total > 0 and report.watch_time_seconds * 100 >= total * 80
    )
    return VideoCompletionResponse(
        lesson_id=lesson_id,
        watch_time_seconds=report.watch_time_seconds,
        total_time_seconds=total,
        last_position_seconds=report.last_position_seconds,
        completion_rate=Decimal(0),
        completed=completed,
    )


@pytest.fixture
def lesson_id():
    return uuid4()


@pytest.fixture
def client(lesson_id):
    client = Mock()
    client.get_video_completion = AsyncMock(return_value=None)
    client.update_video_completion = AsyncMock(
        side_effect=lambda lesson, report: _stored(lesson, report)
    )
    return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_session(lesson_id, client, clock):
    # A long tick keeps the background loop out of the way; tests call tick()
    config = TrackerConfig(tick_seconds=3600)

    def _make(**kwargs):
        return TrackerSession(
            lesson_id, client, PlayerJsAdapter(), config=config, clock=clock, **kwargs
        )

    return _make


async def _play_for(session, clock, seconds: int) -> None:
    for _ in range(seconds):
        clock.now += 1
        await session.tick()


@pytest.mark.asyncio
async def test_interval_sync(make_session, client, clock) -> None:
    session = make_session()
    await session.start()
    await session.handle("ready", 300)
    await session.handle("play")

    await _play_for(session, clock, 14)
    client.update_video_completion.assert_not_awaited()

    await _play_for(session, clock, 1)
    client.update_video_completion.assert_awaited_once()
    report = client.update_video_completion.await_args.args[1]
    assert report.watch_time_seconds == 15
    assert report.total_time_seconds == 300
    assert report.completed is False

    await session.close()


@pytest.mark.asyncio
async def test_threshold_sync_fires_completion_callback(
    make_session, client, clock
) -> None:
    on_completed = AsyncMock()
    session = make_session(on_completed=on_completed)
    await session.start()
    await session.handle("ready", 10)
    await session.handle("play")

    await _play_for(session, clock, 8)

    report = client.update_video_completion.await_args.args[1]
    assert report.completed is True
    on_completed.assert_awaited_once()
    assert session.state.server_completed is True

    await _play_for(session, clock, 2)
    on_completed.assert_awaited_once()
    await session.close()


@pytest.mark.asyncio
async def test_ended_pushes_immediately(make_session, client, clock) -> None:
    session = make_session()
    await session.start()
    await session.handle("ready", 600)
    await session.handle("play")
    await _play_for(session, clock, 3)

    await session.handle("ended")

    report = client.update_video_completion.await_args.args[1]
    assert report.completed is True
    assert report.watch_time_seconds == 600
    assert session.state.ended_pending is False
    await session.close()


@pytest.mark.asyncio
async def test_ended_during_push_survives_failed_retry(
    make_session, client, clock
) -> None:
    in_flight = asyncio.Event()
    release = asyncio.Event()
    calls = []

    async def update(lesson, report):
        calls.append(report)
        if len(calls) == 1:
            in_flight.set()
            await release.wait()
        elif len(calls) == 2:
            raise httpx.ConnectError("offline")
        return _stored(lesson, report)

    client.update_video_completion.side_effect = update
    session = make_session()
    await session.start()
    await session.handle("ready", 300)
    await session.handle("play")

    interval = asyncio.create_task(_play_for(session, clock, 15))
    await in_flight.wait()
    ended = asyncio.create_task(session.handle("ended"))
    await asyncio.sleep(0)
    release.set()
    await asyncio.gather(interval, ended)

    assert calls[0].completed is False
    assert calls[1].completed is True
    assert session.state.ended_pending is True

    stored = await session.close()
    assert stored is not None
    assert stored.completed is True
    assert session.state.ended_pending is False


@pytest.mark.asyncio
async def test_resume_from_server_record(make_session, client, lesson_id) -> None:
    client.get_video_completion.return_value = VideoCompletionResponse(
        lesson_id=lesson_id,
        watch_time_seconds=120,
        total_time_seconds=300,
        last_position_seconds=118,
        completion_rate=Decimal("40.00"),
        completed=False,
    )
    session = make_session()

    await session.start()

    assert session.state.watch_time == 120.0
    assert session.state.position == 118.0
    await session.close()
    client.update_video_completion.assert_awaited_once()


@pytest.mark.asyncio
async def test_resume_failure_starts_fresh(make_session, client) -> None:
    client.get_video_completion.side_effect = httpx.ConnectError("offline")
    session = make_session()

    await session.start()

    assert session.state.watch_time == 0.0
    assert await session.close() is None
    client.update_video_completion.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_push_backs_off(make_session, client, clock) -> None:
    client.update_video_completion.side_effect = ProgressApiError(503, "down")
    session = make_session()
    await session.start()
    await session.handle("ready", 300)
    await session.handle("play")

    await _play_for(session, clock, 16)
    assert client.update_video_completion.await_count == 1
    assert session.state.synced_watch_time == 0.0

    client.update_video_completion.side_effect = lambda lesson, report: _stored(
        lesson, report
    )
    await _play_for(session, clock, 15)
    assert client.update_video_completion.await_count == 2
    assert session.state.synced_watch_time == 30.0
    await session.close()


@pytest.mark.asyncio
async def test_close_flushes_once(make_session, client, clock) -> None:
    session = make_session()
    await session.start()
    await session.handle("ready", 300)
    await session.handle("play")
    await _play_for(session, clock, 5)

    stored = await session.close()

    assert stored is not None
    assert stored.watch_time_seconds == 5
    assert await session.close() is None
    client.update_video_completion.assert_awaited_once()

    await session.handle("ended")
    client.update_video_completion.assert_awaited_once()


@pytest.mark.asyncio
async def test_estimated_duration_completes_only_on_ended(
    make_session, client, clock
) -> None:
    session = make_session()
    await session.start()
    await session.handle("play")
    clock.now = 11.0
    await session.tick()
    assert session.state.duration_estimated is True

    await _play_for(session, clock, 15)
    report = client.update_video_completion.await_args.args[1]
    assert report.total_time_seconds is None
    assert report.completed is False
    await session.close()
