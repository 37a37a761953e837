"""Cooperative tracker session for one lesson view.

One asyncio task ticks at ``tick_seconds`` while the view is open; player
events are fed in through ``handle``. Pushes go through the progress API
client and are serialized, so a tick and an event never race to report.

Closing the session performs one best-effort final push and stops. A push
that fails is logged and retried by the normal sync policy later; the server
merges reports, so repeating one is harmless.
"""

import asyncio
import contextlib
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol
from uuid import UUID

import httpx
import structlog

from coursepath.video.schemas import (
    UpdateVideoCompletionRequest,
    VideoCompletionResponse,
)

from .adapters import PlayerAdapter
from .client import ProgressApiError
from .config import TrackerConfig
from .state import (
    SyncReason,
    TrackerState,
    apply_duration_fallback,
    apply_event,
    apply_tick,
    build_report,
    initial_state,
    mark_synced,
    sync_reason,
)


logger = structlog.get_logger(__name__)

CompletedCallback = Callable[[VideoCompletionResponse], Awaitable[None] | None]


class VideoCompletionClient(Protocol):
    async def get_video_completion(
        self, lesson_id: UUID
    ) -> VideoCompletionResponse | None: ...

    async def update_video_completion(
        self, lesson_id: UUID, report: UpdateVideoCompletionRequest
    ) -> VideoCompletionResponse: ...


class TrackerSession:
    """Tracks one learner watching one lesson video."""

    def __init__(
        self,
        lesson_id: UUID,
        client: VideoCompletionClient,
        adapter: PlayerAdapter,
        config: TrackerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_completed: CompletedCallback | None = None,
    ):
        self.lesson_id = lesson_id
        self.client = client
        self.adapter = adapter
        self.config = config or TrackerConfig()
        self.state = TrackerState(lesson_id=lesson_id)
        self.closed = False

        self._clock = clock
        self._on_completed = on_completed
        self._opened_at: float | None = None
        self._retry_at: float | None = None
        self._sync_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Resume from the stored record and start the tick loop."""
        try:
            stored = await self.client.get_video_completion(self.lesson_id)
        except (httpx.HTTPError, ProgressApiError) as e:
            logger.warning(
                "tracker_resume_failed", lesson_id=str(self.lesson_id), error=str(e)
            )
            stored = None

        self.state = initial_state(self.lesson_id, stored)
        self._opened_at = self._clock()
        self._loop_task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(
            "tracker_started",
            lesson_id=str(self.lesson_id),
            provider=self.adapter.provider,
            watch_time=self.state.watch_time,
        )

    async def handle(self, name: str, payload: Any = None) -> None:
        """Feed one native player event."""
        if self.closed:
            return
        for event in self.adapter.translate(name, payload):
            self.state = apply_event(self.state, event, self._clock())
        await self._maybe_sync()

    async def tick(self) -> None:
        """Advance the accumulator by one tick (driven by the loop)."""
        now = self._clock()
        if self._opened_at is not None:
            self.state = apply_duration_fallback(
                self.state, now - self._opened_at, self.config
            )
        self.state = apply_tick(self.state, now, self.config)
        await self._maybe_sync()

    async def close(self) -> VideoCompletionResponse | None:
        """Stop ticking and push a final report (page teardown)."""
        if self.closed:
            return None
        self.closed = True

        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task

        if self.state.watch_time <= 0 and not self.state.ended_pending:
            return None
        reason = (
            SyncReason.ENDED if self.state.ended_pending else SyncReason.TEARDOWN
        )
        return await self._sync(reason)

    # ==========================================================================
    # Internals
    # ==========================================================================

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_seconds)
            await self.tick()

    async def _maybe_sync(self) -> None:
        reason = sync_reason(self.state, self.config)
        if reason is None:
            return
        # After a failed push, wait before retrying anything but ended
        if (
            reason != SyncReason.ENDED
            and self._retry_at is not None
            and self._clock() < self._retry_at
        ):
            return
        await self._sync(reason)

    async def _sync(self, reason: SyncReason) -> VideoCompletionResponse | None:
        async with self._sync_lock:
            report = build_report(self.state)
            ended_reported = self.state.ended_pending
            was_completed = self.state.server_completed
            try:
                stored = await self.client.update_video_completion(
                    self.lesson_id, report
                )
            except (httpx.HTTPError, ProgressApiError) as e:
                self._retry_at = self._clock() + self.config.sync_interval_seconds
                logger.warning(
                    "tracker_sync_failed",
                    lesson_id=str(self.lesson_id),
                    reason=reason.value,
                    error=str(e),
                )
                return None

            self._retry_at = None
            self.state = mark_synced(
                self.state, report, stored, ended_reported=ended_reported
            )
            logger.debug(
                "tracker_synced",
                lesson_id=str(self.lesson_id),
                reason=reason.value,
                watch_time_seconds=report.watch_time_seconds,
                completed=stored.completed,
            )

        if stored.completed and not was_completed and self._on_completed:
            outcome = self._on_completed(stored)
            if inspect.isawaitable(outcome):
                await outcome
        return stored
