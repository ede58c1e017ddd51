"""Background poller that resolves the server status and broadcasts it."""

from __future__ import annotations

import asyncio
import time
from typing import Literal, Optional

import structlog

from ..status.aggregator import SnapshotAggregator
from ..status.models import StatusSnapshot
from .broadcast_hub import BroadcastHub

logger = structlog.get_logger(__name__)


class PollScheduler:
    """Run resolve + publish immediately on start, then every interval."""

    def __init__(
        self,
        aggregator: SnapshotAggregator,
        hub: BroadcastHub,
        interval_seconds: float = 30,
    ):
        self.aggregator = aggregator
        self.hub = hub
        self.interval_seconds = interval_seconds
        self.last_cycle_at: Optional[float] = None
        self._running = False
        self._task: asyncio.Task | None = None
        self._restart_task: asyncio.Task | None = None
        self._wake = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

    @property
    def state(self) -> Literal["running", "stopped"]:
        return "running" if self._running else "stopped"

    async def start(self) -> None:
        """Start polling loop in background task."""
        if self._running and self._task and not self._task.done():
            return
        self._running = True
        self._wake.clear()
        self._spawn_poll_task()
        logger.info("poll_scheduler_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop scheduling cycles; an in-flight cycle is allowed to finish."""
        self._running = False
        self._wake.set()
        if self._restart_task:
            self._restart_task.cancel()
            self._restart_task = None
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                # Only swallow the poll task's own cancellation, never ours.
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
            except Exception:
                # Crash is already logged by done callback; stop should still complete.
                pass
            self._task = None
        logger.info("poll_scheduler_stopped")

    def set_interval(self, interval_seconds: float) -> None:
        """Change the interval; takes effect after the current wait."""
        self.interval_seconds = interval_seconds
        logger.info("poll_interval_updated", interval_seconds=interval_seconds)

    async def run_cycle(self) -> Optional[StatusSnapshot]:
        """Resolve and publish once.

        Returns:
            The published snapshot, or None if a cycle was already in flight
        """
        if self._cycle_lock.locked():
            logger.info("poll_cycle_skipped", reason="cycle_in_flight")
            return None

        async with self._cycle_lock:
            snapshot = await self.aggregator.resolve_status()
            delivered = await self.hub.publish(snapshot)
            self.last_cycle_at = time.monotonic()
            logger.debug(
                "poll_cycle_complete",
                origin=snapshot.origin.value,
                players=snapshot.players,
                delivered=delivered,
            )
            return snapshot

    def _spawn_poll_task(self) -> None:
        self._task = asyncio.create_task(self._run(), name="status-poll-scheduler")
        self._task.add_done_callback(self._on_poll_done)

    def _on_poll_done(self, task: asyncio.Task) -> None:
        if not self._running:
            return
        if task.cancelled():
            logger.warning("poll_scheduler_cancelled_unexpectedly")
        else:
            exc = task.exception()
            if exc is not None:
                logger.error("poll_scheduler_crashed", error=str(exc))
            else:
                logger.warning("poll_scheduler_exited_unexpectedly")

        if self._restart_task and not self._restart_task.done():
            return
        self._restart_task = asyncio.create_task(self._restart_after_delay())

    async def _restart_after_delay(self) -> None:
        await asyncio.sleep(self.interval_seconds)
        if self._running and (self._task is None or self._task.done()):
            self._spawn_poll_task()
            logger.info("poll_scheduler_restarted")

    async def _run(self) -> None:
        while self._running:
            await self.run_cycle()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
