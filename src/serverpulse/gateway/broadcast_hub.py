"""In-process fan-out of status snapshots to WebSocket subscribers.

The hub owns the subscriber set. It pushes every published snapshot to all
subscribers, answers on-demand queries from a single subscriber, and runs
an application-level heartbeat that evicts half-open connections.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog

from ..status.aggregator import SnapshotAggregator
from ..status.models import StatusSnapshot
from ..status.presenters import to_ws_message

logger = structlog.get_logger(__name__)

GET_SERVER_STATS = "get_server_stats"
PING_MESSAGE = json.dumps({"type": "ping"})
ACK_TYPES = frozenset({"pong", "heartbeat"})

CLOSE_GOING_AWAY = 1001
CLOSE_POLICY_VIOLATION = 1008


class SubscriberConnection(Protocol):
    """What the hub needs from a connection (Starlette's WebSocket fits)."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass
class Subscriber:
    handle: str
    connection: SubscriberConnection
    alive: bool = True


class BroadcastHub:
    """Subscriber registry, broadcaster and heartbeat driver."""

    def __init__(
        self,
        aggregator: SnapshotAggregator,
        heartbeat_interval_seconds: float = 30,
        send_timeout_seconds: float = 5.0,
    ):
        self.aggregator = aggregator
        self.heartbeat_interval_seconds = heartbeat_interval_seconds
        self.send_timeout_seconds = send_timeout_seconds
        self._subscribers: dict[str, Subscriber] = {}
        self._last_message: Optional[str] = None
        self._heartbeat_task: asyncio.Task | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the heartbeat timer."""
        if self._heartbeat_task and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="broadcast-hub-heartbeat")
        logger.info("broadcast_hub_started", heartbeat_interval_seconds=self.heartbeat_interval_seconds)

    async def stop(self) -> None:
        """Cancel the heartbeat timer and close every subscriber connection."""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        subscribers = list(self._subscribers.values())
        self._subscribers.clear()
        for subscriber in subscribers:
            await self._close_quietly(subscriber, CLOSE_GOING_AWAY)
        logger.info("broadcast_hub_stopped", closed_connections=len(subscribers))

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_seconds)
            try:
                await self.run_heartbeat_cycle()
            except Exception as exc:  # noqa: BLE001
                logger.error("heartbeat_cycle_failed", error=str(exc), exc_info=True)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(self, connection: SubscriberConnection) -> str:
        """Register ``connection`` and send it the current status.

        Returns:
            Opaque handle identifying the subscription
        """
        handle = uuid.uuid4().hex
        subscriber = Subscriber(handle=handle, connection=connection)
        self._subscribers[handle] = subscriber
        logger.info("subscriber_connected", handle=handle, subscriber_count=len(self._subscribers))

        welcome = self._last_message
        if welcome is None:
            welcome = json.dumps(to_ws_message(await self.aggregator.resolve_status()))
        await self._deliver(subscriber, welcome)
        return handle

    async def unsubscribe(self, handle: str) -> None:
        """Remove a subscription; unknown handles are ignored."""
        if self._subscribers.pop(handle, None) is not None:
            logger.info("subscriber_disconnected", handle=handle, subscriber_count=len(self._subscribers))

    def acknowledge(self, handle: str) -> None:
        """Record a heartbeat reply from ``handle``."""
        subscriber = self._subscribers.get(handle)
        if subscriber is not None:
            subscriber.alive = True

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def publish(self, snapshot: StatusSnapshot) -> int:
        """Send ``snapshot`` to every subscriber.

        Returns:
            Number of subscribers that received the message
        """
        payload = json.dumps(to_ws_message(snapshot))
        self._last_message = payload

        subscribers = list(self._subscribers.values())
        if not subscribers:
            return 0

        results = await asyncio.gather(*(self._deliver(s, payload) for s in subscribers))
        delivered = sum(1 for ok in results if ok)
        logger.debug(
            "status_published",
            origin=snapshot.origin.value,
            delivered=delivered,
            attempted=len(subscribers),
        )
        return delivered

    async def on_client_query(self, handle: str, query: dict[str, Any]) -> bool:
        """Resolve the status now and reply to ``handle`` only."""
        subscriber = self._subscribers.get(handle)
        if subscriber is None:
            return False
        snapshot = await self.aggregator.resolve_status()
        logger.debug("client_query_answered", handle=handle, query_type=query.get("type"))
        return await self._deliver(subscriber, json.dumps(to_ws_message(snapshot)))

    async def handle_message(self, handle: str, raw: str) -> None:
        """Dispatch one text frame received from a subscriber."""
        subscriber = self._subscribers.get(handle)
        if subscriber is None:
            return
        # Any inbound traffic proves the connection is alive.
        subscriber.alive = True

        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("subscriber_message_invalid_json", handle=handle)
            return
        if not isinstance(message, dict):
            logger.warning("subscriber_message_not_an_object", handle=handle)
            return

        message_type = message.get("type")
        if message_type == GET_SERVER_STATS:
            await self.on_client_query(handle, message)
        elif message_type in ACK_TYPES:
            self.acknowledge(handle)
        else:
            logger.debug("subscriber_message_ignored", handle=handle, message_type=message_type)

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    async def run_heartbeat_cycle(self) -> int:
        """Evict subscribers that missed the previous ping, then ping the rest.

        Returns:
            Number of subscribers evicted for missing the previous ping
        """
        evicted = 0
        for subscriber in list(self._subscribers.values()):
            if not subscriber.alive:
                await self._evict(subscriber, "heartbeat_timeout", CLOSE_POLICY_VIOLATION)
                evicted += 1

        remaining = list(self._subscribers.values())
        for subscriber in remaining:
            subscriber.alive = False
        if remaining:
            await asyncio.gather(*(self._deliver(s, PING_MESSAGE) for s in remaining))

        if evicted:
            logger.info("heartbeat_evicted_subscribers", evicted=evicted, remaining=len(self._subscribers))
        return evicted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _deliver(self, subscriber: Subscriber, payload: str) -> bool:
        """Send one frame; a failed or stalled send evicts the subscriber."""
        try:
            await asyncio.wait_for(
                subscriber.connection.send_text(payload),
                timeout=self.send_timeout_seconds,
            )
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("subscriber_send_failed", handle=subscriber.handle, error=repr(exc))
            await self._evict(subscriber, "send_failed", CLOSE_GOING_AWAY)
            return False

    async def _evict(self, subscriber: Subscriber, reason: str, code: int) -> None:
        if self._subscribers.pop(subscriber.handle, None) is None:
            return
        logger.info("subscriber_evicted", handle=subscriber.handle, reason=reason)
        await self._close_quietly(subscriber, code)

    async def _close_quietly(self, subscriber: Subscriber, code: int) -> None:
        try:
            await subscriber.connection.close(code=code)
        except Exception as exc:  # noqa: BLE001
            # Closing an already-broken socket commonly raises.
            logger.debug("subscriber_close_failed", handle=subscriber.handle, error=repr(exc))
