"""Wiring of the status components and their shared lifecycle."""

from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

from ..config.manager import ConfigManager
from ..observability.log_setup import configure_logging
from ..persistence.db import DatabaseManager, set_db_manager
from ..status.aggregator import SnapshotAggregator
from ..status.cache import StatusCache
from ..status.upstream import PlayerMarkers, UpstreamStatusClient
from .broadcast_hub import BroadcastHub
from .poll_scheduler import PollScheduler

logger = structlog.get_logger(__name__)


class StatusService:
    """Constructs the status pipeline from configuration and owns its lifecycle.

    Start order: database, fallback overrides, warm cache, hub, scheduler.
    Stop order is the reverse, so the scheduler never publishes into a
    stopped hub.
    """

    def __init__(
        self,
        config: ConfigManager,
        upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Build all components without starting them.

        Args:
            config: Loaded configuration manager
            upstream_transport: Optional httpx transport for the game server (tests)
        """
        self.config = config
        self.db_manager = DatabaseManager(config.get("database.path"))
        self.client = UpstreamStatusClient(
            fallback_server_name=config.get("status.fallback_server_name"),
            fallback_max_players=config.get("status.fallback_max_players"),
            markers=PlayerMarkers(
                police=config.get("status.police_marker"),
                medic=config.get("status.medic_marker"),
                staff=config.get("status.staff_marker"),
            ),
            transport=upstream_transport,
        )
        self.cache = StatusCache()
        self.aggregator = SnapshotAggregator(
            client=self.client,
            cache=self.cache,
            address=config.game_server_address,
            timeout_seconds=config.get("fivem.request_timeout_seconds"),
            fallback_server_name=config.get("status.fallback_server_name"),
            fallback_max_players=config.get("status.fallback_max_players"),
            persist_last_live=config.get("status.persist_last_live"),
        )
        self.hub = BroadcastHub(
            self.aggregator,
            heartbeat_interval_seconds=config.get("status.heartbeat_interval_seconds"),
            send_timeout_seconds=config.get("status.send_timeout_seconds"),
        )
        self.scheduler = PollScheduler(
            self.aggregator,
            self.hub,
            interval_seconds=config.get("status.poll_interval_seconds"),
        )
        config.subscribe(self.on_config_updated)

    async def start(self) -> None:
        await self.db_manager.init_db()
        set_db_manager(self.db_manager)
        await self.aggregator.load_fallback_overrides()
        await self.aggregator.warm_start()
        await self.hub.start()
        await self.scheduler.start()
        logger.info("status_service_started", address=self.aggregator.address)

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.hub.stop()
        await self.client.aclose()
        await self.db_manager.close()
        set_db_manager(None)
        logger.info("status_service_stopped")

    def on_config_updated(self, key: str, value: Any) -> None:
        """Apply dynamic configuration changes to the running components."""
        if key == "status.poll_interval_seconds":
            self.scheduler.set_interval(value)
        elif key == "fivem.request_timeout_seconds":
            self.aggregator.timeout_seconds = value
        elif key == "status.send_timeout_seconds":
            self.hub.send_timeout_seconds = value
        elif key == "status.fallback_server_name":
            self.aggregator.fallback_server_name = value
            self.client.fallback_server_name = value
        elif key == "status.fallback_max_players":
            self.aggregator.fallback_max_players = value
            self.client.fallback_max_players = value
        elif key == "logging.level":
            configure_logging(value, self.config.get("logging.file_path"))
