"""Resolve the best available server status: live, then cached, then default.

SnapshotAggregator is the only place that decides which tier answers a
status request. The poll scheduler, both HTTP endpoints and WebSocket
on-demand queries all go through resolve_status(), so they share one
fallback policy.
"""

from __future__ import annotations

from typing import Optional

import structlog

from ..persistence import settings as settings_store
from .cache import StatusCache
from .models import FetchError, Origin, StatusSnapshot, default_snapshot
from .upstream import UpstreamStatusClient

logger = structlog.get_logger(__name__)


class SnapshotAggregator:
    """Three-tier status resolution over an upstream client and a cache."""

    def __init__(
        self,
        client: UpstreamStatusClient,
        cache: StatusCache,
        address: str,
        timeout_seconds: float = 3.0,
        fallback_server_name: str = "Tokyo Edge Roleplay",
        fallback_max_players: int = 128,
        persist_last_live: bool = False,
    ):
        """
        Initialize the aggregator.

        Args:
            client: Upstream client used for the live tier
            cache: Cache written on live success and read on failure
            address: Default ``host:port`` of the game server
            timeout_seconds: Default deadline for one upstream fetch
            fallback_server_name: Server name of DEFAULT snapshots
            fallback_max_players: Max players of DEFAULT snapshots
            persist_last_live: Also write live snapshots to the settings store
        """
        self.client = client
        self.cache = cache
        self.address = address
        self.timeout_seconds = timeout_seconds
        self.fallback_server_name = fallback_server_name
        self.fallback_max_players = fallback_max_players
        self.persist_last_live = persist_last_live
        self.last_error: Optional[str] = None

    async def resolve_status(
        self,
        address: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> StatusSnapshot:
        """Return the best snapshot available. Never raises."""
        address = address or self.address
        timeout = self.timeout_seconds if timeout is None else timeout

        try:
            snapshot = await self.client.fetch_live(address, timeout)
        except FetchError as exc:
            self.last_error = f"{exc.kind.value}: {exc}"
        except Exception as exc:  # noqa: BLE001
            # Unknown client errors degrade like upstream failures.
            logger.error("upstream_fetch_unexpected_error", address=address, error=repr(exc), exc_info=True)
            self.last_error = f"unexpected: {exc!r}"
        else:
            self.last_error = None
            self.cache.put(snapshot)
            await self._persist(snapshot)
            return snapshot

        cached = self.cache.get_last_live()
        if cached is not None:
            logger.info(
                "status_resolved_from_cache",
                address=address,
                captured_at=cached.captured_at.isoformat(),
            )
            return cached

        logger.info("status_resolved_from_default", address=address)
        return default_snapshot(self.fallback_server_name, self.fallback_max_players)

    async def warm_start(self) -> bool:
        """Seed the cache from the persisted last live snapshot.

        Returns:
            True if a persisted snapshot was loaded into the cache
        """
        try:
            snapshot = await settings_store.load_last_live_snapshot()
        except Exception as exc:  # noqa: BLE001
            logger.warning("status_warm_start_failed", error=str(exc))
            return False

        if snapshot is None:
            return False
        if snapshot.origin is not Origin.LIVE:
            logger.warning("status_warm_start_skipped", origin=snapshot.origin.value)
            return False

        self.cache.put(snapshot)
        logger.info("status_warm_start_loaded", captured_at=snapshot.captured_at.isoformat())
        return True

    async def load_fallback_overrides(self) -> None:
        """Use server_name / server_max_players settings as DEFAULT constants."""
        try:
            server_name = await settings_store.get_setting(settings_store.SERVER_NAME_KEY)
            max_players = await settings_store.get_setting(settings_store.SERVER_MAX_PLAYERS_KEY)
        except Exception as exc:  # noqa: BLE001
            logger.warning("fallback_overrides_unavailable", error=str(exc))
            return

        if server_name:
            self.fallback_server_name = server_name
        if max_players is not None:
            try:
                self.fallback_max_players = int(max_players)
            except ValueError:
                logger.warning("fallback_max_players_invalid", value=max_players)

    async def _persist(self, snapshot: StatusSnapshot) -> None:
        if not self.persist_last_live:
            return
        try:
            await settings_store.save_last_live_snapshot(snapshot)
        except Exception as exc:  # noqa: BLE001
            logger.warning("last_live_snapshot_persist_failed", error=str(exc))
