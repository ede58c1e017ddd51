"""Client for the game server's HTTP query documents.

A FiveM server exposes three JSON documents next to its game port:
info.json (server variables), players.json (connected players) and
dynamic.json (resources). fetch_live() reads them in that order under a
single deadline and returns a normalized LIVE StatusSnapshot, or raises a
FetchError subclass describing why it could not.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog

from .models import (
    FetchError,
    MalformedResponse,
    Origin,
    PlayerBreakdown,
    PlayerEntry,
    StatusSnapshot,
    UpstreamTimeout,
    UpstreamUnreachable,
)

logger = structlog.get_logger(__name__)

INFO_DOCUMENT = "info.json"
PLAYERS_DOCUMENT = "players.json"
RESOURCES_DOCUMENT = "dynamic.json"


@dataclass(frozen=True)
class PlayerMarkers:
    """Display-name tags used to classify players."""

    police: str = "COPE"
    medic: str = "SAMU"
    staff: str = "[STAFF]"


def classify_players(names: Iterable[str], markers: PlayerMarkers = PlayerMarkers()) -> PlayerBreakdown:
    """Count players per role from their display names.

    Buckets are independent: a name matching several markers is counted
    in each of them.
    """
    total = police = medic = staff = 0
    for name in names:
        total += 1
        if markers.police and markers.police in name:
            police += 1
        if markers.medic and markers.medic in name:
            medic += 1
        if markers.staff and name.startswith(markers.staff):
            staff += 1
    return PlayerBreakdown(total=total, police=police, medic=medic, staff=staff)


def _as_int(value: Any) -> Optional[int]:
    """Lenient int conversion; unparseable and non-finite values become None."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def parse_players(payload: Any) -> list[PlayerEntry]:
    """Normalize a players.json payload; anything but a list counts as empty."""
    if not isinstance(payload, list):
        logger.warning("players_payload_not_a_list", payload_type=type(payload).__name__)
        return []

    players: list[PlayerEntry] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        players.append(
            PlayerEntry(
                id=_as_int(item.get("id")),
                name=str(name) if name is not None else "",
                ping=_as_int(item.get("ping")),
            )
        )
    return players


def parse_resource_count(payload: Any) -> Optional[int]:
    """Resource count from dynamic.json, or None when the shape is wrong."""
    if not isinstance(payload, dict):
        return None
    resources = payload.get("resources")
    if not isinstance(resources, list):
        return None
    return len(resources)


class UpstreamStatusClient:
    """Fetches and normalizes the game server's status documents."""

    def __init__(
        self,
        fallback_server_name: str = "Tokyo Edge Roleplay",
        fallback_max_players: int = 128,
        markers: PlayerMarkers = PlayerMarkers(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            fallback_server_name: Used when info.json has no sv_hostname
            fallback_max_players: Used when sv_maxClients is missing or unparseable
            markers: Player classification tags
            transport: Optional httpx transport override (used by tests)
        """
        self.fallback_server_name = fallback_server_name
        self.fallback_max_players = fallback_max_players
        self.markers = markers
        self._client = httpx.AsyncClient(transport=transport, follow_redirects=False)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_live(self, address: str, timeout: float) -> StatusSnapshot:
        """
        Read info, players and resources from the server at ``address``.

        Args:
            address: ``host:port`` of the game server
            timeout: Deadline in seconds for the whole request sequence

        Returns:
            StatusSnapshot tagged Origin.LIVE

        Raises:
            UpstreamUnreachable: Connection failure or non-2xx on a required document
            UpstreamTimeout: The sequence did not finish before the deadline
            MalformedResponse: A required document had an unexpected shape
        """
        try:
            # wait_for cancels the sequence on expiry, which aborts the
            # in-flight httpx request and releases its connection.
            return await asyncio.wait_for(self._fetch_sequence(address), timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "upstream_fetch_failed",
                address=address,
                kind="timeout",
                timeout_seconds=timeout,
            )
            raise UpstreamTimeout(f"{address} did not answer within {timeout}s") from exc
        except FetchError as exc:
            logger.warning(
                "upstream_fetch_failed",
                address=address,
                document=exc.document,
                kind=exc.kind.value,
                error=str(exc),
            )
            raise

    async def _fetch_sequence(self, address: str) -> StatusSnapshot:
        base_url = f"http://{address}"

        started = time.perf_counter()
        info = await self._get_json(base_url, INFO_DOCUMENT)
        ping_ms = round((time.perf_counter() - started) * 1000)
        if not isinstance(info, dict):
            raise MalformedResponse("info.json is not an object", document=INFO_DOCUMENT)

        players_payload = await self._get_json(base_url, PLAYERS_DOCUMENT)
        resource_count = await self._get_resource_count(base_url)

        try:
            return self._build_snapshot(info, players_payload, ping_ms, resource_count)
        except (TypeError, ValueError, OverflowError, AttributeError) as exc:
            raise MalformedResponse(
                f"unexpected value in status documents: {exc!r}", document=PLAYERS_DOCUMENT
            ) from exc

    def _build_snapshot(
        self,
        info: dict[str, Any],
        players_payload: Any,
        ping_ms: int,
        resource_count: Optional[int],
    ) -> StatusSnapshot:
        players = parse_players(players_payload)

        server_vars = info.get("vars")
        if not isinstance(server_vars, dict):
            server_vars = {}

        max_players = _as_int(server_vars.get("sv_maxClients"))
        if max_players is None or max_players < 0:
            max_players = self.fallback_max_players

        server_name = server_vars.get("sv_hostname")
        if not isinstance(server_name, str) or not server_name:
            server_name = self.fallback_server_name

        return StatusSnapshot(
            online=True,
            players=len(players),
            max_players=max_players,
            server_name=server_name,
            ping_ms=ping_ms,
            resource_count=resource_count,
            player_breakdown=classify_players((p.name for p in players), self.markers),
            captured_at=datetime.now(timezone.utc),
            origin=Origin.LIVE,
            player_list=tuple(players),
        )

    async def _get_json(self, base_url: str, document: str) -> Any:
        try:
            response = await self._client.get(f"{base_url}/{document}")
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"{document}: {exc!r}", document=document) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnreachable(f"{document}: {exc!r}", document=document) from exc

        if not response.is_success:
            raise UpstreamUnreachable(
                f"{document}: HTTP {response.status_code}", document=document
            )

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(f"{document}: invalid JSON", document=document) from exc

    async def _get_resource_count(self, base_url: str) -> Optional[int]:
        """Optional document: any failure only blanks the resource count."""
        try:
            payload = await self._get_json(base_url, RESOURCES_DOCUMENT)
        except FetchError as exc:
            logger.debug("resources_document_unavailable", kind=exc.kind.value, error=str(exc))
            return None

        count = parse_resource_count(payload)
        if count is None:
            logger.debug("resources_document_malformed")
        return count
