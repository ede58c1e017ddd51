"""
Client-facing payload formatting for status snapshots.

Every outward representation of a StatusSnapshot is built here so the
HTTP endpoints and the WebSocket channel cannot drift apart.
"""

from typing import Any

from .models import Origin, StatusSnapshot

SERVER_STATS_MESSAGE = "server_stats"

CACHED_ERROR = "Server unreachable, showing last known status"
DEFAULT_ERROR = "Server unavailable"


def _degradation_fields(snapshot: StatusSnapshot) -> dict[str, Any]:
    """``cached``/``error`` markers, present only on degraded snapshots."""
    if snapshot.origin is Origin.CACHED:
        return {"cached": True, "error": CACHED_ERROR}
    if snapshot.origin is Origin.DEFAULT:
        return {"cached": False, "error": DEFAULT_ERROR}
    return {}


def _core_fields(snapshot: StatusSnapshot) -> dict[str, Any]:
    breakdown = snapshot.player_breakdown
    return {
        "online": snapshot.online,
        "players": snapshot.players,
        "maxPlayers": snapshot.max_players,
        "serverName": snapshot.server_name,
        "ping": snapshot.ping_ms,
        "resources": snapshot.resource_count,
        "playerStats": {
            "total": breakdown.total,
            "police": breakdown.police,
            "medic": breakdown.medic,
            "staff": breakdown.staff,
        },
        "lastUpdate": snapshot.captured_at.isoformat(),
        "origin": snapshot.origin.value,
    }


def to_ws_message(snapshot: StatusSnapshot) -> dict[str, Any]:
    """Message pushed to WebSocket subscribers."""
    return {"type": SERVER_STATS_MESSAGE, **_core_fields(snapshot), **_degradation_fields(snapshot)}


def to_status_payload(snapshot: StatusSnapshot) -> dict[str, Any]:
    """Body of GET /api/server/status."""
    return {
        "status": "success" if snapshot.origin is Origin.LIVE else "error",
        **_core_fields(snapshot),
        "playerList": [
            {"id": p.id, "name": p.name, "ping": p.ping} for p in snapshot.player_list
        ],
        **_degradation_fields(snapshot),
    }


def to_stats_payload(snapshot: StatusSnapshot) -> dict[str, Any]:
    """Body of GET /api/server/stats (compact field names kept for old clients)."""
    return {
        "status": "success" if snapshot.origin is Origin.LIVE else "error",
        "online": snapshot.online,
        "players": snapshot.players,
        "max": snapshot.max_players,
        "server_name": snapshot.server_name,
        "ping": snapshot.ping_ms,
        "lastUpdate": snapshot.captured_at.isoformat(),
        "origin": snapshot.origin.value,
        **_degradation_fields(snapshot),
    }
