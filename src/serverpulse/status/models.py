"""Status data models and upstream failure taxonomy.

StatusSnapshot is the single value type that flows through the status
pipeline: the upstream client produces LIVE snapshots, the cache hands
them back re-tagged as CACHED, and the aggregator synthesizes DEFAULT
snapshots when nothing better exists.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class Origin(str, Enum):
    """Provenance tier of a snapshot."""

    LIVE = "live"
    CACHED = "cached"
    DEFAULT = "default"


@dataclass(frozen=True)
class PlayerBreakdown:
    """Player counts per role, derived from display-name tags."""

    total: int = 0
    police: int = 0
    medic: int = 0
    staff: int = 0


@dataclass(frozen=True)
class PlayerEntry:
    """One connected player as reported by players.json."""

    id: Optional[int]
    name: str
    ping: Optional[int]


@dataclass(frozen=True)
class StatusSnapshot:
    """Point-in-time observation of the game server."""

    online: bool
    players: int
    max_players: int
    server_name: str
    ping_ms: Optional[int]
    resource_count: Optional[int]
    player_breakdown: PlayerBreakdown
    captured_at: datetime
    origin: Origin
    player_list: tuple[PlayerEntry, ...] = field(default=())

    def with_origin(self, origin: Origin) -> "StatusSnapshot":
        return replace(self, origin=origin)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation (used for persistence)."""
        return {
            "online": self.online,
            "players": self.players,
            "max_players": self.max_players,
            "server_name": self.server_name,
            "ping_ms": self.ping_ms,
            "resource_count": self.resource_count,
            "player_breakdown": {
                "total": self.player_breakdown.total,
                "police": self.player_breakdown.police,
                "medic": self.player_breakdown.medic,
                "staff": self.player_breakdown.staff,
            },
            "captured_at": self.captured_at.isoformat(),
            "origin": self.origin.value,
            "player_list": [
                {"id": p.id, "name": p.name, "ping": p.ping} for p in self.player_list
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusSnapshot":
        """Rebuild a snapshot from to_dict() output.

        Raises:
            KeyError, TypeError, ValueError: If the payload is not a valid snapshot
        """
        breakdown = data.get("player_breakdown") or {}
        captured_at = datetime.fromisoformat(data["captured_at"])
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=timezone.utc)
        return cls(
            online=bool(data["online"]),
            players=int(data["players"]),
            max_players=int(data["max_players"]),
            server_name=str(data["server_name"]),
            ping_ms=data.get("ping_ms"),
            resource_count=data.get("resource_count"),
            player_breakdown=PlayerBreakdown(
                total=int(breakdown.get("total", 0)),
                police=int(breakdown.get("police", 0)),
                medic=int(breakdown.get("medic", 0)),
                staff=int(breakdown.get("staff", 0)),
            ),
            captured_at=captured_at,
            origin=Origin(data.get("origin", Origin.LIVE.value)),
            player_list=tuple(
                PlayerEntry(id=p.get("id"), name=str(p.get("name", "")), ping=p.get("ping"))
                for p in data.get("player_list") or []
            ),
        )


def default_snapshot(server_name: str, max_players: int) -> StatusSnapshot:
    """Static fallback used when neither upstream nor cache can answer."""
    return StatusSnapshot(
        online=False,
        players=0,
        max_players=max_players,
        server_name=server_name,
        ping_ms=None,
        resource_count=None,
        player_breakdown=PlayerBreakdown(),
        captured_at=datetime.now(timezone.utc),
        origin=Origin.DEFAULT,
    )


# ---------------------------------------------------------------------------
# Upstream failures
# ---------------------------------------------------------------------------


class FetchErrorKind(str, Enum):
    UNREACHABLE = "unreachable"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"


class FetchError(Exception):
    """Base class for failures talking to the game server."""

    kind: FetchErrorKind = FetchErrorKind.UNREACHABLE

    def __init__(self, message: str, document: Optional[str] = None):
        super().__init__(message)
        self.document = document


class UpstreamUnreachable(FetchError):
    """Connection failure or non-2xx on a required document."""

    kind = FetchErrorKind.UNREACHABLE


class UpstreamTimeout(FetchError):
    """The whole fetch sequence exceeded its deadline."""

    kind = FetchErrorKind.TIMEOUT


class MalformedResponse(FetchError):
    """A required document did not have the expected shape."""

    kind = FetchErrorKind.MALFORMED_RESPONSE
