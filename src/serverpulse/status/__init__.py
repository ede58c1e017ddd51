"""
Server status pipeline.

Upstream client, single-slot cache and the snapshot value types. The
aggregator lives in ``status.aggregator`` and is imported from there.
"""

from .cache import StatusCache
from .models import (
    FetchError,
    FetchErrorKind,
    MalformedResponse,
    Origin,
    PlayerBreakdown,
    PlayerEntry,
    StatusSnapshot,
    UpstreamTimeout,
    UpstreamUnreachable,
    default_snapshot,
)
from .upstream import PlayerMarkers, UpstreamStatusClient, classify_players

__all__ = [
    "StatusCache",
    "FetchError",
    "FetchErrorKind",
    "MalformedResponse",
    "Origin",
    "PlayerBreakdown",
    "PlayerEntry",
    "StatusSnapshot",
    "UpstreamTimeout",
    "UpstreamUnreachable",
    "default_snapshot",
    "PlayerMarkers",
    "UpstreamStatusClient",
    "classify_players",
]
