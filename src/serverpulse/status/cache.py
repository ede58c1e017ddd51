"""Single-slot in-memory cache of the last LIVE snapshot.

The slot holds an immutable StatusSnapshot and is replaced wholesale on
every put(), so a reader always sees one complete capture. Staleness is
reported through origin/captured_at, never by hiding old data.
"""

import threading
from datetime import datetime
from typing import Optional

from .models import Origin, StatusSnapshot


class StatusCache:
    """Process-wide holder of the most recent LIVE snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entry: Optional[StatusSnapshot] = None

    def put(self, snapshot: StatusSnapshot) -> None:
        """Store ``snapshot`` as the last known live status.

        Raises:
            ValueError: If snapshot is not tagged Origin.LIVE
        """
        if snapshot.origin is not Origin.LIVE:
            raise ValueError(f"Only live snapshots can be cached, got {snapshot.origin.value}")
        with self._lock:
            self._entry = snapshot

    def get_last_live(self) -> Optional[StatusSnapshot]:
        """Return the cached snapshot re-tagged CACHED, or None if empty."""
        with self._lock:
            entry = self._entry
        if entry is None:
            return None
        return entry.with_origin(Origin.CACHED)

    @property
    def last_captured_at(self) -> Optional[datetime]:
        with self._lock:
            return self._entry.captured_at if self._entry is not None else None

    def clear(self) -> None:
        with self._lock:
            self._entry = None
