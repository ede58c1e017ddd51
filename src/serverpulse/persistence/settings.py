"""Settings table persistence operations."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

import structlog

from ..status.models import StatusSnapshot
from .db import get_db

logger = structlog.get_logger(__name__)

LAST_LIVE_STATUS_KEY = "last_server_stats"
SERVER_NAME_KEY = "server_name"
SERVER_MAX_PLAYERS_KEY = "server_max_players"
SERVER_CATEGORY = "server"


async def get_setting(key: str) -> Optional[str]:
    """Return the raw value stored under ``key``, or None."""
    db = await get_db()
    cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = await cursor.fetchone()
    await cursor.close()
    return row[0] if row is not None else None


async def get_settings_by_category(category: str) -> dict[str, str]:
    db = await get_db()
    cursor = await db.execute(
        "SELECT key, value FROM settings WHERE category = ? ORDER BY key",
        (category,),
    )
    rows = await cursor.fetchall()
    await cursor.close()
    return {row[0]: row[1] for row in rows}


async def upsert_setting(key: str, value: str, category: str = "general") -> None:
    """Insert or overwrite a setting."""
    db = await get_db()
    now = int(datetime.now().timestamp())
    await db.execute(
        """
        INSERT INTO settings (key, value, category, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET
            value = excluded.value,
            category = excluded.category,
            updated_at = excluded.updated_at
        """,
        (key, value, category, now),
    )
    await db.commit()


async def save_last_live_snapshot(snapshot: StatusSnapshot) -> None:
    """Persist the last live snapshot so a restart can serve it as cached."""
    await upsert_setting(
        LAST_LIVE_STATUS_KEY,
        json.dumps(snapshot.to_dict()),
        category=SERVER_CATEGORY,
    )
    logger.debug("last_live_snapshot_persisted", captured_at=snapshot.captured_at.isoformat())


async def load_last_live_snapshot() -> Optional[StatusSnapshot]:
    """Read back the persisted snapshot; corrupt payloads are logged and ignored."""
    raw = await get_setting(LAST_LIVE_STATUS_KEY)
    if raw is None:
        return None

    try:
        data: Any = json.loads(raw)
        return StatusSnapshot.from_dict(data)
    except (TypeError, KeyError, ValueError, AttributeError) as exc:
        logger.warning("last_live_snapshot_corrupt", error=str(exc))
        return None
