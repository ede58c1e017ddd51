# Persistence Layer - SQLite settings store

from .db import DatabaseManager, get_db, get_db_manager, set_db_manager
from .migrate import apply_migrations
from .settings import (
    get_setting,
    get_settings_by_category,
    load_last_live_snapshot,
    save_last_live_snapshot,
    upsert_setting,
)

__all__ = [
    "DatabaseManager",
    "get_db",
    "get_db_manager",
    "set_db_manager",
    "apply_migrations",
    "get_setting",
    "get_settings_by_category",
    "upsert_setting",
    "save_last_live_snapshot",
    "load_last_live_snapshot",
]
