"""SQLite connection management for the settings store."""

import asyncio
from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

from .migrate import MIGRATIONS_DIR, apply_migrations

logger = structlog.get_logger(__name__)


class DatabaseManager:
    """Owns the process's single aiosqlite connection."""

    def __init__(self, db_path: str | Path):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None

    async def get_connection(self) -> aiosqlite.Connection:
        """
        Get the shared connection, opening it on first use.

        Returns:
            SQLite connection with WAL mode enabled

        Raises:
            RuntimeError: If WAL mode could not be enabled
        """
        if self._connection is not None:
            return self._connection

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self.db_path))

        try:
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.execute("PRAGMA busy_timeout=5000")

            cursor = await conn.execute("PRAGMA journal_mode")
            mode = await cursor.fetchone()
            await cursor.close()

            if mode[0].lower() != "wal":
                raise RuntimeError(
                    f"Failed to enable WAL mode. Expected 'wal', got '{mode[0]}'."
                )
        except Exception:
            await conn.close()
            raise

        logger.info(
            "database_connection_established",
            db_path=str(self.db_path),
            journal_mode=mode[0],
        )
        self._connection = conn
        return conn

    async def init_db(self, migrations_dir: Path = MIGRATIONS_DIR) -> None:
        """Apply pending migrations, then open the shared connection."""
        await asyncio.to_thread(apply_migrations, self.db_path, migrations_dir)
        await self.get_connection()
        logger.info("database_initialized", db_path=str(self.db_path))

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("database_connection_closed", db_path=str(self.db_path))


# Global database manager instance (set by the application lifespan)
_db_manager: Optional[DatabaseManager] = None


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    global _db_manager
    _db_manager = manager


def get_db_manager() -> DatabaseManager:
    """
    Get global database manager instance.

    Raises:
        RuntimeError: If database manager not initialized
    """
    if _db_manager is None:
        raise RuntimeError(
            "Database manager not initialized. Call set_db_manager() first."
        )
    return _db_manager


async def get_db() -> aiosqlite.Connection:
    """Connection from the global manager (RuntimeError if not initialized)."""
    return await get_db_manager().get_connection()
