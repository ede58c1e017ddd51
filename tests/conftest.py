"""Shared fixtures: a fake FiveM query endpoint, fake WebSocket connections and a settings database."""

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest

from src.serverpulse.persistence.db import DatabaseManager, set_db_manager
from src.serverpulse.persistence.migrate import MIGRATIONS_DIR, apply_migrations


class FakeGameServer:
    """Serves info/players/dynamic documents through an httpx.MockTransport.

    Attributes are mutable so a test can take the server down mid-way.
    """

    def __init__(self) -> None:
        self.info: Any = {"vars": {"sv_hostname": "Test City", "sv_maxClients": "64"}}
        self.players: Any = [{"id": 1, "name": "A", "ping": 40}, {"id": 2, "name": "B", "ping": 55}]
        self.dynamic: Any = {"resources": ["es_extended", "esx_policejob", "esx_ambulancejob"]}
        self.refuse_connections = False
        self.status_codes: dict[str, int] = {}
        self.delays: dict[str, float] = {}
        self.refused_documents: set[str] = set()
        self.calls: list[str] = []
        self.cancelled: list[str] = []
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        document = request.url.path.lstrip("/")
        self.calls.append(document)

        if self.refuse_connections or document in self.refused_documents:
            raise httpx.ConnectError("Connection refused", request=request)

        delay = self.delays.get(document)
        if delay:
            try:
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                self.cancelled.append(document)
                raise

        status = self.status_codes.get(document, 200)
        body = {"info.json": self.info, "players.json": self.players, "dynamic.json": self.dynamic}.get(document)
        if body is None and document not in ("info.json", "players.json", "dynamic.json"):
            return httpx.Response(404, text="not found")
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


class FakeConnection:
    """Stand-in for a Starlette WebSocket as seen by the hub."""

    def __init__(self, fail: bool = False, hang: bool = False) -> None:
        self.fail = fail
        self.hang = hang
        self.sent: list[dict] = []
        self.send_attempts = 0
        self.closed_with: Optional[int] = None

    async def send_text(self, data: str) -> None:
        self.send_attempts += 1
        if self.fail:
            raise RuntimeError("socket is closed")
        if self.hang:
            await asyncio.sleep(3600)
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code


@pytest.fixture
def game_server() -> FakeGameServer:
    return FakeGameServer()


@pytest.fixture
def make_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture
async def settings_db(tmp_path):
    """Migrated settings database installed as the global manager."""
    db_path = tmp_path / "serverpulse.db"
    apply_migrations(db_path, MIGRATIONS_DIR)
    db_manager = DatabaseManager(db_path)
    set_db_manager(db_manager)
    await db_manager.get_connection()
    yield db_manager
    await db_manager.close()
    set_db_manager(None)
