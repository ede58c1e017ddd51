"""FastAPI application exposing the status endpoints and the /ws channel."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
import structlog
from fastapi import APIRouter, FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse

from ..config.manager import ConfigManager
from ..observability.health_checks import run_all_health_checks
from ..status.presenters import to_stats_payload, to_status_payload
from .service import StatusService

logger = structlog.get_logger(__name__)

router = APIRouter()


def _service(app: FastAPI) -> StatusService:
    return app.state.status_service


@router.get("/api/server/status")
async def get_server_status(request: Request) -> dict[str, Any]:
    """Full status including the player list. Always 200, degraded or not."""
    snapshot = await _service(request.app).aggregator.resolve_status()
    return to_status_payload(snapshot)


@router.get("/api/server/stats")
async def get_server_stats(request: Request) -> dict[str, Any]:
    snapshot = await _service(request.app).aggregator.resolve_status()
    return to_stats_payload(snapshot)


@router.get("/api/health")
async def get_health(request: Request) -> JSONResponse:
    service = _service(request.app)
    results = await run_all_health_checks(
        service.cache,
        service.scheduler,
        service.aggregator,
        stale_threshold_seconds=service.config.get("observability.status_stale_threshold_seconds"),
    )
    if any(r.status == "fail" for r in results):
        overall = "fail"
    elif any(r.status == "warn" for r in results):
        overall = "warn"
    else:
        overall = "pass"
    return JSONResponse(
        {
            "status": overall,
            "subscribers": service.hub.subscriber_count,
            "checks": [r.to_dict() for r in results],
        },
        status_code=503 if overall == "fail" else 200,
    )


@router.websocket("/ws")
async def status_socket(websocket: WebSocket) -> None:
    hub = _service(websocket.app).hub
    await websocket.accept()
    handle = await hub.subscribe(websocket)
    try:
        async for raw in websocket.iter_text():
            await hub.handle_message(handle, raw)
    except RuntimeError as exc:
        # The hub closed the socket (heartbeat eviction or shutdown).
        logger.debug("status_socket_closed_by_hub", handle=handle, error=str(exc))
    finally:
        await hub.unsubscribe(handle)


def create_app(
    config: ConfigManager,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the FastAPI app; the status service starts and stops with it.

    Args:
        config: Loaded configuration manager
        upstream_transport: Optional httpx transport for the game server (tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        service = StatusService(config, upstream_transport=upstream_transport)
        app.state.status_service = service
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="serverpulse", lifespan=lifespan)
    app.include_router(router)
    return app
