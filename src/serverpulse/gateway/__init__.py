"""
Status gateway.

Broadcast hub, poll scheduler, service wiring and the FastAPI app that
serves /api/server/status, /api/server/stats, /api/health and /ws.
"""

from .broadcast_hub import BroadcastHub, SubscriberConnection
from .http_server import create_app
from .poll_scheduler import PollScheduler
from .service import StatusService

__all__ = ["BroadcastHub", "SubscriberConnection", "PollScheduler", "StatusService", "create_app"]
