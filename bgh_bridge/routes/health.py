"""
Health check endpoints.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends

from bgh_bridge.dependencies import get_broadcaster, get_command_queue, get_settings
from bgh_bridge.models.config import Settings
from bgh_bridge.services.command_queue import CommandQueue
from bgh_bridge.services.event_stream import EventBroadcaster

router = APIRouter()


@router.get("/health")
async def health_check(
    queue: CommandQueue = Depends(get_command_queue),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_settings)
):
    """
    Extended health check with service status.

    Returns:
        dict: {
            "ok": true,
            "timestamp": "2024-01-01T12:00:00.000Z",
            "sim_mode": false,
            "services": {
                "commandQueue": {"depth": 0, "running": false, "closed": false},
                "eventStream": {"subscribers": 2}
            }
        }
    """
    return {
        "ok": not queue.is_closed,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "sim_mode": settings.sim_mode,
        "services": {
            "commandQueue": {
                "depth": queue.depth,
                "running": queue.is_running,
                "closed": queue.is_closed
            },
            "eventStream": {
                "subscribers": broadcaster.count()
            }
        }
    }


@router.get("/api/ping")
async def ping():
    """Liveness probe. No authentication required."""
    return {"message": "pong"}
