"""
FastAPI dependency injection for the long-lived services.

The services are built once in the application lifespan and stored on
app.state; these dependencies hand them to the routes.
"""

from fastapi import Request

from bgh_bridge.models.config import Settings
from bgh_bridge.services.bgh_service import BGHService
from bgh_bridge.services.command_queue import CommandQueue
from bgh_bridge.services.event_stream import EventBroadcaster
from bgh_bridge.utils.sessions import SessionStore


def get_settings(request: Request) -> Settings:
    """Process settings loaded at startup."""
    return request.app.state.settings


def get_bgh_service(request: Request) -> BGHService:
    """
    Dependency that provides the shared BGH service.

    Args:
        request: Current request (injected)

    Returns:
        BGHService instance
    """
    return request.app.state.bgh_service


def get_command_queue(request: Request) -> CommandQueue:
    """Dependency that provides the command queue."""
    return request.app.state.command_queue


def get_broadcaster(request: Request) -> EventBroadcaster:
    """Dependency that provides the SSE broadcaster."""
    return request.app.state.broadcaster


def get_session_store(request: Request) -> SessionStore:
    """Dependency that provides the user session store."""
    return request.app.state.sessions
