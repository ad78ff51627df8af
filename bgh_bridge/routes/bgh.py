"""
BGH device endpoints.

This is a thin HTTP adapter - reads go to BGHService, writes go through the
CommandQueue and their results arrive on the /events stream.
"""

import math
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from bgh_bridge.dependencies import get_bgh_service, get_broadcaster, get_command_queue
from bgh_bridge.models.command import CommandPayload
from bgh_bridge.models.device import FAN_MODES, HVAC_MODES
from bgh_bridge.services.bgh_service import BGHService
from bgh_bridge.services.command_queue import CommandQueue
from bgh_bridge.services.event_stream import EventBroadcaster, QueueStream
from bgh_bridge.utils.auth import require_session
from bgh_bridge.utils.logging import get_logger
from bgh_bridge.utils.sessions import Session

logger = get_logger(__name__)

router = APIRouter(prefix="/api/bgh")


class ModeRequest(BaseModel):
    """Request model for the set-mode endpoint."""
    homeId: int
    mode: str
    targetTemperature: float
    fan: Optional[str] = None
    flags: Optional[int] = None


def _invalid_body(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "INVALID_BODY", "message": message}
    )


@router.get("/homes")
async def list_homes(
    session: Session = Depends(require_session),
    service: BGHService = Depends(get_bgh_service)
):
    """
    List the homes of the logged-in account.

    Returns:
        dict: {"homes": [...]}
    """
    homes = await service.list_homes(session.credentials)
    return {"homes": homes}


@router.get("/homes/{home_id}/devices")
async def list_devices(
    home_id: int,
    session: Session = Depends(require_session),
    service: BGHService = Depends(get_bgh_service)
):
    """
    List the devices of a home with their current status.

    Returns:
        dict: {"devices": {"<deviceId>": {...snapshot...}}}
    """
    devices = await service.list_devices(home_id, session.credentials)
    return {
        "devices": {
            str(device_id): device.to_dict()
            for device_id, device in devices.items()
        }
    }


@router.get("/homes/{home_id}/devices/{device_id}")
async def get_device_status(
    home_id: int,
    device_id: int,
    session: Session = Depends(require_session),
    service: BGHService = Depends(get_bgh_service)
):
    """
    Get the current status of one device.

    Returns:
        dict: {"device": {...snapshot...}}
    """
    device = await service.get_device_status(home_id, device_id, session.credentials)
    return {"device": device.to_dict()}


@router.post("/devices/{device_id}/mode", status_code=status.HTTP_202_ACCEPTED)
async def set_device_mode(
    device_id: int,
    request: ModeRequest,
    session: Session = Depends(require_session),
    queue: CommandQueue = Depends(get_command_queue)
):
    """
    Queue a mode change for a device.

    The response only acknowledges the command; its outcome is published as
    a device-update or command-error event on /api/bgh/events.

    Returns:
        202 {"jobId": "...", "position": 1}
    """
    if not math.isfinite(request.targetTemperature):
        raise _invalid_body("targetTemperature must be a finite number.")

    if request.mode not in HVAC_MODES:
        raise _invalid_body(f"Unsupported mode '{request.mode}'.")

    if request.fan and request.fan not in FAN_MODES:
        raise _invalid_body(f"Unsupported fan mode '{request.fan}'.")

    payload = CommandPayload(
        mode=request.mode,
        target_temperature=request.targetTemperature,
        fan=request.fan or None,
        flags=request.flags
    )

    logger.info(
        "queueing_device_mode_update",
        device_id=device_id,
        home_id=request.homeId,
        mode=request.mode,
        target_temperature=request.targetTemperature,
        fan=request.fan,
        flags=request.flags
    )

    result = queue.enqueue(
        home_id=request.homeId,
        device_id=device_id,
        payload=payload,
        credentials=session.credentials
    )

    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=result.to_dict())


@router.get("/events")
async def stream_device_events(
    session: Session = Depends(require_session),
    broadcaster: EventBroadcaster = Depends(get_broadcaster)
):
    """
    Server-sent event stream of command outcomes.

    Events:
        device-update: {jobId, homeId, deviceId, device, attempts}
        command-error: {jobId, homeId, deviceId, message}
    """
    stream = QueueStream()
    subscriber_id = broadcaster.subscribe(stream)

    async def event_source():
        try:
            async for frame in stream.frames():
                yield frame
        finally:
            broadcaster.unsubscribe(subscriber_id)

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )
