"""
Domain models for queued device commands and their outcomes.

A job is created by CommandQueue.enqueue, consumed once by the worker and
then discarded. Every job ends in exactly one outcome: CommandCompleted or
CommandFailed.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from bgh_bridge.models.credentials import Credentials
from bgh_bridge.models.device import FAN_MODES, HVAC_MODES, DeviceSnapshot

DEVICE_UPDATE_EVENT = "device-update"
COMMAND_ERROR_EVENT = "command-error"


@dataclass(frozen=True)
class CommandPayload:
    """Desired device state for a mode change."""
    mode: str
    target_temperature: float
    fan: Optional[str] = None
    flags: Optional[int] = None

    @property
    def expected_mode_code(self) -> Optional[int]:
        return HVAC_MODES.get(self.mode)

    @property
    def expected_fan_code(self) -> Optional[int]:
        if self.fan is None:
            return None
        return FAN_MODES.get(self.fan)


@dataclass(frozen=True)
class CommandJob:
    """One queued mode change."""
    id: str
    home_id: int
    device_id: int
    payload: CommandPayload
    enqueued_at: datetime
    credentials: Optional[Credentials] = None


@dataclass(frozen=True)
class EnqueueResult:
    """Acknowledgement returned to the caller of enqueue()."""
    job_id: str
    position: int

    def to_dict(self) -> Dict[str, Any]:
        return {"jobId": self.job_id, "position": self.position}


@dataclass(frozen=True)
class CommandCompleted:
    """The mode change was sent and at least one status snapshot was read."""
    job: CommandJob
    device: DeviceSnapshot
    attempts: int
    status: Literal["completed"] = "completed"

    @property
    def event_name(self) -> str:
        return DEVICE_UPDATE_EVENT

    def to_event(self) -> Dict[str, Any]:
        return {
            "jobId": self.job.id,
            "homeId": self.job.home_id,
            "deviceId": self.job.device_id,
            "device": self.device.to_dict(),
            "attempts": self.attempts,
        }


@dataclass(frozen=True)
class CommandFailed:
    """The mode change was rejected, or its result could never be read."""
    job: CommandJob
    error: Exception
    attempts: int = 0
    status: Literal["failed"] = "failed"

    @property
    def event_name(self) -> str:
        return COMMAND_ERROR_EVENT

    @property
    def message(self) -> str:
        return str(self.error) or self.error.__class__.__name__

    def to_event(self) -> Dict[str, Any]:
        return {
            "jobId": self.job.id,
            "homeId": self.job.home_id,
            "deviceId": self.job.device_id,
            "message": self.message,
        }


CommandOutcome = Union[CommandCompleted, CommandFailed]


def matches_expected(device: DeviceSnapshot, payload: CommandPayload) -> bool:
    """
    Check whether a status snapshot reflects the requested payload.

    Mode and fan are only compared when the payload maps to a vendor code;
    a payload without a fan, for instance, never blocks a match. The target
    temperature must be present and finite on both sides and equal once
    rounded.
    """
    expected_mode = payload.expected_mode_code
    expected_fan = payload.expected_fan_code

    mode_matches = expected_mode is None or device.mode_id == expected_mode
    fan_matches = expected_fan is None or device.fan_speed == expected_fan

    if device.target_temperature is None:
        return False
    if not (math.isfinite(device.target_temperature)
            and math.isfinite(payload.target_temperature)):
        return False
    temperature_matches = (
        _round_half_up(device.target_temperature)
        == _round_half_up(payload.target_temperature)
    )

    return mode_matches and fan_matches and temperature_matches


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
