"""
Pytest fixtures for testing.
Provides scripted service fakes, a recording broadcaster and snapshot builders.
"""

import pytest
from unittest.mock import AsyncMock

from bgh_bridge.models.command import CommandPayload
from bgh_bridge.models.config import Settings
from bgh_bridge.models.device import FAN_MODES, HVAC_MODES, DeviceSnapshot
from bgh_bridge.services.command_queue import RetryPolicy


def build_snapshot(device_id=7, mode_id=1, fan_speed=254, target_temperature=21.0,
                   temperature=24.0, device_name="Living"):
    return DeviceSnapshot(
        device_id=device_id,
        device_name=device_name,
        model="BGH-3000",
        serial_number="AA:BB",
        temperature=temperature,
        target_temperature=target_temperature,
        fan_speed=fan_speed,
        mode_id=mode_id,
    )


class FakeBGHService:
    """
    Stand-in for BGHService used by the command queue.

    Scripted status items are returned in order (exceptions are raised);
    once the script is used up the device reports the last requested state.
    """

    def __init__(self):
        self.calls = []
        self.set_mode_error = None
        self.statuses = []
        self._state = {}

    async def set_device_mode(self, device_id, payload: CommandPayload, credentials=None):
        self.calls.append(("set_device_mode", device_id))
        if self.set_mode_error is not None:
            raise self.set_mode_error
        self._state[device_id] = build_snapshot(
            device_id=device_id,
            mode_id=HVAC_MODES.get(payload.mode),
            fan_speed=FAN_MODES.get(payload.fan or "auto"),
            target_temperature=payload.target_temperature,
        )
        return {"HVACSetModesResult": True}

    async def get_device_status(self, home_id, device_id, credentials=None):
        self.calls.append(("get_device_status", device_id))
        if self.statuses:
            item = self.statuses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return self._state[device_id]


class RecordingBroadcaster:
    """Collects published events instead of writing SSE frames."""

    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))
        return 1


@pytest.fixture
def snapshot():
    """Factory for DeviceSnapshot instances."""
    return build_snapshot


@pytest.fixture
def fake_service():
    return FakeBGHService()


@pytest.fixture
def recording_broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def no_sleep():
    """Sleep replacement so polling tests run instantly."""
    return AsyncMock()


@pytest.fixture
def retry_policy(no_sleep):
    return RetryPolicy(max_attempts=6, delay=0.75, sleep=no_sleep)


@pytest.fixture
def settings():
    return Settings(bgh_email="user@example.com", bgh_password="secret")
