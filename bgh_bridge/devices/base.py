"""
Base interface for climate vendor clients.
The BGH client implements it; tests substitute scripted fakes.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bgh_bridge.models.device import DeviceSnapshot


class VendorClient(ABC):
    """
    Abstract base class for vendor cloud clients.

    All clients MUST support sim_mode to prevent accidentally controlling
    real devices during development/testing.
    """

    def __init__(self, sim_mode: bool = False):
        """
        Initialize vendor client.

        Args:
            sim_mode: If True, log actions but don't make real API calls.
                     Returns fake but realistic data for testing.
        """
        self.sim_mode = sim_mode

    @abstractmethod
    async def list_homes(self) -> List[Dict[str, Any]]:
        """
        List the homes visible to the account.

        Returns:
            Raw home summaries (empty when the vendor returns none)
        """

    @abstractmethod
    async def get_devices(self, home_id: int) -> Dict[int, DeviceSnapshot]:
        """
        Fetch every device of a home with its current status.

        Args:
            home_id: Vendor home id

        Returns:
            Mapping of device id -> DeviceSnapshot
        """

    @abstractmethod
    async def get_device_status(self, home_id: int, device_id: int) -> DeviceSnapshot:
        """
        Fetch the current status of one device.

        Raises:
            NotFoundError: If the device is not part of the home
        """

    @abstractmethod
    async def set_mode(
        self,
        device_id: int,
        mode: str,
        target_temperature: float,
        fan: Optional[str] = "auto",
        flags: Optional[int] = 255
    ) -> Dict[str, Any]:
        """
        Send a mode change to a device.

        Returns:
            Raw vendor response
        """
