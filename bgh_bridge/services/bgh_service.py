"""
BGH service - resolves vendor clients for callers and wraps every vendor call
with logging and error normalisation.

Routes and the command queue talk to this service, never to BGHClient
directly.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from bgh_bridge.devices.base import VendorClient
from bgh_bridge.devices.bgh_client import BGHClient
from bgh_bridge.models.command import CommandPayload
from bgh_bridge.models.config import Settings
from bgh_bridge.models.credentials import Credentials
from bgh_bridge.models.device import DeviceSnapshot
from bgh_bridge.utils.errors import BGHServiceError, ConfigurationError, UnexpectedError
from bgh_bridge.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
ClientFactory = Callable[[Credentials], VendorClient]


class BGHService:
    """
    Service for reading and commanding BGH devices.

    Handles:
    - One vendor client per credential set (shared login per user)
    - Fallback to the process-wide default account
    - Structured logging per operation
    - Normalising unknown failures to UnexpectedError
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[ClientFactory] = None
    ):
        """
        Initialize BGH service.

        Args:
            settings: Process settings (timeout, sim mode, default account)
            client_factory: Builds a vendor client for a credential set
                (defaults to BGHClient)
        """
        self.settings = settings
        self._client_factory = client_factory or self._build_client
        self._clients: Dict[tuple, VendorClient] = {}

    def _build_client(self, credentials: Credentials) -> VendorClient:
        logger.info("bgh_client_created", email=credentials.email)
        return BGHClient(
            email=credentials.email,
            password=credentials.password,
            timeout=self.settings.timeout_seconds,
            sim_mode=self.settings.sim_mode
        )

    def resolve_credentials(self, credentials: Optional[Credentials]) -> Credentials:
        """
        Pick the caller's credentials or the default account.

        Raises:
            ConfigurationError: If neither is available
        """
        if credentials is not None:
            return credentials

        if not self.settings.has_default_credentials:
            logger.error("bgh_credentials_missing")
            raise ConfigurationError(
                "Missing BGH credentials. Ensure environment variables "
                "BGH_EMAIL and BGH_PASSWORD are set."
            )

        return Credentials(self.settings.bgh_email, self.settings.bgh_password)

    def get_client(self, credentials: Optional[Credentials] = None) -> VendorClient:
        """
        Get (or lazily create) the vendor client for a credential set.

        The client is created synchronously, so concurrent first callers
        always receive the same instance and therefore the same login.
        """
        resolved = self.resolve_credentials(credentials)
        client = self._clients.get(resolved.key)
        if client is None:
            client = self._client_factory(resolved)
            self._clients[resolved.key] = client
        return client

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def list_homes(
        self,
        credentials: Optional[Credentials] = None
    ) -> List[Dict[str, Any]]:
        """List homes visible to the account."""
        log = logger.bind(service="bgh_service", operation="list_homes")
        log.debug("listing_homes")
        homes = await self._call(
            "listing homes", log,
            lambda: self.get_client(credentials).list_homes()
        )

        log.info("homes_retrieved", home_count=len(homes))
        return homes

    async def list_devices(
        self,
        home_id: int,
        credentials: Optional[Credentials] = None
    ) -> Dict[int, DeviceSnapshot]:
        """Get every device of a home with its status."""
        log = logger.bind(service="bgh_service", operation="list_devices", home_id=home_id)
        log.debug("listing_devices")
        devices = await self._call(
            f"retrieving devices for home {home_id}", log,
            lambda: self.get_client(credentials).get_devices(home_id)
        )

        log.info("devices_retrieved", device_count=len(devices))
        return devices

    async def get_device_status(
        self,
        home_id: int,
        device_id: int,
        credentials: Optional[Credentials] = None
    ) -> DeviceSnapshot:
        """Get the status of one device."""
        log = logger.bind(
            service="bgh_service",
            operation="get_device_status",
            home_id=home_id,
            device_id=device_id
        )
        log.debug("fetching_device_status")
        device = await self._call(
            f"retrieving device {device_id} status for home {home_id}", log,
            lambda: self.get_client(credentials).get_device_status(home_id, device_id)
        )

        log.debug("device_status_retrieved")
        return device

    async def set_device_mode(
        self,
        device_id: int,
        payload: CommandPayload,
        credentials: Optional[Credentials] = None
    ) -> Dict[str, Any]:
        """Send a mode change to a device."""
        log = logger.bind(
            service="bgh_service",
            operation="set_device_mode",
            device_id=device_id,
            mode=payload.mode
        )
        log.info(
            "updating_device_mode",
            target_temperature=payload.target_temperature,
            fan=payload.fan
        )
        response = await self._call(
            f"updating mode for device {device_id}", log,
            lambda: self.get_client(credentials).set_mode(
                device_id,
                mode=payload.mode,
                target_temperature=payload.target_temperature,
                fan=payload.fan,
                flags=payload.flags
            )
        )

        log.info("device_mode_updated")
        return response

    @staticmethod
    async def _call(
        context: str,
        log,
        operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Run a vendor call, normalising failures to typed errors.

        Typed errors are logged and re-raised unchanged; anything else
        becomes UnexpectedError.
        """
        try:
            return await operation()
        except BGHServiceError as e:
            log.error("bgh_service_error", context=context, code=e.code, error=str(e))
            raise
        except Exception as e:
            log.error("unexpected_bgh_service_error", context=context, error=repr(e))
            raise UnexpectedError(f"Unexpected error occurred while {context}.") from e
