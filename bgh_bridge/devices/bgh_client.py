"""
BGH Smart Control (Solidmation) cloud API client.

Handles token-based authentication and the vendor's positional data packet.
Every call is a POST whose JSON body carries the login token under a
"token" object.
"""

import asyncio
from typing import Optional, Dict, List, Any

import httpx

from bgh_bridge.devices.base import VendorClient
from bgh_bridge.models.device import (
    FAN_MODES,
    HVAC_MODES,
    VALUE_TYPE_FAN_SPEED,
    VALUE_TYPE_MODE,
    VALUE_TYPE_TARGET_TEMPERATURE,
    VALUE_TYPE_TEMPERATURE,
    DeviceSnapshot,
    parse_data_packet,
)
from bgh_bridge.utils.errors import (
    AuthenticationError,
    InvalidCommandError,
    NotFoundError,
    ProtocolError,
    UpstreamError,
)
from bgh_bridge.utils.logging import get_logger

logger = get_logger(__name__)

BASE_URL = "https://bgh-services.solidmation.com"
API_URL = f"{BASE_URL}/1.0"
LOGIN_ENDPOINT = f"{BASE_URL}/control/LoginPage.aspx/DoStandardLogin"
ENUM_HOMES_ENDPOINT = f"{API_URL}/HomeCloudService.svc/EnumHomes"
DATA_PACKET_ENDPOINT = f"{API_URL}/HomeCloudService.svc/GetDataPacket"
SET_MODES_ENDPOINT = f"{API_URL}/HomeCloudCommandService.svc/HVACSetModes"

DEFAULT_TIMEOUT_SECONDS = 15.0


def format_temperature(value: float) -> str:
    """Render a temperature the way the vendor expects it (21 -> "21", 21.5 -> "21.5")."""
    return f"{value:g}"


class BGHClient(VendorClient):
    """
    BGH cloud API client for BGH Smart Control air conditioners.

    Features:
    - Lazy login on first call; concurrent first callers share one login
    - Token cached for the lifetime of the instance (no refresh)
    - Home enumeration and data packet decoding
    - HVAC mode/fan/target temperature commands
    - Sim mode with in-memory device state
    """

    DATA_PACKET_TIMEOUT_MS = 10_000

    def __init__(
        self,
        email: str,
        password: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        sim_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize BGH client.

        Args:
            email: BGH account email
            password: BGH account password
            timeout: HTTP timeout in seconds for every vendor call
            sim_mode: If True, don't make real API calls
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(sim_mode)
        self.email = email
        self.password = password
        self.timeout = timeout
        self._transport = transport

        self._token: Optional[Dict[str, Any]] = None
        self._login_task: Optional[asyncio.Task] = None
        self._sim_devices: Dict[int, Dict[str, Any]] = self._initial_sim_devices()

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None
    ) -> str:
        """
        Log into the BGH cloud and cache the token.

        Args:
            email: Account email (defaults to the client's)
            password: Account password (defaults to the client's)

        Returns:
            The token string

        Raises:
            AuthenticationError: Missing or unrecognised token, or an HTTP
                error status from the login endpoint
            UpstreamError: The login endpoint could not be reached
        """
        email = email if email is not None else self.email
        password = password if password is not None else self.password

        if self.sim_mode:
            logger.info("[SIM] Logging into BGH", email=email)
            self._token = {"Token": "sim_token"}
            return self._token["Token"]

        try:
            async with self._http() as client:
                response = await client.post(
                    LOGIN_ENDPOINT,
                    json={"user": email, "password": password}
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise AuthenticationError(
                f"Authentication failed with status {status}",
                status_code=status
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Request to {LOGIN_ENDPOINT} failed: {e}",
                endpoint=LOGIN_ENDPOINT
            ) from e

        data = self._extract_json(response, "authentication")
        self._token = self._parse_token(data.get("d"))

        logger.info("BGH authentication successful", email=email)
        return self._token["Token"]

    @staticmethod
    def _parse_token(token: Any) -> Dict[str, Any]:
        """
        Normalise the login answer into {"Token": str, ...}.

        The vendor returns either the bare token string or an object
        carrying it under "Token".
        """
        if not token:
            raise AuthenticationError("Missing authentication token")

        if isinstance(token, str):
            return {"Token": token}

        if isinstance(token, dict) and isinstance(token.get("Token"), str):
            return dict(token)

        raise AuthenticationError("Unexpected authentication token format")

    async def _ensure_token(self) -> Dict[str, Any]:
        """
        Return the cached token, logging in once if needed.

        Concurrent callers await the same login task. A failed login is not
        cached so the next call tries again.
        """
        if self._token is not None:
            return self._token

        if self._login_task is None:
            self._login_task = asyncio.ensure_future(self.login())

        task = self._login_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._login_task is task:
                self._login_task = None
            raise

        return self._token

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _post(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """
        POST to a BGH endpoint with the token attached to the body.

        Raises:
            UpstreamError: On HTTP error status or transport failure
        """
        token = await self._ensure_token()
        body: Dict[str, Any] = dict(payload or {})

        existing_token = body.get("token")
        body["token"] = {
            **(existing_token if isinstance(existing_token, dict) else {}),
            "Token": token["Token"],
        }

        try:
            async with self._http() as client:
                response = await client.post(endpoint, json=body)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise UpstreamError(
                f"Request to {endpoint} failed with status {status}",
                endpoint=endpoint,
                status_code=status
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(
                f"Request to {endpoint} failed: {e}",
                endpoint=endpoint
            ) from e

    @staticmethod
    def _extract_json(response: httpx.Response, context: str) -> Dict[str, Any]:
        """
        Parse a vendor response body as a JSON object.

        Raises:
            ProtocolError: If the body is not a JSON object
        """
        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"Unable to parse {context} response as JSON") from e

        if not isinstance(data, dict):
            raise ProtocolError(f"Unable to parse {context} response as JSON")

        return data

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_homes(self) -> List[Dict[str, Any]]:
        """
        List homes of the account.

        Returns:
            Raw home summaries, or an empty list if the envelope is missing
        """
        if self.sim_mode:
            logger.info("[SIM] Listing BGH homes")
            return [{"HomeID": 1, "Description": "Sim home"}]

        response = await self._post(ENUM_HOMES_ENDPOINT)
        data = self._extract_json(response, "home enumeration")

        result = data.get("EnumHomesResult")
        if not isinstance(result, dict):
            return []

        homes = result.get("Homes")
        return homes if isinstance(homes, list) else []

    async def _get_data_packet(self, home_id: int) -> Dict[str, Any]:
        """
        Fetch the combined endpoint/value/device packet of a home.

        Args:
            home_id: Vendor home id

        Returns:
            The GetDataPacketResult object (empty if absent)
        """
        if self.sim_mode:
            return self._sim_data_packet()

        payload = {
            "homeID": home_id,
            "serials": {
                "Home": 0,
                "Groups": 0,
                "Devices": 0,
                "Endpoints": 0,
                "EndpointValues": 0,
                "Scenes": 0,
                "Macros": 0,
                "Alarms": 0,
            },
            "timeOut": self.DATA_PACKET_TIMEOUT_MS,
        }

        response = await self._post(DATA_PACKET_ENDPOINT, payload)
        data = self._extract_json(response, "data packet")

        packet = data.get("GetDataPacketResult")
        return packet if isinstance(packet, dict) else {}

    async def get_devices(self, home_id: int) -> Dict[int, DeviceSnapshot]:
        """
        Get every device of a home with its decoded status.

        Args:
            home_id: Vendor home id

        Returns:
            Mapping of device id -> DeviceSnapshot
        """
        packet = await self._get_data_packet(home_id)
        devices = parse_data_packet(packet)
        logger.debug("BGH devices decoded", home_id=home_id, device_count=len(devices))
        return devices

    async def get_device_status(self, home_id: int, device_id: int) -> DeviceSnapshot:
        """
        Get the status of a single device.

        Raises:
            NotFoundError: If the device is not in the home's packet
        """
        devices = await self.get_devices(home_id)
        device = devices.get(device_id)
        if device is None:
            raise NotFoundError(f"Device {device_id} not found for home {home_id}")
        return device

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_mode(
        self,
        device_id: int,
        mode: str,
        target_temperature: float,
        fan: Optional[str] = "auto",
        flags: Optional[int] = 255
    ) -> Dict[str, Any]:
        """
        Set HVAC mode, fan and target temperature of a device.

        Args:
            device_id: Endpoint id
            mode: One of HVAC_MODES
            target_temperature: Target temperature in Celsius
            fan: One of FAN_MODES (default "auto")
            flags: Vendor flags bitmap (default 255)

        Returns:
            Raw vendor response

        Raises:
            InvalidCommandError: Unknown mode or fan (raised before any
                network call)
        """
        fan = "auto" if fan is None else fan
        flags = 255 if flags is None else flags

        if mode not in HVAC_MODES:
            raise InvalidCommandError(f"Unsupported HVAC mode '{mode}'")
        if fan not in FAN_MODES:
            raise InvalidCommandError(f"Unsupported fan mode '{fan}'")

        payload = {
            "desiredTempC": format_temperature(target_temperature),
            "fanMode": FAN_MODES[fan],
            "flags": flags,
            "mode": HVAC_MODES[mode],
            "endpointID": device_id,
        }

        if self.sim_mode:
            logger.info("[SIM] BGH set mode", device_id=device_id, **payload)
            return self._sim_apply(device_id, payload)

        response = await self._post(SET_MODES_ENDPOINT, payload)
        data = self._extract_json(response, "set mode")

        logger.info(
            "BGH device mode set",
            device_id=device_id,
            mode=mode,
            fan=fan,
            target_temperature=target_temperature
        )
        return data

    # ------------------------------------------------------------------
    # Sim mode
    # ------------------------------------------------------------------

    @staticmethod
    def _initial_sim_devices() -> Dict[int, Dict[str, Any]]:
        return {
            101: {"name": "Living", "model": "BGH-SIM-3000", "address": "00:00:00:00:01",
                  "temperature": 23.5, "target": 24, "fan": 254, "mode": 0},
            102: {"name": "Bedroom", "model": "BGH-SIM-3000", "address": "00:00:00:00:02",
                  "temperature": -99, "target": 255, "fan": 1, "mode": 1},
        }

    def _sim_data_packet(self) -> Dict[str, Any]:
        endpoints, values, devices = [], [], []
        for device_id, state in self._sim_devices.items():
            endpoints.append({"EndpointID": device_id, "Description": state["name"]})
            values.append({"Values": [
                {"ValueType": VALUE_TYPE_TEMPERATURE, "Value": state["temperature"]},
                {"ValueType": VALUE_TYPE_MODE, "Value": state["mode"]},
                {"ValueType": VALUE_TYPE_FAN_SPEED, "Value": state["fan"]},
                {"ValueType": VALUE_TYPE_TARGET_TEMPERATURE, "Value": state["target"]},
            ]})
            devices.append({"DeviceModel": state["model"], "Address": state["address"]})
        return {"Endpoints": endpoints, "EndpointValues": values, "Devices": devices}

    def _sim_apply(self, device_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        state = self._sim_devices.get(device_id)
        if state is None:
            return {"HVACSetModesResult": False}

        if payload["mode"] != HVAC_MODES["no_change"]:
            state["mode"] = payload["mode"]
        if payload["fanMode"] != FAN_MODES["no_change"]:
            state["fan"] = payload["fanMode"]
        state["target"] = float(payload["desiredTempC"])
        return {"HVACSetModesResult": True}
