"""
Domain models for BGH devices and the decoding of the vendor data packet.

The vendor returns a home as three parallel lists (endpoints, value groups,
device metadata) matched by position. Each value group is a list of
{"ValueType": int, "Value": ...} records. These are pure functions with no
I/O so they can be tested without the client.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Vendor enumerations (name -> wire code)
HVAC_MODES: Dict[str, int] = {
    "off": 0,
    "cool": 1,
    "heat": 2,
    "dry": 3,
    "fan_only": 4,
    "auto": 254,
    "no_change": 255,
}

FAN_MODES: Dict[str, int] = {
    "low": 1,
    "mid": 2,
    "high": 3,
    "auto": 254,
    "no_change": 255,
}

# Value types inside a value group
VALUE_TYPE_TEMPERATURE = 13
VALUE_TYPE_MODE = 14
VALUE_TYPE_FAN_SPEED = 15
VALUE_TYPE_TARGET_TEMPERATURE = 20

# Sentinels
NO_SENSOR_READING_MAX = -50.0
TARGET_USE_DEFAULT = 255
DEFAULT_TARGET_TEMPERATURE = 20.0


@dataclass(frozen=True)
class DeviceSnapshot:
    """State of one BGH endpoint at the moment it was fetched."""
    device_id: int
    device_name: str
    model: Optional[str] = None
    serial_number: Optional[str] = None
    temperature: Optional[float] = None
    target_temperature: Optional[float] = None
    fan_speed: Optional[int] = None
    mode_id: Optional[int] = None
    raw_values: Tuple[Dict[str, Any], ...] = field(default=(), repr=False, compare=False)
    raw_device: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)
    endpoint: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API / event response format."""
        return {
            "deviceId": self.device_id,
            "deviceName": self.device_name,
            "model": self.model,
            "serialNumber": self.serial_number,
            "temperature": self.temperature,
            "targetTemperature": self.target_temperature,
            "fanSpeed": self.fan_speed,
            "modeId": self.mode_id,
        }


@dataclass(frozen=True)
class DecodedValues:
    """Typed readings extracted from one value group."""
    temperature: Optional[float] = None
    target_temperature: Optional[float] = None
    fan_speed: Optional[int] = None
    mode_id: Optional[int] = None


def _to_number(value: Any) -> Optional[float]:
    """
    Coerce a vendor value to a float.

    Numbers and numeric strings are accepted; booleans, blanks, NaN,
    infinities and anything else return None.
    """
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def _to_code(value: Any) -> Optional[int]:
    number = _to_number(value)
    if number is None:
        return None
    return int(number)


def normalise_values(values_group: Any) -> List[Dict[str, Any]]:
    """
    Extract the list of value records from a value group.

    Args:
        values_group: One entry of the packet's EndpointValues list

    Returns:
        The dict records of its "Values" list (non-dict items dropped)
    """
    if not isinstance(values_group, dict):
        return []

    values = values_group.get("Values")
    if not isinstance(values, list):
        return []

    return [item for item in values if isinstance(item, dict)]


def find_value(values: List[Dict[str, Any]], value_type: int) -> Any:
    """Return the first value of the given type, or None when absent."""
    for item in values:
        if item.get("ValueType") == value_type:
            return item.get("Value")
    return None


def decode_temperature(raw: Any) -> Optional[float]:
    """Ambient temperature; readings at or below -50 mean no sensor."""
    number = _to_number(raw)
    if number is None or number <= NO_SENSOR_READING_MAX:
        return None
    return number


def decode_target_temperature(raw: Any) -> Optional[float]:
    """Target temperature; 255 means the unit uses its default of 20."""
    number = _to_number(raw)
    if number is None:
        return None
    if number == TARGET_USE_DEFAULT:
        return DEFAULT_TARGET_TEMPERATURE
    return number


def decode_values(values: List[Dict[str, Any]]) -> DecodedValues:
    """
    Decode a value group into typed readings.

    A value type that does not appear yields None for its field, never zero.
    """
    return DecodedValues(
        temperature=decode_temperature(find_value(values, VALUE_TYPE_TEMPERATURE)),
        target_temperature=decode_target_temperature(
            find_value(values, VALUE_TYPE_TARGET_TEMPERATURE)
        ),
        fan_speed=_to_code(find_value(values, VALUE_TYPE_FAN_SPEED)),
        mode_id=_to_code(find_value(values, VALUE_TYPE_MODE)),
    )


def _list_field(packet: Dict[str, Any], key: str) -> List[Any]:
    value = packet.get(key)
    return value if isinstance(value, list) else []


def _optional_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_data_packet(packet: Dict[str, Any]) -> Dict[int, DeviceSnapshot]:
    """
    Zip a GetDataPacket result into device snapshots.

    The Nth endpoint pairs with the Nth value group and the Nth device
    metadata record. Endpoints without a numeric EndpointID are skipped.

    Args:
        packet: The GetDataPacketResult object

    Returns:
        Mapping of endpoint id -> DeviceSnapshot
    """
    endpoints = _list_field(packet, "Endpoints")
    endpoint_values = _list_field(packet, "EndpointValues")
    devices_meta = _list_field(packet, "Devices")

    devices: Dict[int, DeviceSnapshot] = {}

    for index, endpoint in enumerate(endpoints):
        if not isinstance(endpoint, dict):
            continue

        endpoint_id = endpoint.get("EndpointID")
        if isinstance(endpoint_id, bool) or not isinstance(endpoint_id, (int, float)):
            continue
        if isinstance(endpoint_id, float) and not endpoint_id.is_integer():
            continue

        values_group = endpoint_values[index] if index < len(endpoint_values) else None
        metadata = devices_meta[index] if index < len(devices_meta) else None
        if not isinstance(metadata, dict):
            metadata = {}

        values = normalise_values(values_group)
        decoded = decode_values(values)
        device_id = int(endpoint_id)

        devices[device_id] = DeviceSnapshot(
            device_id=device_id,
            device_name=endpoint.get("Description") or "",
            model=_optional_text(metadata.get("DeviceModel")),
            serial_number=_optional_text(metadata.get("Address")),
            temperature=decoded.temperature,
            target_temperature=decoded.target_temperature,
            fan_speed=decoded.fan_speed,
            mode_id=decoded.mode_id,
            raw_values=tuple(values),
            raw_device=metadata,
            endpoint=endpoint,
        )

    return devices
