"""
Tests for decoding the vendor data packet into device snapshots.
"""

import pytest

from bgh_bridge.models.device import (
    decode_target_temperature,
    decode_temperature,
    decode_values,
    find_value,
    normalise_values,
    parse_data_packet,
)


def values(*pairs):
    return [{"ValueType": value_type, "Value": value} for value_type, value in pairs]


@pytest.mark.parametrize("raw, expected", [
    (23.5, 23.5),
    ("23.5", 23.5),
    (-49, -49.0),
    (-50, None),
    (-99, None),
    (None, None),
    ("", None),
    ("warm", None),
    ("inf", None),
    (float("nan"), None),
    (True, None),
])
def test_decode_temperature(raw, expected):
    assert decode_temperature(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (24, 24.0),
    ("24", 24.0),
    (255, 20.0),
    ("255", 20.0),
    (None, None),
    ("x", None),
    ("Infinity", None),
    (float("inf"), None),
])
def test_decode_target_temperature(raw, expected):
    assert decode_target_temperature(raw) == expected


def test_decode_values_missing_types_are_none():
    decoded = decode_values(values((13, 22)))

    assert decoded.temperature == 22.0
    assert decoded.target_temperature is None
    assert decoded.fan_speed is None
    assert decoded.mode_id is None


def test_decode_values_codes():
    decoded = decode_values(values((14, "1"), (15, 254.0), (20, 255)))

    assert decoded.mode_id == 1
    assert decoded.fan_speed == 254
    assert decoded.target_temperature == 20.0


def test_find_value_returns_first_match():
    assert find_value(values((13, 1), (13, 2)), 13) == 1
    assert find_value(values((13, 1)), 20) is None


def test_normalise_values_drops_garbage():
    assert normalise_values(None) == []
    assert normalise_values({"Values": "nope"}) == []
    assert normalise_values({"Values": [1, {"ValueType": 13, "Value": 2}]}) == [
        {"ValueType": 13, "Value": 2}
    ]


def test_parse_data_packet_zips_by_position():
    packet = {
        "Endpoints": [
            {"EndpointID": 7, "Description": "Living"},
            {"EndpointID": 8, "Description": "Bedroom"},
        ],
        "EndpointValues": [
            {"Values": values((13, 24.5), (14, 1), (15, 2), (20, 21))},
            {"Values": values((13, -99), (20, 255))},
        ],
        "Devices": [
            {"DeviceModel": "BGH-3000", "Address": "AA:01"},
            {"DeviceModel": "BGH-2000", "Address": "AA:02"},
        ],
    }

    devices = parse_data_packet(packet)

    assert set(devices) == {7, 8}
    assert devices[7].to_dict() == {
        "deviceId": 7,
        "deviceName": "Living",
        "model": "BGH-3000",
        "serialNumber": "AA:01",
        "temperature": 24.5,
        "targetTemperature": 21.0,
        "fanSpeed": 2,
        "modeId": 1,
    }
    assert devices[8].temperature is None
    assert devices[8].target_temperature == 20.0
    assert devices[8].serial_number == "AA:02"


def test_parse_data_packet_skips_endpoints_without_numeric_id():
    packet = {
        "Endpoints": [
            {"EndpointID": "7"},
            "garbage",
            {"EndpointID": True},
            {"EndpointID": 1.5},
            {"EndpointID": 9.0, "Description": "Office"},
        ],
        "EndpointValues": [],
        "Devices": [],
    }

    devices = parse_data_packet(packet)

    assert list(devices) == [9]
    assert devices[9].device_name == "Office"
    assert devices[9].model is None
    assert devices[9].temperature is None


def test_parse_data_packet_with_short_lists():
    packet = {
        "Endpoints": [{"EndpointID": 1}, {"EndpointID": 2}],
        "EndpointValues": [{"Values": values((13, 20))}],
    }

    devices = parse_data_packet(packet)

    assert devices[1].temperature == 20.0
    assert devices[2].temperature is None
    assert devices[2].device_name == ""


def test_parse_empty_packet():
    assert parse_data_packet({}) == {}
