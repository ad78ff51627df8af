"""
Tests for loading settings from the environment.
"""

import pytest

from bgh_bridge.config import load_settings, parse_origins
from bgh_bridge.utils.errors import ConfigurationError


def test_defaults():
    settings = load_settings({})

    assert settings.bgh_email is None
    assert settings.timeout_ms == 15000
    assert settings.timeout_seconds == 15.0
    assert settings.sim_mode is False
    assert settings.port == 4000
    assert settings.production is False
    assert settings.session_ttl_seconds == 43200
    assert settings.max_attempts == 6
    assert settings.poll_delay_seconds == 0.75
    assert settings.has_default_credentials is False


def test_values_from_environment():
    settings = load_settings({
        "BGH_EMAIL": "user@example.com",
        "BGH_PASSWORD": "secret",
        "BGH_TIMEOUT_MS": "5000",
        "SIM_MODE": "true",
        "PORT": "8080",
        "NODE_ENV": "production",
        "COMMAND_POLL_DELAY_MS": "0",
        "SSE_HEARTBEAT_SECONDS": "5",
    })

    assert settings.has_default_credentials is True
    assert settings.timeout_seconds == 5.0
    assert settings.sim_mode is True
    assert settings.port == 8080
    assert settings.production is True
    assert settings.poll_delay_seconds == 0
    assert settings.heartbeat_interval_seconds == 5


def test_blank_values_fall_back_to_defaults():
    settings = load_settings({"BGH_TIMEOUT_MS": "  ", "PORT": ""})

    assert settings.timeout_ms == 15000
    assert settings.port == 4000


@pytest.mark.parametrize("raw", ["0", "-5", "soon"])
def test_invalid_timeout_is_configuration_error(raw):
    with pytest.raises(ConfigurationError, match="BGH_TIMEOUT_MS"):
        load_settings({"BGH_TIMEOUT_MS": raw})


@pytest.mark.parametrize("raw, expected", [
    ("1", True),
    ("yes", True),
    ("on", True),
    ("false", False),
    ("", False),
])
def test_sim_mode_flag(raw, expected):
    assert load_settings({"SIM_MODE": raw}).sim_mode is expected


def test_parse_origins():
    assert parse_origins(None) == []
    assert parse_origins("https://a.example, ,https://b.example ") == [
        "https://a.example", "https://b.example"
    ]
