"""
Configuration management for the BGH bridge.
Loads settings from environment variables (optionally via a .env file).
"""

import os
from typing import List, Mapping, Optional

from pydantic import ValidationError

from bgh_bridge.models.config import Settings
from bgh_bridge.utils.errors import ConfigurationError

EMAIL_ENV_KEY = "BGH_EMAIL"
PASSWORD_ENV_KEY = "BGH_PASSWORD"
TIMEOUT_ENV_KEY = "BGH_TIMEOUT_MS"

# Environment variable -> Settings field
_ENV_FIELDS = {
    EMAIL_ENV_KEY: "bgh_email",
    PASSWORD_ENV_KEY: "bgh_password",
    TIMEOUT_ENV_KEY: "timeout_ms",
    "LOG_LEVEL": "log_level",
    "HOST": "host",
    "PORT": "port",
    "SESSION_TTL_SECONDS": "session_ttl_seconds",
    "SSE_HEARTBEAT_SECONDS": "heartbeat_interval_seconds",
    "COMMAND_POLL_DELAY_MS": "poll_delay_ms",
    "COMMAND_MAX_ATTEMPTS": "max_attempts",
}


def parse_origins(raw: Optional[str]) -> List[str]:
    """Split a comma separated CORS allow-list, dropping blanks."""
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If a value is present but invalid, e.g. a
            non-positive BGH_TIMEOUT_MS
    """
    env = os.environ if environ is None else environ

    values = {}
    for env_key, field_name in _ENV_FIELDS.items():
        raw = env.get(env_key)
        if raw is None or raw.strip() == "":
            continue
        values[field_name] = raw.strip()

    values["sim_mode"] = _is_true(env.get("SIM_MODE"))
    app_env = env.get("APP_ENV") or env.get("NODE_ENV") or ""
    values["production"] = app_env.strip().lower() == "production"
    values["cors_allowed_origins"] = parse_origins(env.get("CORS_ALLOWED_ORIGINS"))

    try:
        return Settings(**values)
    except ValidationError as exc:
        invalid = []
        for error in exc.errors():
            field_name = str(error.get("loc", ["?"])[0])
            env_key = next(
                (key for key, name in _ENV_FIELDS.items() if name == field_name),
                field_name
            )
            invalid.append(f"{env_key}: {error.get('msg', 'Invalid value')}")
        raise ConfigurationError(
            "Invalid configuration. " + "; ".join(invalid)
        ) from exc
